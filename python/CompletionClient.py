#!/usr/bin/env python3
# SPDX-License-Identifier: GPL-3.0-or-later
# SPDX-CopyrightText: 2025 Gerhard Gappmeier <gappy1502@gmx.net>
#
# Streams chat completions from the DeepSeek REST API.
import json
import contextlib
import httpx

DEFAULT_BASE_URL = "https://api.deepseek.com/v1"
DEFAULT_MODEL = "deepseek-chat"


class CompletionError(Exception):
    """The request could not be sent or the stream could not be read."""


class ApiError(CompletionError):
    """The API answered with a non-success status."""

    def __init__(self, status_code, body):
        super().__init__(f"Error: {status_code} - {body}")
        self.status_code = status_code
        self.body = body


def build_request(model, messages):
    return {
        "model": model,
        "messages": list(messages),
        "stream": True,
    }


def mask_headers(headers):
    masked = dict(headers)
    if "Authorization" in masked:
        masked["Authorization"] = "Bearer ***"
    return masked


class CompletionClient:
    def __init__(self, api_key, base_url=DEFAULT_BASE_URL, timeout=None, log=None, transport=None):
        self.api_key = api_key
        self.endpoint = base_url.rstrip('/') + "/chat/completions"
        self.timeout = timeout
        self.log = log
        self.transport = transport

    def debug_log(self, msg):
        if self.log == None:
            return
        self.log.debug(msg)

    def headers(self):
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    @contextlib.contextmanager
    def stream(self, model, messages):
        """
        POST the conversation and yield the response body line by line.
        Raises ApiError on a non-success status, CompletionError on
        transport failures.
        """
        data = build_request(model, messages)
        headers = self.headers()
        self.debug_log('endpoint: ' + self.endpoint)
        self.debug_log('request: ' + json.dumps(data, indent=4, ensure_ascii=False))
        self.debug_log('request headers: ' + json.dumps(mask_headers(headers)))

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                with client.stream("POST", self.endpoint, headers=headers, json=data) as response:
                    self.debug_log(f'response status: {response.status_code}')
                    self.debug_log('response headers: ' + json.dumps(dict(response.headers)))
                    if response.status_code != 200:
                        response.read()
                        raise ApiError(response.status_code, response.text)
                    yield response.iter_lines()
        except httpx.HTTPError as e:
            raise CompletionError(f"Error making request: {e}") from e

    def complete(self, model, messages, reassembler):
        """Send the conversation and let reassembler collect the streamed reply."""
        with self.stream(model, messages) as lines:
            return reassembler.consume(lines)
