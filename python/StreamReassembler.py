#!/usr/bin/env python3
# SPDX-License-Identifier: GPL-3.0-or-later
# SPDX-CopyrightText: 2025 Gerhard Gappmeier <gappy1502@gmx.net>
#
# Turns the server-sent-event lines of a streamed chat completion into
# the assistant's reply. Each fragment is printed as soon as it arrives.
import sys
import json

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class AssembledReply:
    def __init__(self, text, done):
        self.text = text
        self.done = done

    @property
    def truncated(self):
        """True if the stream ended without the [DONE] sentinel."""
        return not self.done

    def __repr__(self):
        return f"AssembledReply(text={self.text!r}, done={self.done})"


def extract_fragment(event):
    """
    Return the text delta of the first choice, or None if the event
    carries no choices.
    """
    if not isinstance(event, dict):
        return None
    choices = event.get("choices")
    if not isinstance(choices, list) or len(choices) == 0:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    if not isinstance(content, str):
        return ""
    return content


class StreamReassembler:
    def __init__(self, out=None, log=None):
        self.out = out if out is not None else sys.stdout
        self.log = log
        self.fragments = []
        self.done = False

    def debug_log(self, msg):
        if self.log == None:
            return
        self.log.debug(msg)

    @property
    def text(self):
        return "".join(self.fragments)

    def feed(self, line):
        """Process one line. Returns True once the stream is complete."""
        if self.done:
            return True
        self.debug_log(f'raw line received: {line}')

        if not line:
            return False

        if not line.startswith(DATA_PREFIX):
            self.debug_log(f"line doesn't start with '{DATA_PREFIX}', skipping")
            return False

        payload = line[len(DATA_PREFIX):]
        if payload == DONE_SENTINEL:
            self.debug_log('received [DONE], ending stream')
            self.done = True
            return True

        try:
            event = json.loads(payload)
        except json.JSONDecodeError as e:
            self.debug_log(f'error decoding JSON: {e}, problematic line: {payload}')
            return False

        fragment = extract_fragment(event)
        if fragment is None:
            self.debug_log('no choices in event')
            return False

        if fragment:
            self.out.write(fragment)
            self.out.flush()
            self.fragments.append(fragment)
        return False

    def consume(self, lines):
        """
        Feed all lines until [DONE] or until the source is exhausted.
        Whatever arrived so far is the reply, even without [DONE].
        """
        for line in lines:
            if self.feed(line):
                break
        if not self.done and self.log:
            self.log.warning('stream ended without [DONE], reply may be truncated')
        return AssembledReply(self.text, self.done)
