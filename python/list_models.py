#!/usr/bin/env python3
# SPDX-License-Identifier: GPL-3.0-or-later
# SPDX-CopyrightText: 2024 Gerhard Gappmeier <gappy1502@gmx.net>
import requests
import argparse
import sys
from DeepSeekLogger import DeepSeekLogger
from DeepSeekCredentials import DeepSeekCredentials

DEFAULT_BASE_URL = "https://api.deepseek.com/v1"
DEFAULT_TIMEOUT = 10
log = None

def list_deepseek_models(base_url, api_key, timeout=DEFAULT_TIMEOUT):
    """List the model IDs available to the current API key."""
    url = f"{base_url.rstrip('/')}/models"
    headers = {
        "Authorization": f"Bearer {api_key}",
    }

    try:
        if log:
            log.debug(f'url={url}')
        response = requests.get(url, headers=headers, timeout=timeout)
        if response.status_code != 200:
            print(f"Failed to retrieve models (status {response.status_code})", file=sys.stderr)
            print(f"Response: {response.text}", file=sys.stderr)
            sys.exit(1)

        data = response.json()
        models = data.get("data", []) if isinstance(data, dict) else []
        if not models:
            print("No models found.", file=sys.stderr)
            return
        print("Available model IDs:")
        for m in models:
            if isinstance(m, dict) and "id" in m:
                print(m["id"])
    except ValueError as e:
        print(f"Error parsing JSON: {e}", file=sys.stderr)
        sys.exit(1)
    except requests.exceptions.RequestException as e:
        print(f"Error contacting DeepSeek: {e}", file=sys.stderr)
        sys.exit(1)

def main():
    global log
    parser = argparse.ArgumentParser(description="List DeepSeek models")
    parser.add_argument("-u", "--url", type=str, default=DEFAULT_BASE_URL,
                        help="Base URL of the DeepSeek API")
    parser.add_argument("-t", "--timeout", type=float, default=DEFAULT_TIMEOUT,
                        help="Timeout in seconds")
    parser.add_argument('-l', '--log-level', type=int, default=DeepSeekLogger.ERROR,
                        help="Specify log level")
    parser.add_argument('-f', '--log-filename', type=str, default="list_models.log",
                        help="Specify log filename")
    parser.add_argument('-d', '--log-dir', type=str, default="/tmp/logs",
                        help="Specify log file directory")
    args = parser.parse_args()

    log = DeepSeekLogger(args.log_dir, args.log_filename)
    log.setLevel(args.log_level)

    try:
        api_key = DeepSeekCredentials().GetApiKey()
    except EnvironmentError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    list_deepseek_models(args.url, api_key, args.timeout)

if __name__ == "__main__":
    main()
