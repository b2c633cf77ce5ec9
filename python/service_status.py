#!/usr/bin/env python3
# SPDX-License-Identifier: GPL-3.0-or-later
# SPDX-CopyrightText: 2025 Gerhard Gappmeier <gappy1502@gmx.net>
import requests
import argparse
import sys

DEFAULT_STATUS_URL = "https://status.deepseek.com/api/v2/status.json"
DEFAULT_TIMEOUT = 10

def check_service_status(url=DEFAULT_STATUS_URL, timeout=DEFAULT_TIMEOUT):
    """Print the indicator and description of the DeepSeek status page."""
    try:
        response = requests.get(url, timeout=timeout)
        if response.status_code != 200:
            print(f"Failed to get service status: {response.status_code} {response.reason}", file=sys.stderr)
            sys.exit(1)

        data = response.json()
        status = data.get("status") if isinstance(data, dict) else None
        if not isinstance(status, dict):
            print(f"Unexpected status response: {response.text}", file=sys.stderr)
            sys.exit(1)
        print(f"Service Status: {status.get('indicator', 'unknown')} - {status.get('description', '')}")
    except ValueError as e:
        print(f"Error parsing JSON response: {e}", file=sys.stderr)
        sys.exit(1)
    except requests.exceptions.RequestException as e:
        print(f"Error fetching service status: {e}", file=sys.stderr)
        sys.exit(1)

def main():
    parser = argparse.ArgumentParser(description="Check DeepSeek service status")
    parser.add_argument('-u', '--url', type=str, default=DEFAULT_STATUS_URL, help="Status page URL")
    args = parser.parse_args()

    check_service_status(args.url)

if __name__ == "__main__":
    main()
