#!/usr/bin/env python3
# SPDX-License-Identifier: GPL-3.0-or-later
# SPDX-CopyrightText: 2025 Gerhard Gappmeier <gappy1502@gmx.net>
#
# Command line chat client for the DeepSeek API.
# The conversation is stored in ~/.deepseek_history.json, so the next
# call continues where the last one stopped unless --new is given.
import sys
import argparse
from DeepSeekLogger import DeepSeekLogger
from DeepSeekCredentials import DeepSeekCredentials
from TranscriptStore import TranscriptStore, DEFAULT_HISTORY_FILE
from CompletionClient import CompletionClient, CompletionError, ApiError, DEFAULT_BASE_URL, DEFAULT_MODEL
from StreamReassembler import StreamReassembler
from Conversation import now
import ChatSession
import list_models
import service_status

DEFAULT_LOG_DIR = "/tmp/logs"
DEFAULT_LOG_FILENAME = "deepseek.log"

# (header, width) of the --ls table
LIST_COLUMNS = [
    ("", 2),
    ("CHAT ID", 18),
    ("AGE", 10),
    ("CREATED AT", 20),
    ("LAST USER MESSAGE", 30),
]

log = None


def format_age(delta):
    """Format a timedelta like Go does, rounded to seconds: 3h2m1s."""
    seconds = int(round(delta.total_seconds()))
    sign = ""
    if seconds < 0:
        sign = "-"
        seconds = -seconds
    hours, rest = divmod(seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


def format_row(values):
    cells = []
    for (_, width), value in zip(LIST_COLUMNS, values):
        cells.append(f"{value:<{width}}")
    return " ".join(cells).rstrip()


def list_chats(store, out=None, current_time=None):
    """Print all chats, newest first. The last used one is marked with '*'."""
    if current_time is None:
        current_time = now()
    last_chat_id = store.last_chat_id

    print(format_row([name for name, _ in LIST_COLUMNS]), file=out)
    for chat_id, chat in store.list():
        marker = "*" if chat_id == last_chat_id else ""
        age = format_age(current_time - chat.created_at)
        created = chat.created_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        width = LIST_COLUMNS[-1][1]
        last_message = " ".join(chat.last_user_message().split())
        if len(last_message) > width:
            last_message = last_message[:width - 3] + "..."
        print(format_row([marker, chat_id, age, created, last_message]), file=out)


def show_chat(store, chat_id, out=None):
    chat = store.get(chat_id)
    if chat is None:
        print(f"Chat ID: {chat_id} not found.", file=sys.stderr)
        return 1
    print(f"Chat ID: {chat_id}  Created: {chat.created_at.astimezone().strftime('%Y-%m-%d %H:%M:%S')}", file=out)
    for message in chat.messages:
        print(f"[{message['role']}]", file=out)
        print(message['content'], file=out)
        print(file=out)
    return 0


def remove_chats(store, criteria):
    result = store.remove(criteria)
    if result.by_age:
        print(f"Removing chats older than: {result.cutoff.strftime('%Y-%m-%d %H:%M:%S %z')}")
        for chat_id in result.removed:
            print(f"Chat ID: {chat_id} removed due to age.")
        if not result.found:
            print("No chats were removed. All chats are within the specified duration.")
    elif result.found:
        print(f"Chat ID: {criteria} removed.")
    else:
        print(f"Chat ID: {criteria} not found (and not a valid duration).")

    if result.found:
        store.save()
    return result


def send_prompt(store, args, prompt, api_key, out=None):
    """Append the prompt, stream the reply and persist both."""
    out = out or sys.stdout
    last_chat_id = store.last_chat_id
    chat_id = ChatSession.resolve_conversation_id(args.chat, args.new, last_chat_id)
    if args.verbose:
        if args.new or (not args.chat and not last_chat_id):
            print(f"New chat-id generated: {chat_id}", file=sys.stderr)
        elif not args.chat:
            print(f"Using last chat-id: {chat_id}", file=sys.stderr)
    store.last_chat_id = chat_id

    chat = ChatSession.append_user_turn(store.get(chat_id), prompt)
    store.put(chat_id, chat)

    client = CompletionClient(api_key, args.url, timeout=args.timeout, log=log)
    reassembler = StreamReassembler(out, log)
    try:
        reply = client.complete(args.model, chat.messages, reassembler)
    except ApiError as e:
        print(f"API Error Response: {e.body}", file=sys.stderr)
        if log:
            log.error(f"API error {e.status_code}: {e.body}")
        return 1
    except CompletionError as e:
        print(f"\n{e}", file=sys.stderr)
        if log:
            log.error(str(e))
        return 1
    print(file=out)

    if reply.truncated:
        print("Warning: the stream ended without [DONE], the reply may be incomplete.", file=sys.stderr)

    ChatSession.append_assistant_turn(chat, reply.text)
    store.put(chat_id, chat)
    store.save()
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Chat with DeepSeek from the command line.")
    parser.add_argument("prompt", nargs="*", help="The prompt to send.")
    parser.add_argument("-m", "--model", type=str, default=DEFAULT_MODEL,
                        help=f"Model to use (default: {DEFAULT_MODEL})")
    parser.add_argument("-c", "--chat", type=str, default="",
                        help="Conversation ID (default: the last used one)")
    parser.add_argument("-n", "--new", action="store_true", help="Start a new conversation")
    parser.add_argument("--ls", action="store_true", help="List all chats and their last message")
    parser.add_argument("--show", type=str, default=None, metavar="ID", help="Print the transcript of a chat")
    parser.add_argument("--rm", type=str, default=None, metavar="ID|DURATION",
                        help="Remove a chat by ID, or all chats older than a duration (e.g. 72h, 10d, '10 days')")
    parser.add_argument("--status", action="store_true", help="Check DeepSeek service status")
    parser.add_argument("--models", action="store_true", help="List available DeepSeek models")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--debug", action="store_true", help="Trace requests and stream lines to stderr")
    parser.add_argument("-u", "--url", type=str, default=DEFAULT_BASE_URL, help="Base URL of the DeepSeek API")
    parser.add_argument("-t", "--timeout", type=float, default=None,
                        help="Timeout in seconds for the chat request (default: none)")
    parser.add_argument("--history-file", type=str, default=DEFAULT_HISTORY_FILE, help="Chat history file")
    parser.add_argument("-l", "--log-level", type=int, default=DeepSeekLogger.ERROR, help="Log level.")
    parser.add_argument("-f", "--log-filename", type=str, default=DEFAULT_LOG_FILENAME, help="Log filename.")
    parser.add_argument("-d", "--log-dir", type=str, default=DEFAULT_LOG_DIR, help="Log file directory.")
    return parser.parse_args(argv)


def main(argv=None):
    global log
    args = parse_args(argv)

    log = DeepSeekLogger(args.log_dir, args.log_filename)
    log.setLevel(args.log_level)
    if args.debug:
        log.setLevel(DeepSeekLogger.DEBUG)
        log.setConsoleLevel(DeepSeekLogger.DEBUG)
    list_models.log = log

    if args.status:
        service_status.check_service_status()
        return 0

    if args.models:
        try:
            api_key = DeepSeekCredentials().GetApiKey()
        except EnvironmentError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        list_models.list_deepseek_models(args.url, api_key)
        return 0

    store = TranscriptStore(args.history_file, log).load()

    if args.rm is not None:
        remove_chats(store, args.rm)
        return 0

    if args.ls:
        list_chats(store)
        return 0

    if args.show is not None:
        return show_chat(store, args.show)

    try:
        api_key = DeepSeekCredentials().GetApiKey()
    except EnvironmentError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    prompt = " ".join(args.prompt).strip()
    if not prompt:
        print("Error: You must provide a prompt as an argument.", file=sys.stderr)
        return 1

    try:
        return send_prompt(store, args, prompt, api_key)
    except KeyboardInterrupt:
        print("\nCanceled.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
