#!/usr/bin/env python3
# SPDX-License-Identifier: GPL-3.0-or-later
# SPDX-CopyrightText: 2025 Gerhard Gappmeier <gappy1502@gmx.net>
#
# Persistent chat history. All conversations plus the last used chat-id
# are kept in one JSON file which is read once on startup and written
# back in full whenever the history changed.
import os
import re
import sys
import json
import tempfile
import datetime
import threading
from Conversation import Conversation, now

DEFAULT_HISTORY_FILE = os.path.join(os.path.expanduser("~"), ".deepseek_history.json")

_SECOND = 1.0
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR
_WEEK = 7 * _DAY

DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6, "µs": 1e-6, "μs": 1e-6,
    "ms": 1e-3,
    "s": _SECOND, "sec": _SECOND, "secs": _SECOND, "second": _SECOND, "seconds": _SECOND,
    "m": _MINUTE, "min": _MINUTE, "mins": _MINUTE, "minute": _MINUTE, "minutes": _MINUTE,
    "h": _HOUR, "hr": _HOUR, "hrs": _HOUR, "hour": _HOUR, "hours": _HOUR,
    "d": _DAY, "day": _DAY, "days": _DAY,
    "w": _WEEK, "week": _WEEK, "weeks": _WEEK,
}

_DURATION_TERM = re.compile(r'\s*(\d+(?:\.\d*)?|\.\d+)\s*([^\d\s.]+)')


def parse_duration(text):
    """
    Parse a relative age like '72h', '1h30m', '10d' or '10 days'.

    Returns a datetime.timedelta, or None if text is not a duration.
    """
    if not isinstance(text, str):
        return None
    text = text.strip().lower()
    if not text:
        return None

    seconds = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_TERM.match(text, pos)
        if not match:
            return None
        unit = DURATION_UNITS.get(match.group(2))
        if unit is None:
            return None
        seconds += float(match.group(1)) * unit
        pos = match.end()

    try:
        return datetime.timedelta(seconds=seconds)
    except OverflowError:
        return None


class RemovalResult:
    """Outcome of TranscriptStore.remove()."""

    def __init__(self, criteria, cutoff=None, removed=None):
        self.criteria = criteria
        self.cutoff = cutoff
        self.removed = removed or []

    @property
    def by_age(self):
        return self.cutoff is not None

    @property
    def found(self):
        return len(self.removed) > 0


class TranscriptStore:
    def __init__(self, path=DEFAULT_HISTORY_FILE, log=None):
        self.path = path
        self.log = log
        self.lock = threading.Lock()
        self._last_chat_id = ""
        self._history = {}

    def _report(self, message):
        print(message, file=sys.stderr)
        if self.log:
            self.log.error(message)

    def _debug(self, message):
        if self.log:
            self.log.debug(message)

    ###############################
    # Persistence
    ###############################

    def load(self):
        """
        Read the history file. A missing file gives an empty history,
        a broken one is reported and also gives an empty history.
        """
        with self.lock:
            self._last_chat_id = ""
            self._history = {}
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except FileNotFoundError:
                self._debug(f'no history file at {self.path}')
                return self
            except OSError as e:
                self._report(f"Error reading history file: {e}")
                return self
            except ValueError as e:
                self._report(f"Error parsing history file: {e}")
                return self

            try:
                last_chat_id, history = self._from_dict(data)
            except (ValueError, TypeError, AttributeError) as e:
                self._report(f"Error parsing history file: {e}")
                return self

            self._last_chat_id = last_chat_id
            self._history = history
            self._debug(f'loaded {len(history)} chats from {self.path}')
        return self

    def save(self):
        """Write the complete history with owner-only permissions."""
        with self.lock:
            try:
                text = json.dumps(self._to_dict(), indent=2, ensure_ascii=False)
                directory = os.path.dirname(os.path.abspath(self.path))
                os.makedirs(directory, exist_ok=True)
                # mkstemp creates the file with mode 0600
                fd, tmp_path = tempfile.mkstemp(prefix='.history.', suffix='.tmp', dir=directory)
                try:
                    with os.fdopen(fd, 'w', encoding='utf-8') as f:
                        f.write(text)
                    os.replace(tmp_path, self.path)
                except OSError:
                    if os.path.exists(tmp_path):
                        os.unlink(tmp_path)
                    raise
                os.chmod(self.path, 0o600)
            except (OSError, TypeError, ValueError) as e:
                self._report(f"Error writing history file: {e}")
                return False
            self._debug(f'saved {len(self._history)} chats to {self.path}')
        return True

    def _to_dict(self):
        return {
            "last_chat_id": self._last_chat_id,
            "history": {chat_id: chat.to_dict() for chat_id, chat in self._history.items()},
        }

    @staticmethod
    def _from_dict(data):
        if not isinstance(data, dict):
            raise ValueError("history file does not contain a JSON object")
        last_chat_id = data.get("last_chat_id") or ""
        if not isinstance(last_chat_id, str):
            raise ValueError(f"invalid last_chat_id: {last_chat_id!r}")
        entries = data.get("history") or {}
        if not isinstance(entries, dict):
            raise ValueError("history is not a JSON object")
        history = {chat_id: Conversation.from_dict(entry) for chat_id, entry in entries.items()}
        return last_chat_id, history

    ###############################
    # Access
    ###############################

    @property
    def last_chat_id(self):
        with self.lock:
            return self._last_chat_id

    @last_chat_id.setter
    def last_chat_id(self, chat_id):
        with self.lock:
            self._last_chat_id = chat_id or ""

    def get(self, chat_id):
        with self.lock:
            return self._history.get(chat_id)

    def put(self, chat_id, chat):
        with self.lock:
            self._history[chat_id] = chat

    def delete(self, chat_id):
        with self.lock:
            return self._history.pop(chat_id, None) is not None

    def list(self):
        """All (chat_id, conversation) pairs, newest first."""
        with self.lock:
            chats = list(self._history.items())
        chats.sort(key=lambda entry: entry[0])
        chats.sort(key=lambda entry: entry[1].created_at, reverse=True)
        return chats

    def __len__(self):
        with self.lock:
            return len(self._history)

    def __contains__(self, chat_id):
        with self.lock:
            return chat_id in self._history

    ###############################
    # Removal
    ###############################

    def remove(self, criteria, current_time=None):
        """
        Remove chats by age or by id.

        If criteria parses as a duration every chat created before
        now - duration is removed, otherwise criteria is taken as a chat-id.
        There is no undo.
        """
        age = parse_duration(criteria)
        if age is None:
            with self.lock:
                if self._history.pop(criteria, None) is None:
                    return RemovalResult(criteria)
            self._debug(f'removed chat {criteria}')
            return RemovalResult(criteria, removed=[criteria])

        if current_time is None:
            current_time = now()
        try:
            cutoff = current_time - age
        except OverflowError:
            cutoff = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)

        removed = []
        with self.lock:
            for chat_id, chat in list(self._history.items()):
                if chat.created_at < cutoff:
                    del self._history[chat_id]
                    removed.append(chat_id)
        self._debug(f'removed {len(removed)} chats older than {cutoff}')
        return RemovalResult(criteria, cutoff, removed)
