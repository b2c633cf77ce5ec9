#!/usr/bin/env python3
# SPDX-License-Identifier: GPL-3.0-or-later
# SPDX-CopyrightText: 2025 Gerhard Gappmeier <gappy1502@gmx.net>
#
# A conversation is an ordered list of role-tagged messages plus the
# time it was created. Messages are plain dicts in the shape the chat
# completion API expects: {"role": "user", "content": "..."}
import re
import datetime

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLES = (ROLE_SYSTEM, ROLE_USER, ROLE_ASSISTANT)

# Python wants exactly six fraction digits, Go writes one to nine
_FRACTION = re.compile(r'\.(\d+)')


def now():
    """Current local time, timezone aware."""
    return datetime.datetime.now().astimezone()


def format_timestamp(ts: datetime.datetime) -> str:
    return ts.isoformat()


def parse_timestamp(text: str) -> datetime.datetime:
    """Parse an RFC3339 timestamp. Naive values are taken as UTC."""
    if not isinstance(text, str):
        raise ValueError(f"invalid timestamp: {text!r}")
    text = _FRACTION.sub(lambda m: '.' + (m.group(1) + '000000')[:6], text.strip())
    if text.endswith('Z') or text.endswith('z'):
        text = text[:-1] + '+00:00'
    ts = datetime.datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=datetime.timezone.utc)
    return ts


def make_message(role: str, content: str) -> dict:
    if role not in ROLES:
        raise ValueError(f"invalid role: {role}")
    if content is None:
        raise ValueError("message content must not be None")
    return {"role": role, "content": content}


class Conversation:
    def __init__(self, created_at=None, messages=None):
        self.created_at = created_at if created_at is not None else now()
        self.messages = list(messages) if messages else []

    def append(self, role: str, content: str):
        self.messages.append(make_message(role, content))

    def last_user_message(self) -> str:
        for message in reversed(self.messages):
            if message.get("role") == ROLE_USER:
                return message.get("content", "")
        return ""

    def to_dict(self) -> dict:
        return {
            "created_at": format_timestamp(self.created_at),
            "messages": [dict(m) for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Conversation":
        if not isinstance(data, dict):
            raise ValueError(f"invalid conversation entry: {data!r}")
        created_at = parse_timestamp(data.get("created_at"))
        items = data.get("messages") or []
        if not isinstance(items, list):
            raise ValueError(f"invalid message list: {items!r}")
        messages = []
        for item in items:
            if not isinstance(item, dict):
                raise ValueError(f"invalid message: {item!r}")
            content = item.get("content")
            if content is None:
                content = ""
            if not isinstance(content, str):
                raise ValueError(f"invalid message content: {content!r}")
            messages.append(make_message(item.get("role"), content))
        return cls(created_at, messages)

    def __eq__(self, other):
        if not isinstance(other, Conversation):
            return NotImplemented
        return self.created_at == other.created_at and self.messages == other.messages

    def __repr__(self):
        return f"Conversation(created_at={self.created_at.isoformat()}, messages={len(self.messages)})"
