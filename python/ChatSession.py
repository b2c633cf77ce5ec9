#!/usr/bin/env python3
# SPDX-License-Identifier: GPL-3.0-or-later
# SPDX-CopyrightText: 2025 Gerhard Gappmeier <gappy1502@gmx.net>
#
# Chat-id selection and the user/assistant turns of a conversation.
import os
import secrets
from Conversation import Conversation, ROLE_SYSTEM, ROLE_USER, ROLE_ASSISTANT, now

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant. Be concise."
SYSTEM_PROMPT_VAR = "DEEPSEEK_ROLE"


def generate_chat_id() -> str:
    """16 lowercase hex characters from 8 random bytes."""
    return secrets.token_hex(8)


def resolve_conversation_id(requested_id: str | None, force_new: bool, last_id: str | None) -> str:
    """
    Pick the chat-id to use:
      - a fresh one for --new, or when there is nothing to continue
      - the last used one when no id was requested
      - otherwise the requested one, whether it exists or not
    """
    if force_new or (not requested_id and not last_id):
        return generate_chat_id()
    if not requested_id:
        return last_id
    return requested_id


def default_system_prompt() -> str:
    return os.getenv(SYSTEM_PROMPT_VAR) or DEFAULT_SYSTEM_PROMPT


def append_user_turn(chat: Conversation | None, prompt: str, system_prompt: str | None = None) -> Conversation:
    """
    Append the prompt as user message. A new conversation is started
    with a system message when chat is None.
    """
    if not prompt:
        raise ValueError("prompt must not be empty")

    if chat is None:
        chat = Conversation(created_at=now())
        chat.append(ROLE_SYSTEM, system_prompt or default_system_prompt())
    chat.append(ROLE_USER, prompt)
    return chat


def append_assistant_turn(chat: Conversation, text: str) -> Conversation:
    chat.append(ROLE_ASSISTANT, text or "")
    return chat
