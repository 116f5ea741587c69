"""
Text parsing utilities for genbridge.
"""

import re
from typing import Iterable, Sequence

from genbridge.config import Message


ROLE_LABELS = {
    "system": "[System]",
    "assistant": "[Assistant]",
    "user": "[User]",
}

TOKEN_LIMIT_PATTERNS = [
    re.compile(r"prompt is too long", re.IGNORECASE),
    re.compile(r"tokens? >\s*\d+\s*maximum", re.IGNORECASE),
    re.compile(r"max_prompt_tokens", re.IGNORECASE),
    re.compile(r"tokens?.*exceeded", re.IGNORECASE),
    re.compile(r"context.?length.*exceeded", re.IGNORECASE),
    re.compile(r"exceeded.*(?:token|limit|context|maximum)", re.IGNORECASE),
    re.compile(r"input tokens", re.IGNORECASE),
    re.compile(r"context_length", re.IGNORECASE),
    re.compile(r"too many tokens", re.IGNORECASE),
    re.compile(r"token limit", re.IGNORECASE),
    re.compile(r"maximum.*tokens", re.IGNORECASE),
    re.compile(r"20015.*limit", re.IGNORECASE),
    re.compile(r"INVALID_ARGUMENT", re.IGNORECASE),
]


def filter_response_tags(text: str, tags: Iterable[str]) -> str:
    """
    Remove configured tag spans from generated text.

    "thinking" removes every <thinking>...</thinking> span.
    "/think" removes everything up to and including the last </think>,
    for models that emit the closing tag without the opening one.
    Matching is case-insensitive. Passes repeat until nothing changes,
    so filtering already-filtered text is a no-op.
    """
    if not text:
        return text

    tags = list(tags)
    cleaned = text
    previous = None
    while cleaned != previous:
        previous = cleaned
        for tag in tags:
            if tag.startswith("/"):
                name = re.escape(tag[1:])
                cleaned = re.sub(
                    rf"\A.*</{name}>", "", cleaned, count=1,
                    flags=re.IGNORECASE | re.DOTALL,
                )
            else:
                name = re.escape(tag)
                cleaned = re.sub(
                    rf"<{name}>.*?</{name}>", "", cleaned,
                    flags=re.IGNORECASE | re.DOTALL,
                )
    return cleaned


def is_token_limit_error(error_message: str) -> bool:
    """Check whether a backend error message reports a context/token overflow."""
    if not error_message:
        return False
    head = str(error_message)[:500]
    return any(p.search(head) for p in TOKEN_LIMIT_PATTERNS)


def messages_to_prompt(messages: Sequence[Message]) -> str:
    """
    Flatten a message list into a single role-labelled prompt.

    A single message is passed through as its bare content.
    """
    if not messages:
        return ""
    if len(messages) == 1:
        return messages[0].content or ""

    return "\n\n".join(
        f"{ROLE_LABELS.get(m.role, ROLE_LABELS['user'])}\n{m.content}"
        for m in messages
    )
