# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/logging/masking.py

"""
Secret-safe previews and log redaction.

Usernames may be shown as a fixed-width preview (first and last two
characters). Everything else is password-class and only ever rendered as
``****`` plus its length.
"""

from __future__ import annotations

import logging
import threading

MASK = "****"

_USERNAME_MARKERS = ("USER", "USERNAME", "LOGIN")

_registered: set[str] = set()
_lock = threading.Lock()


def is_username_key(key: str) -> bool:
    upper = key.upper()
    return any(upper.endswith(m) or upper.endswith(f"{m}_NAME") for m in _USERNAME_MARKERS)


def mask_username(value: str) -> str:
    if len(value) <= 4:
        return MASK
    return f"{value[:2]}{MASK}{value[-2:]}"


def mask_password(value: str) -> str:
    return f"{MASK} (len={len(value)})"


def preview(key: str, value: str) -> str:
    """Render a value for display according to the class of its key."""
    if is_username_key(key):
        return mask_username(value)
    return mask_password(value)


def register_secret(value: str | None) -> None:
    """Add a value to the redaction set used by MaskingFilter."""
    if not value:
        return
    with _lock:
        _registered.add(value)


def clear_registered() -> None:
    with _lock:
        _registered.clear()


def redact(text: str) -> str:
    with _lock:
        values = sorted(_registered, key=len, reverse=True)
    for v in values:
        if v in text:
            text = text.replace(v, mask_password(v))
    return text


class MaskingFilter(logging.Filter):
    """Rewrites log records so no registered secret reaches a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not _registered:
            return True
        message = record.getMessage()
        masked = redact(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True
