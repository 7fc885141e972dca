# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import secrets
import string

ALPHABET = string.ascii_letters + string.digits

MIN_PASSWORD_LENGTH = 32
MIN_SIGNING_SECRET_LENGTH = 64


def _gen(length: int) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def generate_password(length: int = MIN_PASSWORD_LENGTH) -> str:
    if length < MIN_PASSWORD_LENGTH:
        raise ValueError(f"password length must be >= {MIN_PASSWORD_LENGTH}, got {length}")
    return _gen(length)


def generate_signing_secret(length: int = MIN_SIGNING_SECRET_LENGTH) -> str:
    if length < MIN_SIGNING_SECRET_LENGTH:
        raise ValueError(f"signing secret length must be >= {MIN_SIGNING_SECRET_LENGTH}, got {length}")
    return _gen(length)
