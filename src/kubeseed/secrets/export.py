# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/secrets/export.py

"""
Secrets export bundle.

    secret: POSTGRES_PASSWORD
    value: s3cr3t
    ---
    secret: TLS_CERT
    value: -----BEGIN CERTIFICATE-----
    MIIB...
    -----END CERTIFICATE-----
    ---

Values may span lines until the next ``---`` or ``secret:`` line. Only a
line that is exactly ``---`` separates entries, so PEM armour survives.
Blank lines and ``#`` comments between entries are ignored.
"""

from __future__ import annotations

import base64
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

from kubeseed.errors import ExportFormatError
from kubeseed.logging.masking import register_secret

log = logging.getLogger("kubeseed")

_SECRET_LINE = re.compile(r"^secret:\s*(.*?)\s*$")
_VALUE_LINE = re.compile(r"^value:\s*(.*)$")
_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_secret_name(name: str) -> bool:
    return bool(_NAME.match(name)) and not name.upper().startswith("GITHUB_")


def parse_bundle(text: str) -> Dict[str, str]:
    """Parse an export bundle into ``{name: value}``; strict about structure."""
    secrets: Dict[str, str] = {}

    name: Optional[str] = None
    name_line = 0
    value: Optional[List[str]] = None

    def flush() -> None:
        nonlocal name, value
        if name is None:
            return
        joined = "\n".join(value).rstrip("\n") if value is not None else ""
        if not joined:
            raise ExportFormatError(f"secret {name!r} has no value", line=name_line)
        secrets[name] = joined
        register_secret(joined)
        name, value = None, None

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.rstrip("\r")

        m = _SECRET_LINE.match(line)
        if m:
            flush()
            candidate = m.group(1)
            if not validate_secret_name(candidate):
                raise ExportFormatError(f"invalid secret name {candidate!r}", line=lineno)
            if candidate in secrets:
                raise ExportFormatError(f"duplicate secret {candidate!r}", line=lineno)
            name, name_line, value = candidate, lineno, None
            continue

        if line.strip() == "---":
            flush()
            continue

        m = _VALUE_LINE.match(line)
        if m and value is None:
            if name is None:
                raise ExportFormatError("value without a preceding 'secret:' line", line=lineno)
            value = [m.group(1)]
            continue

        if value is not None:
            value.append(line)
            continue

        if not line.strip() or line.lstrip().startswith("#"):
            continue

        if name is not None:
            raise ExportFormatError(f"expected 'value:' for secret {name!r}", line=lineno)
        raise ExportFormatError("unexpected content outside an entry", line=lineno)

    flush()
    return secrets


def load_bundle(path: str | Path) -> Dict[str, str]:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Secrets bundle not found: {path}")
    bundle = parse_bundle(path.read_text())
    log.info("Loaded %d secret(s) from %s", len(bundle), path)
    return bundle


def encode_bundle(path: str | Path) -> str:
    """Validate the bundle, then return the whole file base64-encoded."""
    path = Path(path)
    load_bundle(path)
    return base64.b64encode(path.read_bytes()).decode("ascii")


def publish_bundle(client, repo: str, path: str | Path, *, secret_name: str = "PROPAGATE_SECRETS") -> None:
    """Store the encoded bundle as a secret of the source repository."""
    encoded = encode_bundle(path)
    register_secret(encoded)
    client.put_secret(repo, secret_name, encoded)
    log.info("Set %s in %s", secret_name, repo)
