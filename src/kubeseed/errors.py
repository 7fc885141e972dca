# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/errors.py

from __future__ import annotations


class KubeseedError(RuntimeError):
    """Base class for kubeseed failures."""


class TransientUnavailable(KubeseedError):
    """A resource is not ready yet. Absorbed by the readiness waiter."""


class MissingCredential(KubeseedError):
    """No token or password is available where one is required."""


class PropagationTimeout(KubeseedError):
    """A secret never appeared in the target repository within the poll ceiling."""

    def __init__(self, message: str, *, unresolved: list[str], source_repo: str):
        super().__init__(message)
        self.unresolved = unresolved
        self.source_repo = source_repo


class DestructiveOperationRequested(KubeseedError):
    """Recreate of a stateful resource without explicit opt-in."""


class ResourceAlreadyExists(KubeseedError):
    """Raised under FAIL_IF_EXISTS when the resource is already present."""


class ExportFormatError(KubeseedError):
    """Malformed entry in a secrets export bundle."""

    def __init__(self, message: str, *, line: int):
        super().__init__(f"line {line}: {message}")
        self.line = line
