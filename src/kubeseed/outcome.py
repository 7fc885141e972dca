# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from enum import Enum


class Outcome(str, Enum):
    """Tri-state result returned by every entry point."""

    SUCCESS = "success"
    DEGRADED = "degraded"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        return {Outcome.SUCCESS: 0, Outcome.DEGRADED: 2, Outcome.FAILED: 1}[self]
