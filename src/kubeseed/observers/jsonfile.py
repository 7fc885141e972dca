# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
import json
from pathlib import Path
from kubeseed.logging.masking import redact
from .interface import Observer
from .events import BaseEvent

class JsonFileObserver(Observer):
    """Appends one JSON line per event. Registered secrets are redacted from string fields."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def notify(self, event: BaseEvent) -> None:
        record = {
            k: redact(v) if isinstance(v, str) else v
            for k, v in event.dict().items()
        }
        with self.path.open("a") as f:
            json.dump({"type": event.__class__.__name__, **record}, f)
            f.write("\n")
