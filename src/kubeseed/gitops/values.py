# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/gitops/values.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml

log = logging.getLogger("kubeseed")


def update_image_tag(
    values_file: str | Path,
    tag: str,
    repository: Optional[str] = None,
) -> bool:
    """
    Set ``image.tag`` (and ``image.repository`` when given) in a Helm
    values file. Returns True when the file content changed.
    """
    if not tag:
        raise ValueError("image tag is required")

    path = Path(values_file)
    if not path.is_file():
        raise FileNotFoundError(f"Values file not found: {path}")

    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a YAML mapping")

    image = data.get("image")
    if image is None:
        image = data["image"] = {}
    elif not isinstance(image, dict):
        raise ValueError(f"{path}: 'image' must be a mapping")

    before = (image.get("tag"), image.get("repository"))
    image["tag"] = str(tag)
    if repository:
        image["repository"] = repository
    after = (image.get("tag"), image.get("repository"))

    if before == after:
        log.info("%s already at image tag %s", path, tag)
        return False

    path.write_text(yaml.safe_dump(data, sort_keys=False, default_flow_style=False))
    log.info("Updated %s: image.tag=%s", path, tag)
    return True
