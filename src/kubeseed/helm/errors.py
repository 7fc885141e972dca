# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/helm/errors.py

from kubeseed.errors import KubeseedError


class HelmError(KubeseedError):
    """Base class for Helm-related failures."""
