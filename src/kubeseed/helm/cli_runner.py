# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/helm/cli_runner.py

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from typing import Any, List

import yaml

from .errors import HelmError

log = logging.getLogger("kubeseed")


class HelmCliRunner:
    """
    A pragmatic wrapper around the `helm` CLI.
    - Mirrors human CLI usage: 'repo add/update', 'upgrade --install', 'uninstall'.
    - Testable by mocking subprocess.run.
    """

    def __init__(
        self,
        kube_context: str | None = None,
        kubeconfig: str | None = None,
        env: dict[str, str] | None = None,
    ):
        self.kube_context = kube_context
        self.kubeconfig = kubeconfig
        self.env = env or {}

    # ------------------------- internal helpers -------------------------

    def _base(self) -> list[str]:
        cmd = ["helm"]
        if self.kube_context:
            cmd += ["--kube-context", self.kube_context]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        return cmd

    def _run(
        self,
        argv: List[str],
        allow_rc: set[int] | None = None,
    ) -> subprocess.CompletedProcess:
        allow_rc = allow_rc or {0}
        log.debug("[helm] %s", " ".join(argv[1:]))

        cp = subprocess.run(
            argv,
            check=False,
            text=True,
            capture_output=True,
            env={**os.environ, **self.env} if self.env else None,
        )

        if cp.returncode not in allow_rc:
            stderr = getattr(cp, "stderr", "") or ""
            raise HelmError(f"helm failed (rc={cp.returncode}) for {argv[1:4]!r}\n{stderr}")
        return cp

    # ------------------------- commands -------------------------

    def add_repo(self, name: str, url: str) -> None:
        self._run(self._base() + ["repo", "add", name, url, "--force-update"])

    def update_repos(self) -> None:
        self._run(self._base() + ["repo", "update"])

    def release_exists(self, name: str, namespace: str) -> bool:
        cp = self._run(self._base() + ["status", name, "-n", namespace], allow_rc={0, 1})
        return cp.returncode == 0

    def install_or_upgrade(
        self,
        name: str,
        chart: str,
        namespace: str,
        values: dict[str, Any] | None = None,
        *,
        version: str | None = None,
        create_namespace: bool = True,
        wait: bool = False,
        timeout_seconds: int = 300,
    ) -> None:
        argv = self._base() + ["upgrade", "--install", name, chart, "-n", namespace]
        if version:
            argv += ["--version", version]
        if create_namespace:
            argv += ["--create-namespace"]
        if wait:
            argv += ["--wait", "--timeout", f"{timeout_seconds}s"]

        values_path = None
        # inline values → temp file; values may carry passwords so keep them off argv
        if values:
            with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as tf:
                yaml.safe_dump(values, tf)
                values_path = tf.name
            argv += ["-f", values_path]

        try:
            self._run(argv)
        finally:
            if values_path:
                try:
                    os.unlink(values_path)
                except OSError:
                    log.debug("[helm] could not remove values file %s", values_path)

    def uninstall(self, name: str, namespace: str, *, ignore_missing: bool = True) -> None:
        argv = self._base() + ["uninstall", name, "-n", namespace]
        if ignore_missing:
            argv.append("--ignore-not-found")
        self._run(argv)
