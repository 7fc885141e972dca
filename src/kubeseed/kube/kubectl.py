# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/kube/kubectl.py

from __future__ import annotations

import base64
import json
import logging
import subprocess
from typing import Any, Iterable

import yaml

from kubeseed.errors import KubeseedError

log = logging.getLogger("kubeseed")


class KubectlError(KubeseedError):
    pass


class KubectlRunner:
    """
    Thin wrapper around the local `kubectl` binary.
    Testable by mocking subprocess.run.
    """

    def __init__(
        self,
        *,
        kubeconfig: str | None = None,
        context: str | None = None,
        binary: str = "kubectl",
    ):
        self.kubeconfig = kubeconfig
        self.context = context
        self.binary = binary

    # ------------------------- internal helpers -------------------------

    def _base(self) -> list[str]:
        cmd = [self.binary]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        if self.context:
            cmd += ["--context", self.context]
        return cmd

    def _run(self, args: list[str], *, stdin: str | None = None) -> tuple[int, str, str]:
        """
        Run a kubectl command.

        Returns:
            (rc, stdout, stderr)
        """
        argv = self._base() + args
        log.debug("[kubectl] %s", " ".join(args))
        cp = subprocess.run(
            argv,
            input=stdin,
            text=True,
            capture_output=True,
            check=False,
        )
        return cp.returncode, cp.stdout or "", cp.stderr or ""

    def _check(self, args: list[str], *, stdin: str | None = None, what: str) -> str:
        rc, out, err = self._run(args, stdin=stdin)
        if rc != 0:
            raise KubectlError(f"kubectl {what} failed (rc={rc}): {(err or out).strip()}")
        return out

    @staticmethod
    def _ns(namespace: str | None) -> list[str]:
        return ["-n", namespace] if namespace else []

    # ------------------------- reads -------------------------

    def get_object(
        self,
        kind: str,
        name: str,
        namespace: str | None = None,
    ) -> dict | None:
        """kubectl get <kind> <name> -o json; None when not found."""
        rc, out, err = self._run(["get", kind.lower(), name, "-o", "json"] + self._ns(namespace))
        if rc != 0:
            if "NotFound" in err or "not found" in err:
                return None
            raise KubectlError(f"kubectl get {kind}/{name} failed: {err.strip()}")
        if not out.strip():
            return None
        return json.loads(out)

    def resource_exists(
        self,
        kind: str,
        name: str,
        namespace: str | None = None,
    ) -> bool:
        return self.get_object(kind, name, namespace) is not None

    def list_objects(
        self,
        kind: str,
        namespace: str | None = None,
        *,
        selector: str | None = None,
    ) -> list[dict]:
        args = ["get", kind.lower(), "-o", "json"] + self._ns(namespace)
        if selector:
            args += ["-l", selector]
        out = self._check(args, what=f"get {kind}")
        return json.loads(out or "{}").get("items", [])

    def secret_data(self, name: str, namespace: str) -> dict[str, str] | None:
        """Decoded data of a Secret, or None when the Secret is absent."""
        obj = self.get_object("secret", name, namespace)
        if obj is None:
            return None
        return {
            k: base64.b64decode(v).decode("utf-8", errors="replace")
            for k, v in (obj.get("data") or {}).items()
        }

    def first_pod(self, namespace: str, selector: str) -> str | None:
        pods = self.list_objects("pod", namespace, selector=selector)
        for p in pods:
            if p.get("status", {}).get("phase") == "Running":
                return p["metadata"]["name"]
        return None

    # ------------------------- writes -------------------------

    def apply_objects(self, objects: Iterable[dict[str, Any]]) -> None:
        objects = list(objects)
        if not objects:
            log.debug("[kubectl] apply skipped: no objects")
            return
        manifest = yaml.safe_dump_all(objects, sort_keys=False)
        self._check(["apply", "-f", "-"], stdin=manifest, what="apply")
        for obj in objects:
            log.debug(
                "[kubectl] applied %s/%s",
                obj.get("kind", "<unknown>"),
                obj.get("metadata", {}).get("name", "<unknown>"),
            )

    def apply_url(self, url: str, *, namespace: str | None = None) -> None:
        self._check(["apply", "-f", url] + self._ns(namespace), what=f"apply {url}")

    def create_namespace(self, name: str) -> None:
        if self.resource_exists("namespace", name):
            return
        self.apply_objects([{"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}}])

    def patch(
        self,
        kind: str,
        name: str,
        patch: dict,
        *,
        namespace: str | None = None,
        patch_type: str = "merge",
    ) -> None:
        self._check(
            ["patch", kind.lower(), name, "--type", patch_type, "-p", json.dumps(patch)]
            + self._ns(namespace),
            what=f"patch {kind}/{name}",
        )

    def delete(
        self,
        kind: str,
        name: str | None = None,
        *,
        namespace: str | None = None,
        selector: str | None = None,
        wait: bool = True,
    ) -> None:
        if not name and not selector:
            raise ValueError("delete needs a name or a selector")
        args = ["delete", kind.lower()]
        if name:
            args.append(name)
        if selector:
            args += ["-l", selector]
        args += self._ns(namespace) + ["--ignore-not-found"]
        if not wait:
            args.append("--wait=false")
        self._check(args, what=f"delete {kind}")

    # reads KEY=VALUE lines from stdin up to the first blank line, then execs the command
    _ENV_PRELUDE = 'while IFS= read -r kv && [ -n "$kv" ]; do export "$kv"; done; exec "$@"'

    def exec(
        self,
        namespace: str,
        pod: str,
        command: list[str],
        *,
        stdin: str | None = None,
        env: dict[str, str] | None = None,
    ) -> tuple[int, str, str]:
        """
        kubectl exec into ``pod``. ``env`` is passed through stdin ahead of
        the payload so values never show up in an argv.
        """
        if env:
            command = ["sh", "-c", self._ENV_PRELUDE, "sh"] + command
            prelude = "".join(f"{k}={v}\n" for k, v in env.items()) + "\n"
            stdin = prelude + (stdin or "")
        args = ["exec"]
        if stdin is not None:
            args.append("-i")
        args += ["-n", namespace, pod, "--"]
        return self._run(args + command, stdin=stdin)

    # ------------------------- readiness -------------------------

    def deployment_ready(self, name: str, namespace: str) -> bool:
        obj = self.get_object("deployment", name, namespace)
        if obj is None:
            return False
        desired = obj.get("spec", {}).get("replicas", 1)
        ready = obj.get("status", {}).get("readyReplicas", 0) or 0
        return ready >= 1 and ready == desired

    def statefulset_ready(self, name: str, namespace: str) -> bool:
        obj = self.get_object("statefulset", name, namespace)
        if obj is None:
            return False
        desired = obj.get("spec", {}).get("replicas", 1)
        ready = obj.get("status", {}).get("readyReplicas", 0) or 0
        return ready >= 1 and ready == desired
