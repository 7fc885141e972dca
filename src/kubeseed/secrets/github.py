# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/secrets/github.py

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Optional, Set

import requests
from nacl import encoding, public

from kubeseed.errors import KubeseedError
from kubeseed.secrets.tokens import validate_repo
from kubeseed.utils.retry import RetryError, retry

log = logging.getLogger("kubeseed")

ACCEPTED_DISPATCH = (201, 204)


class GitHubError(KubeseedError):
    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def seal(public_key_b64: str, value: str) -> str:
    """Encrypt ``value`` for a repository public key (libsodium sealed box)."""
    key = public.PublicKey(public_key_b64.encode("utf-8"), encoding.Base64Encoder())
    sealed = public.SealedBox(key).encrypt(value.encode("utf-8"))
    return base64.b64encode(sealed).decode("utf-8")


def _log_retry(attempt: int, exc: Exception) -> None:
    log.warning("[github] request failed (attempt %d): %s", attempt, exc)


class GitHubClient:
    """
    Minimal GitHub REST client for repository secrets and dispatch events.
    Secret values are only ever sent encrypted; names are the only thing
    read back.
    """

    def __init__(
        self,
        token: str,
        *,
        api_url: str = "https://api.github.com",
        session: Optional[requests.Session] = None,
        timeout: int = 30,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        })

    # ------------------------- transport -------------------------

    @retry(
        retries=3,
        delay=2,
        retry_on=(requests.ConnectionError, requests.Timeout),
        on_retry=_log_retry,
    )
    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        return self.session.request(method, url, timeout=self.timeout, **kwargs)

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.api_url}{path}"
        try:
            return self._send(method, url, **kwargs)
        except RetryError as e:
            raise GitHubError(f"{method} {path}: {e.__cause__ or e}") from e

    @staticmethod
    def _raise_for(resp: requests.Response, what: str) -> None:
        if resp.status_code == 401:
            hint = "token rejected; check GH_PAT / GITHUB_TOKEN"
        elif resp.status_code in (403, 404):
            hint = "token lacks access to the repository or the repository does not exist"
        else:
            hint = resp.text[:200]
        raise GitHubError(f"{what} failed (HTTP {resp.status_code}): {hint}", status_code=resp.status_code)

    # ------------------------- secrets -------------------------

    def list_secret_names(self, repo: str) -> Set[str]:
        validate_repo(repo)
        names: Set[str] = set()
        page = 1
        while True:
            resp = self._request(
                "GET",
                f"/repos/{repo}/actions/secrets",
                params={"per_page": 100, "page": page},
            )
            if resp.status_code != 200:
                self._raise_for(resp, f"list secrets of {repo}")
            data = resp.json()
            batch = [s["name"] for s in data.get("secrets", [])]
            names.update(batch)
            if not batch or len(names) >= data.get("total_count", 0):
                return names
            page += 1

    def get_public_key(self, repo: str) -> Dict[str, str]:
        resp = self._request("GET", f"/repos/{validate_repo(repo)}/actions/secrets/public-key")
        if resp.status_code != 200:
            self._raise_for(resp, f"public key of {repo}")
        return resp.json()

    def put_secret(self, repo: str, name: str, value: str) -> None:
        key = self.get_public_key(repo)
        resp = self._request(
            "PUT",
            f"/repos/{repo}/actions/secrets/{name}",
            json={"encrypted_value": seal(key["key"], value), "key_id": key["key_id"]},
        )
        if resp.status_code not in (201, 204):
            self._raise_for(resp, f"set secret {name} in {repo}")
        log.debug("[github] secret %s set in %s", name, repo)

    # ------------------------- dispatch -------------------------

    def dispatch(self, repo: str, event_type: str, client_payload: Dict[str, Any]) -> int:
        resp = self._request(
            "POST",
            f"/repos/{validate_repo(repo)}/dispatches",
            json={"event_type": event_type, "client_payload": client_payload},
        )
        if resp.status_code not in ACCEPTED_DISPATCH:
            self._raise_for(resp, f"dispatch {event_type} to {repo}")
        return resp.status_code
