from __future__ import annotations

import json
import logging
import time
import urllib.parse
from collections.abc import Iterator
from typing import Any

import requests

from makoreport.errors import ObjectNotFoundError, ObjectStoreError

logger = logging.getLogger(__name__)

_RETRYABLE_HTTP = {429, 500, 502, 503, 504}
_DIRECTORY_CONTENT_TYPE = "application/json; type=directory"
_LISTING_PAGE_SIZE = 1000


class MantaObjectStore:
    """Client for the Manta object store HTTP API.

    This client does not sign requests.  Signing is the caller's job: pass an
    ``auth`` object (any ``requests`` auth callable, typically built from
    ``key_id``) and it is installed on the session.  Without one, requests go
    out unsigned, which only suits endpoints that accept anonymous access or a
    signing proxy.  ``user`` expands ``~~`` paths; ``key_id`` is only recorded
    for such auth objects.
    """

    def __init__(
        self,
        url: str,
        user: str,
        key_id: str,
        *,
        timeout: float = 60,
        max_retries: int = 3,
        backoff_s: float = 0.5,
        auth: Any | None = None,
        session: Any | None = None,
    ):
        if not url:
            raise ValueError("Manta URL is required.")
        self.url = url.rstrip("/")
        self.user = user
        self.key_id = key_id
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff_s = backoff_s
        self.session = session if session is not None else requests.Session()
        if auth is not None:
            self.session.auth = auth

    def _expand(self, path: str) -> str:
        if path.startswith("~~"):
            return f"/{self.user}{path[2:]}"
        return path

    def _url(self, path: str) -> str:
        quoted = urllib.parse.quote(self._expand(path), safe="/~")
        return f"{self.url}/{quoted.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        url = self._url(path)
        request_headers = {"User-Agent": "makoreport/0.1"}
        if headers:
            request_headers.update(headers)

        for attempt in range(self.max_retries):
            try:
                resp = self.session.request(
                    method, url, headers=request_headers, timeout=self.timeout, **kwargs
                )
            except requests.RequestException as exc:
                if attempt >= self.max_retries - 1:
                    raise ObjectStoreError(f"Manta {method} {path} failed: {exc}") from exc
                time.sleep(self.backoff_s * (2**attempt))
                continue

            if resp.status_code in _RETRYABLE_HTTP and attempt < self.max_retries - 1:
                logger.debug("Retrying %s %s after HTTP %d", method, path, resp.status_code)
                resp.close()
                time.sleep(self.backoff_s * (2**attempt))
                continue

            if resp.status_code == 404:
                resp.close()
                raise ObjectNotFoundError(path)

            try:
                resp.raise_for_status()
            except requests.HTTPError as exc:
                raise ObjectStoreError(
                    f"Manta API error {resp.status_code} for {method} {path}: {resp.text}"
                ) from exc
            return resp

        raise ObjectStoreError(f"Manta {method} {path} failed after retries.")

    def _list_page(self, path: str, marker: str | None) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": _LISTING_PAGE_SIZE}
        if marker is not None:
            params["marker"] = marker
        resp = self._request(
            "GET",
            path,
            headers={"Accept": "application/x-json-stream"},
            params=params,
        )
        entries = []
        for raw in resp.text.splitlines():
            if not raw.strip():
                continue
            try:
                entries.append(json.loads(raw))
            except ValueError as exc:
                raise ObjectStoreError(f"Bad directory listing for {path}: {exc}") from exc
        return entries

    def list_objects(self, path: str) -> list[str]:
        names: list[str] = []
        marker: str | None = None
        while True:
            page = self._list_page(path, marker)
            # Pages after the first repeat the marker entry.
            if marker is not None and page and page[0].get("name") == marker:
                page = page[1:]
            if not page:
                break
            names.extend(entry["name"] for entry in page if entry.get("type") == "object")
            marker = page[-1]["name"]
            if len(page) < _LISTING_PAGE_SIZE - 1:
                break
        return names

    def get_bytes(self, path: str) -> bytes:
        return self._request("GET", path).content

    def iter_lines(self, path: str) -> Iterator[str]:
        resp = self._request("GET", path, stream=True)
        return self._iter_response(resp, path)

    def _iter_response(self, resp: requests.Response, path: str) -> Iterator[str]:
        try:
            for line in resp.iter_lines(decode_unicode=True):
                if isinstance(line, bytes):
                    line = line.decode("utf-8")
                yield line
        except (requests.RequestException, UnicodeDecodeError) as exc:
            raise ObjectStoreError(f"Stream of {path} interrupted: {exc}") from exc
        finally:
            resp.close()

    def info(self, path: str) -> dict[str, str]:
        resp = self._request("HEAD", path)
        return {key.lower(): value for key, value in resp.headers.items()}

    def mkdir(self, path: str) -> None:
        self._request("PUT", path, headers={"Content-Type": _DIRECTORY_CONTENT_TYPE})

    def put_bytes(self, path: str, data: bytes, *, content_type: str | None = None) -> None:
        self._request(
            "PUT",
            path,
            headers={"Content-Type": content_type or "application/octet-stream"},
            data=data,
        )
