"""Dataset retrieval transports.

A retriever turns a locator string into a JSON-like value. Both transports do
their blocking work in a worker thread so the session's event loop only
suspends at retrieval boundaries.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol

import requests

from .config import AppConfig, RetrievalConfig
from .models import DecodeError, RetrievalError


_RETRYABLE_HTTP_STATUS = {429, 500, 502, 503, 504}

_LOGGER = logging.getLogger("popmap.retrieval")


class Retriever(Protocol):
    async def __call__(self, locator: str) -> Any: ...


class FileRetriever:
    """Read JSON datasets from a local data directory."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir

    def resolve(self, locator: str) -> Path:
        path = Path(locator)
        return path if path.is_absolute() and path.exists() else self.data_dir / locator.lstrip("/")

    async def __call__(self, locator: str) -> Any:
        return await asyncio.to_thread(self._read, self.resolve(locator))

    @staticmethod
    def _read(path: Path) -> Any:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise RetrievalError(f"Failed reading {path}: {exc}") from exc
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"Invalid JSON in {path}: {exc}") from exc


class HttpRetriever:
    """Fetch JSON datasets over HTTP with bounded retries.

    Fetches run in worker threads, so each thread gets its own session.
    """

    def __init__(
        self,
        base_url: str,
        cfg: RetrievalConfig,
        *,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.base_url = base_url
        self.cfg = cfg
        self._session_factory = session_factory
        self._local = threading.local()
        self._max_retries = max(int(cfg.max_retries), 0)
        self._retry_backoff_s = max(float(cfg.retry_backoff_s), 0.01)

    def resolve(self, locator: str) -> str:
        if locator.startswith(("http://", "https://")):
            return locator
        return f"{self.base_url.rstrip('/')}/{locator.lstrip('/')}"

    async def __call__(self, locator: str) -> Any:
        return await asyncio.to_thread(self._fetch_json, self.resolve(locator))

    def _fetch_json(self, url: str) -> Any:
        try:
            response = self._request_get(url)
        except requests.RequestException as exc:
            raise RetrievalError(f"Request for {url} failed: {exc}") from exc
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(f"Response from {url} is not valid JSON: {exc}") from exc

    def _request_get(self, url: str, *, params: Mapping[str, Any] | None = None) -> requests.Response:
        attempts = self._max_retries + 1
        for attempt in range(attempts):
            response = self._session().get(url, params=params, timeout=self.cfg.request_timeout_s)
            if response.status_code not in _RETRYABLE_HTTP_STATUS:
                response.raise_for_status()
                return response
            if attempt >= self._max_retries:
                response.raise_for_status()
            delay_s = self._compute_retry_delay_s(response=response, attempt=attempt)
            _LOGGER.warning(
                "Retryable response %s for %s; retrying in %.1fs (%d/%d)",
                response.status_code,
                response.url,
                delay_s,
                attempt + 1,
                self._max_retries,
            )
            response.close()
            time.sleep(delay_s)
        raise RuntimeError("Unreachable retry loop in HTTP retriever")

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            session.headers.update({"User-Agent": self.cfg.user_agent})
            self._local.session = session
        return session

    def _compute_retry_delay_s(self, *, response: requests.Response, attempt: int) -> float:
        retry_after_s = _parse_retry_after_seconds(response.headers.get("Retry-After"))
        exponential_s = self._retry_backoff_s * (2**attempt)
        return min(max(exponential_s, retry_after_s), 60.0)


def build_retriever(cfg: AppConfig) -> Retriever:
    if cfg.retrieval.base_url:
        _LOGGER.info("Using HTTP retrieval from %s", cfg.retrieval.base_url)
        return HttpRetriever(cfg.retrieval.base_url, cfg.retrieval)
    _LOGGER.info("Using local retrieval from %s", cfg.paths.data_dir)
    return FileRetriever(cfg.paths.data_dir)


def _parse_retry_after_seconds(raw: str | None) -> float:
    if raw is None:
        return 0.0
    value = raw.strip()
    if not value:
        return 0.0
    try:
        parsed = float(value)
    except ValueError:
        return 0.0
    return max(parsed, 0.0)
