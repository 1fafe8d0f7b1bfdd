"""Best-effort replication of the dataset to a remote JSON document.

The endpoint serves the whole dataset on ``GET`` and replaces it with the
request body on ``POST``, answering ``{"status": "success"}`` or
``{"status": "error", "message": ...}``. Replication is last-write-wins:

- ``pull`` overwrites the local store with the remote document, no merge.
- ``push`` uploads on a background worker. Failures are logged and handed
  to the error sink, never raised to the code that saved the dataset.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

import httpx
from loguru import logger

import fidelis.backends.base as base
import fidelis.errors as errors
import fidelis.models as models
import fidelis.store as store_mod

ErrorSink = Callable[[errors.SyncFailureError], None]


def log_sync_error(error: errors.SyncFailureError) -> None:
    """Default error sink: log the failure and move on."""
    logger.warning(f"Cloud upload failed ({error.url}): {error.cause}")


@dataclass(frozen=True)
class PushOutcome:
    url: str
    error: errors.SyncFailureError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PushTask:
    """Handle on an in-flight upload. The upload itself never raises."""

    def __init__(self, future: Future) -> None:
        self._future = future

    @property
    def done(self) -> bool:
        return self._future.done()

    def wait(self, timeout: float | None = None) -> PushOutcome:
        """Block until the upload finishes and return its outcome."""
        return self._future.result(timeout=timeout)


class SyncManager:
    """Pull/push the dataset to the configured endpoint.

    The endpoint URL is stored in the key-value driver, apart from the
    dataset. Until one is stored, ``default_url`` (from fidelis.yaml) is
    used; a stored empty string disables sync.
    """

    def __init__(
        self,
        driver: base.BaseKeyValueStore,
        store: store_mod.LocalStore,
        default_url: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
        error_sink: ErrorSink | None = None,
    ) -> None:
        self.driver = driver
        self.store = store
        self.default_url = default_url
        self.error_sink = error_sink or log_sync_error
        self._client = httpx.Client(
            timeout=timeout_seconds,
            transport=transport,
            follow_redirects=True,
        )
        self._executor: ThreadPoolExecutor | None = None
        self._pending: list[Future] = []
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Endpoint configuration
    # -------------------------------------------------------------------------

    def get_sync_url(self) -> str:
        """Return the active endpoint URL, or "" when sync is disabled."""
        stored = self.driver.get(store_mod.SYNC_URL_KEY)
        if stored is None:
            return self.default_url or ""
        return stored

    def set_sync_url(self, url: str) -> None:
        """Persist the endpoint URL. An empty string disables sync.

        Raises:
            SyncFailureError: If ``url`` is not a valid http(s) URL.
        """
        url = url.strip()
        if url:
            _check_url(url)
        self.driver.set(store_mod.SYNC_URL_KEY, url)

    @property
    def enabled(self) -> bool:
        return bool(self.get_sync_url())

    # -------------------------------------------------------------------------
    # Pull
    # -------------------------------------------------------------------------

    def pull(self) -> bool:
        """Fetch the remote dataset and overwrite the local store with it.

        Returns:
            True if the local store was replaced; False if sync is disabled
            or the remote document does not have the dataset shape (the
            local store is left untouched).

        Raises:
            SyncFailureError: On network errors, non-2xx responses, or a
                body that is not JSON.
        """
        url = self.get_sync_url()
        if not url:
            return False

        try:
            response = self._client.get(url)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise errors.SyncFailureError(url, str(e) or type(e).__name__) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise errors.SyncFailureError(url, "Endpoint did not return JSON") from e

        try:
            dataset = models.Dataset.from_payload(payload, context=f"Pulling from '{url}'")
        except errors.InvalidFormatError as e:
            logger.warning(f"Ignoring remote document from {url}: {e.cause}")
            return False

        self.store.replace(dataset)
        logger.info(
            f"Pulled dataset from {url} ({len(dataset.customers)} customers, "
            f"{len(dataset.cards)} cards, {len(dataset.transactions)} transactions)"
        )
        return True

    # -------------------------------------------------------------------------
    # Push
    # -------------------------------------------------------------------------

    def push(self, dataset: models.Dataset) -> PushTask | None:
        """Upload ``dataset`` in the background.

        The body is serialized before returning, so later changes to
        ``dataset`` are not uploaded by this task. Returns None when sync is
        disabled.
        """
        url = self.get_sync_url()
        if not url:
            return None

        body = dataset.to_json()
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="fidelis-sync")
            future = self._executor.submit(self._upload, url, body)
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
        future.add_done_callback(_log_unexpected)
        return PushTask(future)

    def wait(self, timeout: float | None = None) -> list[PushOutcome]:
        """Block until every pending upload has finished."""
        with self._lock:
            pending = list(self._pending)
            self._pending = []
        return [f.result(timeout=timeout) for f in pending]

    def close(self) -> None:
        """Drain pending uploads and release the worker and HTTP client."""
        self.wait()
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None
        self._client.close()

    def _upload(self, url: str, body: str) -> PushOutcome:
        try:
            self._post(url, body)
        except errors.SyncFailureError as e:
            self._report(e)
            return PushOutcome(url=url, error=e)
        logger.info(f"Uploaded dataset to {url}")
        return PushOutcome(url=url)

    def _post(self, url: str, body: str) -> None:
        try:
            response = self._client.post(
                url,
                content=body.encode("utf-8"),
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise errors.SyncFailureError(url, str(e) or type(e).__name__) from e

        try:
            reply = response.json()
        except ValueError:
            # Some deployments answer with an empty or HTML body; the
            # document was accepted.
            return
        if isinstance(reply, dict) and reply.get("status") == "error":
            message = reply.get("message") or "unknown error"
            raise errors.SyncFailureError(url, f"Endpoint rejected the upload: {message}")

    def _report(self, error: errors.SyncFailureError) -> None:
        try:
            self.error_sink(error)
        except Exception:
            logger.exception("Sync error sink failed")


def _log_unexpected(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.opt(exception=exc).error("Background upload crashed")


def _check_url(url: str) -> None:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise errors.SyncFailureError(url, f"Invalid URL: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise errors.SyncFailureError(url, "Invalid URL: expected an http(s) address")
