"""Background poller that keeps a reservation snapshot fresh."""

import logging
import threading
from typing import Any, Callable, Dict, Optional

import httpx

from sync_client.client import FacilityApiClient, SyncClientError

logger = logging.getLogger(__name__)


def _fingerprint(snapshot: Optional[Dict[str, Any]]) -> tuple:
    """The parts of a snapshot a user would notice changing."""
    if snapshot is None:
        return ()
    available = tuple(facility['id'] for facility in snapshot.get('available', []))
    active = snapshot.get('active_reservation')
    return available, active['id'] if active else None


class PollingSync:
    """
    Re-fetch the available facilities and the active reservation every
    `interval` seconds so a client never shows stale availability for long.

    A failed poll is logged and the previous snapshot is kept.
    """

    def __init__(
        self,
        client: FacilityApiClient,
        interval: float = 5.0,
        category: Optional[str] = None,
        on_change: Optional[Callable[[Dict[str, Any]], None]] = None,
    ):
        self.client = client
        self.interval = interval
        self.category = category
        self.on_change = on_change

        self._snapshot = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread = None

    @property
    def snapshot(self) -> Optional[Dict[str, Any]]:
        """Most recent snapshot, or None before the first successful poll."""
        with self._lock:
            return self._snapshot

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def refresh_now(self) -> Optional[Dict[str, Any]]:
        """
        Poll once, immediately.

        Call after a reserve/release failure so the view is reconciled
        without waiting for the next tick.

        Returns:
            The current snapshot (the previous one if the poll failed)
        """
        try:
            snapshot = self.client.snapshot(self.category)
        except (httpx.HTTPError, SyncClientError) as e:
            logger.warning('Snapshot poll failed, keeping previous state: %s', e)
            return self.snapshot

        with self._lock:
            changed = _fingerprint(snapshot) != _fingerprint(self._snapshot)
            self._snapshot = snapshot

        if changed and self.on_change is not None:
            try:
                self.on_change(snapshot)
            except Exception:
                logger.exception('on_change callback failed')

        return snapshot

    def _run(self) -> None:
        logger.debug('Polling every %ss', self.interval)
        while not self._stop_event.is_set():
            self.refresh_now()
            self._stop_event.wait(self.interval)

    def start(self) -> None:
        """Start polling in a daemon thread (no-op if already running)."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name='facility-sync-poller', daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop polling and wait for the thread to exit."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc_info):
        self.stop()
