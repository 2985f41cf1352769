"""Client-side sync rounds and their triggers."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from budgetsync.config import SyncConfig
from budgetsync.exceptions import TransportError
from budgetsync.models import SyncRequest, SyncResult
from budgetsync.persistence import RecordStore
from budgetsync.schema import (
    META_LAST_SYNC_AT,
    STATUS_IDLE,
    STATUS_OFFLINE,
    STATUS_SYNCED,
    STATUS_SYNCING,
)
from budgetsync.tracker import ChangeTracker
from budgetsync.transport import Transport

logger = logging.getLogger(__name__)

StatusListener = Callable[[str], None]


class SyncClient:
    """Push dirty records, pull changes and keep the local cursor.

    At most one round runs at a time. A request made while a round is in
    flight is dropped rather than queued; the interval trigger picks up
    anything left dirty.

    Status moves ``idle -> syncing -> synced | offline``; listeners receive
    every broadcast status.
    """

    def __init__(
        self,
        store: RecordStore,
        transport: Transport,
        config: SyncConfig | None = None,
    ) -> None:
        self.store = store
        self.transport = transport
        self.config = config or SyncConfig()
        self.tracker = ChangeTracker(store)
        self.status = STATUS_IDLE
        self._round_lock = threading.Lock()
        self._listeners: list[StatusListener] = []
        self._listeners_lock = threading.Lock()
        self._timer_lock = threading.Lock()
        self._debounce_timer: threading.Timer | None = None
        self._stop_event = threading.Event()
        self._interval_thread: threading.Thread | None = None

    @property
    def in_flight(self) -> bool:
        return self._round_lock.locked()

    @property
    def state(self) -> str:
        """Round state: syncing while a round runs, idle otherwise."""
        return STATUS_SYNCING if self.in_flight else STATUS_IDLE

    @property
    def last_sync_at(self) -> int:
        return int(self.store.get_meta(META_LAST_SYNC_AT) or 0)

    def on_status(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener and return a callable that removes it."""
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def sync(self) -> str | None:
        """Run one round on the calling thread.

        Returns the resulting status, or None when a round was already in
        flight and this request was coalesced into it.
        """
        if not self._round_lock.acquire(blocking=False):
            logger.debug("Sync round already in flight, request coalesced")
            return None
        try:
            return self._run_round()
        finally:
            self._round_lock.release()

    def _run_round(self) -> str:
        self._set_status(STATUS_SYNCING)
        last_sync_at = self.last_sync_at
        request = SyncRequest(
            last_sync_at=last_sync_at,
            batches=self.tracker.build_batches(),
        )
        pushed = sum(len(records) for records in request.batches.values())
        logger.info("Sync round started: pushing %d records, cursor=%d", pushed, last_sync_at)

        try:
            payload = self.transport.send(request.to_payload())
            result = SyncResult.from_payload(payload)
            kept_local = self._apply(result)
        except TransportError as exc:
            logger.warning("Sync round failed, staying offline: %s", exc)
            self._set_status(STATUS_OFFLINE)
            return STATUS_OFFLINE
        except ValueError as exc:
            logger.warning("Sync response rejected, staying offline: %s", exc)
            self._set_status(STATUS_OFFLINE)
            return STATUS_OFFLINE
        except Exception:
            logger.exception("Sync round crashed, staying offline")
            self._set_status(STATUS_OFFLINE)
            return STATUS_OFFLINE

        logger.info(
            "Sync round finished: received %d records, kept %d newer local edits, cursor=%d",
            result.record_count,
            kept_local,
            result.synced_at,
        )
        self._set_status(STATUS_SYNCED)
        return STATUS_SYNCED

    def _apply(self, result: SyncResult) -> int:
        """Store the server copies as clean and advance the cursor.

        Returns how many newer local edits were kept over their server copy.
        """
        kept_local = 0
        for collection, records in result.changed.items():
            for record in records:
                if not self.store.put_clean(collection, record):
                    kept_local += 1
        self.store.set_meta(META_LAST_SYNC_AT, result.synced_at)
        return kept_local

    def request_sync(self, reason: str = "manual") -> threading.Thread | None:
        """Start a round in the background without waiting for it."""
        if self.in_flight:
            logger.debug("Sync requested (%s) while in flight, coalesced", reason)
            return None
        thread = threading.Thread(
            target=self._run_triggered,
            args=(reason,),
            name=f"budgetsync-{reason}",
            daemon=True,
        )
        thread.start()
        return thread

    def request_sync_after_mutation(self) -> None:
        """Schedule a round shortly after the last of a burst of mutations."""
        with self._timer_lock:
            if self._debounce_timer is not None:
                self._debounce_timer.cancel()
            timer = threading.Timer(
                self.config.debounce_seconds,
                self._run_triggered,
                args=("mutation",),
            )
            timer.daemon = True
            self._debounce_timer = timer
            timer.start()

    def notify_online(self) -> threading.Thread | None:
        """Connectivity came back: sync immediately."""
        return self.request_sync("online")

    def start(self) -> None:
        """Run the startup round and begin the interval trigger."""
        self._stop_event.clear()
        self.request_sync("startup")
        if self._interval_thread is None or not self._interval_thread.is_alive():
            self._interval_thread = threading.Thread(
                target=self._interval_loop,
                name="budgetsync-interval",
                daemon=True,
            )
            self._interval_thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop the interval trigger and drop any pending debounced round."""
        self._stop_event.set()
        with self._timer_lock:
            if self._debounce_timer is not None:
                self._debounce_timer.cancel()
                self._debounce_timer = None
        if self._interval_thread is not None:
            self._interval_thread.join(timeout)
            self._interval_thread = None
        self.wait_idle(timeout)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no round is in flight. Returns False on timeout."""
        acquired = self._round_lock.acquire(timeout=-1 if timeout is None else timeout)
        if acquired:
            self._round_lock.release()
        return acquired

    def _interval_loop(self) -> None:
        while not self._stop_event.wait(self.config.interval_seconds):
            if self.tracker.has_pending():
                self.request_sync("interval")

    def _run_triggered(self, reason: str) -> None:
        logger.debug("Sync triggered by %s", reason)
        self.sync()

    def _set_status(self, status: str) -> None:
        self.status = status
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(status)
