# live_preview.py
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from config import Config
from invoice_document import InvoiceDocument

_LOGGER = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = Config.PREVIEW_DEBOUNCE_MS

Rebuild = Callable[[Any], InvoiceDocument]
OnUpdate = Callable[[InvoiceDocument, Optional[str]], None]


@dataclass(frozen=True)
class InputEvent:
    snapshot: Any
    at: float


@dataclass(frozen=True)
class PreviewState:
    document: Optional[InvoiceDocument]
    is_updating: bool
    last_updated: Optional[datetime]
    update_count: int
    template_id: Optional[str]


class LivePreviewCoordinator:
    """
    Debounces form edits into preview rebuilds.

    push() records every edit immediately. Once no edit has arrived for the
    quiet window, poll() rebuilds once from the newest snapshot; older
    snapshots in the same window are dropped. Without an event loop the owner
    calls poll(); with one, a call_later timer does it.
    """

    def __init__(
        self,
        rebuild: Rebuild,
        *,
        on_update: OnUpdate | None = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        template_id: str | None = None,
        enabled: bool = True,
    ):
        self._rebuild = rebuild
        self._on_update = on_update
        self._window = max(0, debounce_ms) / 1000.0
        self._clock = clock
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._loop = loop
        self._timer: asyncio.TimerHandle | None = None

        self._events: deque[InputEvent] = deque()
        self._pending: InputEvent | None = None
        self._enabled = enabled
        self._closed = False

        self.template_id = template_id
        self.document: InvoiceDocument | None = None
        self.is_updating = False
        self.last_updated: datetime | None = None
        self.update_count = 0
        self.discarded_count = 0

    def __enter__(self) -> "LivePreviewCoordinator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def has_pending(self) -> bool:
        return bool(self._events) or self._pending is not None

    @property
    def state(self) -> PreviewState:
        return PreviewState(
            document=self.document,
            is_updating=self.is_updating,
            last_updated=self.last_updated,
            update_count=self.update_count,
            template_id=self.template_id,
        )

    # -----------------------------
    # Input
    # -----------------------------
    def push(self, snapshot: Any) -> None:
        if self._closed or not self._enabled:
            _LOGGER.debug("Ignoring preview input (closed=%s, enabled=%s)", self._closed, self._enabled)
            return
        self._events.append(InputEvent(snapshot, self._clock()))
        self.is_updating = True
        if self._loop is not None:
            self._schedule()

    def poll(self) -> bool:
        """Rebuild if the quiet window has passed. Returns True when a rebuild ran."""
        self._drain()
        if self._pending is None:
            return False
        if self._clock() - self._pending.at < self._window:
            return False
        event, self._pending = self._pending, None
        self._cancel_timer()
        self._run(event.snapshot)
        return True

    def update_now(self, snapshot: Any) -> None:
        """Rebuild immediately, dropping anything still waiting."""
        if self._closed or not self._enabled:
            return
        self._clear_pending()
        self.is_updating = True
        self._run(snapshot)

    def refresh(self) -> None:
        """Re-emit the current document (e.g. after switch_template)."""
        if self._closed or self.document is None:
            return
        self.last_updated = self._now()
        self.update_count += 1
        self._emit(self.document)

    # -----------------------------
    # Mode changes / teardown
    # -----------------------------
    def switch_template(self, template_id: str | None) -> None:
        self._clear_pending()
        self.is_updating = False
        self.template_id = template_id

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = bool(enabled)
        if not self._enabled:
            self.reset()

    def reset(self) -> None:
        """Drop pending work and the current document. update_count keeps counting."""
        self._clear_pending()
        self.document = None
        self.is_updating = False
        self.last_updated = None

    def close(self) -> None:
        self._clear_pending()
        self.is_updating = False
        self._closed = True

    # -----------------------------
    # Internals
    # -----------------------------
    def _drain(self) -> None:
        while self._events:
            event = self._events.popleft()
            if self._pending is not None:
                self.discarded_count += 1
            self._pending = event

    def _clear_pending(self) -> None:
        self._drain()
        self._pending = None
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule(self) -> None:
        self._cancel_timer()
        self._timer = self._loop.call_later(self._window, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if not self.poll() and self.has_pending:
            # clock drift between loop time and self._clock
            self._schedule()

    def _run(self, snapshot: Any) -> None:
        try:
            document = self._rebuild(snapshot)
        except Exception:
            _LOGGER.exception("Preview rebuild failed; keeping previous document")
            self.is_updating = False
            return
        self.document = document
        self.is_updating = False
        self.last_updated = self._now()
        self.update_count += 1
        self._emit(document)

    def _emit(self, document: InvoiceDocument) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(document, self.template_id)
        except Exception:
            _LOGGER.exception("Preview update callback failed")
