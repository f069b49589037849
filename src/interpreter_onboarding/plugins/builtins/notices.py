"""Built-in notice log plugin.

Collects ``notify`` messages per session so an embedding UI can render
them as toasts, and logs every lifecycle event through structlog.

Queues are bounded: each session keeps its latest
:data:`MAX_NOTICES_PER_SESSION` notices, at most :data:`MAX_TRACKED_SESSIONS`
sessions are tracked (least recently notified evicted first), and a
submission discards whatever the session had not drained yet.
"""

from __future__ import annotations

from collections import OrderedDict, deque
from typing import Any

import pluggy
import structlog

hookimpl = pluggy.HookimplMarker("interpreter_onboarding")

log = structlog.get_logger("interpreter_onboarding.events")

MAX_NOTICES_PER_SESSION = 20
MAX_TRACKED_SESSIONS = 256


class NoticeLogPlugin:
    """Keeps user-facing notices and traces lifecycle events."""

    def __init__(self) -> None:
        self._notices: OrderedDict[str, deque[dict[str, str]]] = OrderedDict()

    def drain(self, session_id: str) -> list[dict[str, str]]:
        """Return and forget the notices queued for *session_id*."""
        return list(self._notices.pop(session_id, ()))

    def peek(self, session_id: str) -> list[dict[str, str]]:
        return list(self._notices.get(session_id, ()))

    def _queue(self, session_id: str) -> deque[dict[str, str]]:
        queue = self._notices.get(session_id)
        if queue is None:
            queue = self._notices[session_id] = deque(maxlen=MAX_NOTICES_PER_SESSION)
            while len(self._notices) > MAX_TRACKED_SESSIONS:
                self._notices.popitem(last=False)
        else:
            self._notices.move_to_end(session_id)
        return queue

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------

    @hookimpl
    def notify(self, session_id: str, level: str, message: str) -> None:
        self._queue(session_id).append({"level": level, "message": message})
        log.info("notice", session_id=session_id, level=level, message=message)

    @hookimpl
    def post_session_start(self, session_id: str, mode: str) -> None:
        log.debug("session.start", session_id=session_id, mode=mode)

    @hookimpl
    def post_step_change(
        self,
        session_id: str,
        from_step: int,
        to_step: int,
        editing_from_review: bool,
    ) -> None:
        log.debug(
            "step.change",
            session_id=session_id,
            from_step=from_step,
            to_step=to_step,
            editing_from_review=editing_from_review,
        )

    @hookimpl
    def post_service_selected(
        self,
        session_id: str,
        service_type_id: str,
        service_code: str,
        rate_type: str,
    ) -> None:
        log.debug(
            "service.selected",
            session_id=session_id,
            service_type_id=service_type_id,
            service_code=service_code,
            rate_type=rate_type,
        )

    @hookimpl
    def post_submit(
        self,
        session_id: str,
        kind: str,
        mode: str,
        response: dict[str, Any],
    ) -> None:
        self._notices.pop(session_id, None)
        log.info("submission.accepted", session_id=session_id, kind=kind, mode=mode)
