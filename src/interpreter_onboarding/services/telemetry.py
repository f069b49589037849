"""Operation timing for wizard and profile service calls.

Off by default. :class:`~interpreter_onboarding.app.OnboardingApp` turns it
on for verbose runs. While on, every ``@traced`` call records an
:class:`OperationTrace`: how long the call took, which external waits it
made (reference data, geocoder, backend) and the wizard facts it touched,
such as the session, the step before and after, the service code or the
geocoder's line-2 retry. The trace lands in ``ServiceResult.meta["telemetry"]``
and is logged as one ``wizard.op`` event.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

import structlog

from interpreter_onboarding.services.result import ServiceResult
from interpreter_onboarding.services.session import WizardSession

log = structlog.get_logger("interpreter_onboarding.telemetry")

_telemetry_enabled: ContextVar[bool] = ContextVar("_telemetry_enabled", default=False)
_active_operation: ContextVar[OperationTrace | None] = ContextVar("_active_operation", default=None)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


@dataclass
class Wait:
    """One external call made while an operation ran."""

    name: str
    facts: dict[str, Any] = field(default_factory=dict)
    started: float = field(default_factory=time.perf_counter, repr=False)
    duration_ms: float = 0.0

    def note(self, key: str, value: Any) -> None:
        self.facts[key] = value

    def finish(self) -> None:
        self.duration_ms = _elapsed_ms(self.started)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "duration_ms": self.duration_ms}
        if self.facts:
            data["facts"] = dict(self.facts)
        return data


@dataclass
class OperationTrace(Wait):
    """A traced service call, its wizard facts and its waits."""

    waits: list[Wait] = field(default_factory=list)

    @property
    def waiting_ms(self) -> float:
        return round(sum(w.duration_ms for w in self.waits), 2)

    def record_session(self, session: WizardSession, *, key: str) -> None:
        self.facts.setdefault("session_id", session.session_id)
        self.facts.setdefault("mode", str(session.mode))
        self.facts[key] = int(session.state.current_step)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["waiting_ms"] = self.waiting_ms
        data["waits"] = [w.to_dict() for w in self.waits]
        return data


@contextmanager
def waiting_on(name: str, **facts: Any) -> Generator[Wait | None]:
    """Time an external call made by the operation being traced.

    Yields None when telemetry is off or no operation is being traced.
    """
    operation = _active_operation.get() if _telemetry_enabled.get() else None
    if operation is None:
        yield None
        return
    wait = Wait(name=name, facts=dict(facts))
    operation.waits.append(wait)
    try:
        yield wait
    finally:
        wait.finish()


def note(key: str, value: Any) -> None:
    """Attach a wizard fact to the operation being traced, if any."""
    operation = _active_operation.get()
    if operation is not None:
        operation.note(key, value)


def _session_of(args: tuple[Any, ...], kwargs: dict[str, Any]) -> WizardSession | None:
    candidate = kwargs.get("session", args[1] if len(args) > 1 else None)
    return candidate if isinstance(candidate, WizardSession) else None


def _finish(operation: OperationTrace, result: ServiceResult, session: WizardSession | None) -> ServiceResult:
    if session is None and result.ok and isinstance(result.data.get("session"), WizardSession):
        session = result.data["session"]
    if session is not None:
        operation.record_session(session, key="step_after")
    if result.error is not None:
        operation.note("error_code", result.error.code)
    meta = {**(result.meta or {}), "telemetry": operation.to_dict()}
    return result.model_copy(update={"meta": meta})


def _log_operation(operation: OperationTrace, *, ok: bool) -> None:
    log.debug(
        "wizard.op",
        op=operation.name,
        ok=ok,
        duration_ms=operation.duration_ms,
        waiting_ms=operation.waiting_ms,
        waits=[w.name for w in operation.waits],
        **operation.facts,
    )


_P = ParamSpec("_P")
_R = TypeVar("_R")


def traced(func: Callable[_P, _R]) -> Callable[_P, _R]:  # noqa: UP047
    """Record an :class:`OperationTrace` for a service method.

    A ``WizardSession`` passed as the first argument (or returned by a
    ``start_*`` call) supplies the session facts. Costs one ContextVar
    read when telemetry is off.
    """

    @functools.wraps(func)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        if not _telemetry_enabled.get():
            return func(*args, **kwargs)

        session = _session_of(args, kwargs)
        operation = OperationTrace(name=func.__qualname__)
        if session is not None:
            operation.record_session(session, key="step_before")
        token = _active_operation.set(operation)
        try:
            result = func(*args, **kwargs)
        except Exception:
            operation.finish()
            _log_operation(operation, ok=False)
            raise
        finally:
            _active_operation.reset(token)

        operation.finish()
        if isinstance(result, ServiceResult):
            result = _finish(operation, result, session)  # type: ignore[assignment]
            _log_operation(operation, ok=result.ok)  # type: ignore[attr-defined]
        else:
            _log_operation(operation, ok=True)
        return result

    return wrapper


def enable_telemetry(enabled: bool = True) -> None:
    """Switch operation tracing on (or off) for the current context."""
    _telemetry_enabled.set(enabled)
