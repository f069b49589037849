"""WizardService — drives a :class:`WizardSession` through the steps.

Pipeline for every step submission: MERGE → VALIDATE → COMMIT → TRANSITION
→ DISPATCH. Output is merged into a copy of the draft; the session only
sees the copy once validation passes, so a refused step leaves both the
draft and the navigation state untouched.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from interpreter_onboarding.domain.draft import (
    Draft,
    PersonalInfo,
    draft_from_imported,
    draft_from_submission,
    submission_from_profile,
)
from interpreter_onboarding.domain.rates import (
    CustomRate,
    ServiceSelection,
    apply_language_override,
    compute_effective_rate,
    ensure_selectable,
    platform_selection,
    reprice_for_languages,
)
from interpreter_onboarding.domain.reference import ReferenceData
from interpreter_onboarding.domain.rejections import (
    RejectionSet,
    decorate,
    steps_requiring_reentry,
    summarize,
)
from interpreter_onboarding.domain.types import RateType, RateUnit, RegistrationType
from interpreter_onboarding.domain.validation import validate_draft, validate_step
from interpreter_onboarding.domain.wizard import (
    Advance,
    EditFrom,
    JumpTo,
    Retreat,
    WizardEvent,
    WizardMode,
    WizardState,
    WizardStep,
    transition,
)
from interpreter_onboarding.errors import (
    NavigationError,
    OnboardingError,
    ReferenceDataUnavailable,
    SessionClosed,
    ValidationError,
)
from interpreter_onboarding.services import _helpers
from interpreter_onboarding.services.base import BaseService
from interpreter_onboarding.services.contracts import (
    AddressData,
    SelectionData,
    StepStateData,
    SubmissionResultData,
    dump_validated,
)
from interpreter_onboarding.services.result import ServiceError, ServiceResult
from interpreter_onboarding.services.session import SERVICE_RATES_NOTICE, WizardSession
from interpreter_onboarding.services.submission import assemble, to_json, to_multipart
from interpreter_onboarding.services.telemetry import note, traced, waiting_on

SUBMIT_MESSAGES: dict[str, str] = {
    "create": (
        "Interpreter application submitted successfully! "
        "We will review your profile and contact you soon."
    ),
    "update": "Profile update submitted! You will be notified once it is reviewed.",
    "completion": (
        "Profile completed successfully! Your profile is now under review. "
        "You will receive an email once approved with instructions to set up your password."
    ),
}


class WizardService(BaseService):
    """Starts wizard sessions and applies every user action to them.

    Parameters:
        gateway: Backend client, geocoder and plugins.
        clock: Returns "today" for date rules (expiry, minimum age).
    """

    def __init__(self, gateway: Any, *, clock: Callable[[], date] = _helpers.today) -> None:
        super().__init__(gateway)
        self._clock = clock

    # ------------------------------------------------------------------
    # Session start
    # ------------------------------------------------------------------

    @traced
    def start_fresh(
        self, registration_type: RegistrationType | str = RegistrationType.INDIVIDUAL
    ) -> ServiceResult:
        """Open a new application for an individual or an agency."""
        op = "start_fresh"
        try:
            reference = self._load_reference()
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)
        is_agency = RegistrationType(registration_type) is RegistrationType.AGENCY
        draft = Draft(personal=PersonalInfo(is_agency=is_agency))
        return self._open(op, WizardMode.FRESH, draft, reference)

    @traced
    def start_resubmission(self, token: str) -> ServiceResult:
        """Reopen a rejected application with the rejected fields flagged."""
        op = "start_resubmission"
        try:
            reference = self._load_reference()
            rejection = self._gateway.api.get_rejection(token)
            draft = draft_from_submission(rejection.get("original_submission_data") or {})
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)
        except PydanticValidationError as exc:
            return _malformed(op, "original submission", exc)

        rejections = RejectionSet.of(
            rejection.get("rejected_fields"), note=rejection.get("rejection_note") or None
        )
        return self._open(
            op,
            WizardMode.RESUBMISSION,
            draft,
            reference,
            rejections=rejections,
            rejection_token=token,
            notice="Application loaded! Please update the highlighted fields.",
        )

    @traced
    def start_edit_existing(self) -> ServiceResult:
        """Edit the approved profile; changes are queued for admin review."""
        op = "start_edit_existing"
        try:
            reference = self._load_reference()
            profile = self._gateway.api.get_profile()
            draft = draft_from_submission(submission_from_profile(profile))
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)
        except PydanticValidationError as exc:
            return _malformed(op, "profile", exc)
        return self._open(op, WizardMode.EDIT_EXISTING, draft, reference)

    @traced
    def start_completion(self, token: str) -> ServiceResult:
        """Let an imported interpreter complete their profile."""
        op = "start_completion"
        try:
            reference = self._load_reference()
            imported = self._gateway.api.validate_completion_token(token)
            draft = draft_from_imported(imported)
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)
        except PydanticValidationError as exc:
            return _malformed(op, "imported profile", exc)
        return self._open(
            op,
            WizardMode.COMPLETION,
            draft,
            reference,
            completion_token=token,
            notice="Welcome! Please complete your profile information below.",
        )

    def _load_reference(self) -> ReferenceData:
        with waiting_on("load_reference") as wait:
            try:
                payload = self._gateway.api.get_reference_data()
            except OnboardingError as exc:
                msg = f"Failed to load form data: {exc.message}"
                raise ReferenceDataUnavailable(msg, detail=exc.detail) from exc
            try:
                reference = ReferenceData.from_payload(payload)
            except (PydanticValidationError, KeyError) as exc:
                raise ReferenceDataUnavailable("Failed to load form data: malformed payload") from exc
            if wait is not None:
                wait.note("languages", len(reference.languages))
                wait.note("service_types", len(reference.service_types))
            return reference

    def _open(
        self,
        op: str,
        mode: WizardMode,
        draft: Draft,
        reference: ReferenceData,
        *,
        rejections: RejectionSet | None = None,
        rejection_token: str | None = None,
        completion_token: str | None = None,
        notice: str | None = None,
    ) -> ServiceResult:
        _reconcile_selections(draft, reference)
        session = WizardSession(
            state=WizardState.initial(mode),
            draft=draft,
            reference=reference,
            rejections=rejections or RejectionSet(),
            rejection_token=rejection_token,
            completion_token=completion_token,
        )
        warnings: list[str] = []
        self._dispatch_event(
            "post_session_start", {"session_id": session.session_id, "mode": str(mode)}, warnings
        )
        if notice:
            self._notify(session.session_id, "success", notice, warnings)

        extra: dict[str, Any] = {"session": session}
        if session.rejections:
            extra["rejection"] = summarize(session.rejections)
        return self._state_result(op, session, warnings, **extra)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @traced
    def advance(
        self, session: WizardSession, output: BaseModel | dict[str, Any] | None = None
    ) -> ServiceResult:
        """Merge and validate the current step's output, then move on.

        On an edit-from-review detour this returns straight to Review.
        """
        op = "advance"
        warnings: list[str] = []
        try:
            _ensure_open(session)
            step = session.state.current_step
            candidate = session.draft.model_copy(deep=True)
            candidate.merge(step, output)
            if step is WizardStep.LANGUAGES:
                candidate.service_selections = reprice_for_languages(
                    candidate.service_selections, session.reference, candidate.language_ids
                )
            if step is WizardStep.SERVICE_TYPES and output is not None:
                _ensure_eligible(candidate, session.reference)
            result = validate_step(step, candidate, session.reference, self._clock())
            if not result.valid:
                note("invalid_fields", sorted(result.errors))
                raise ValidationError(result.errors)
        except OnboardingError as exc:
            if exc.code == "INELIGIBLE_SERVICE":
                self._notify(session.session_id, "error", exc.message, warnings)
            return ServiceResult.failure(op, exc, warnings=warnings)
        except PydanticValidationError as exc:
            return _malformed(op, "step output", exc)

        warnings.extend(result.warnings)
        session.draft = candidate
        return self._move(op, session, Advance(), warnings)

    @traced
    def save_step(
        self, session: WizardSession, output: BaseModel | dict[str, Any]
    ) -> ServiceResult:
        """Merge partial output of the current step without validating."""
        op = "save_step"
        warnings: list[str] = []
        try:
            _ensure_open(session)
            step = session.state.current_step
            candidate = session.draft.model_copy(deep=True)
            candidate.merge(step, output)
            if step is WizardStep.SERVICE_TYPES:
                _ensure_eligible(candidate, session.reference)
        except OnboardingError as exc:
            if exc.code == "INELIGIBLE_SERVICE":
                self._notify(session.session_id, "error", exc.message, warnings)
            return ServiceResult.failure(op, exc, warnings=warnings)
        except PydanticValidationError as exc:
            return _malformed(op, "step output", exc)
        if step is WizardStep.LANGUAGES:
            candidate.service_selections = reprice_for_languages(
                candidate.service_selections, session.reference, candidate.language_ids
            )
        session.draft = candidate
        return self._state_result(op, session, [])

    @traced
    def retreat(self, session: WizardSession) -> ServiceResult:
        op = "retreat"
        try:
            _ensure_open(session)
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)
        return self._move(op, session, Retreat(), [])

    @traced
    def jump_to(self, session: WizardSession, step: int) -> ServiceResult:
        """Jump to a completed or already visited step."""
        op = "jump_to"
        try:
            _ensure_open(session)
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)
        return self._move(op, session, JumpTo(step), [])

    @traced
    def edit_from(self, session: WizardSession, step: int) -> ServiceResult:
        """Edit one section from Review; the next advance returns to Review."""
        op = "edit_from"
        try:
            _ensure_open(session)
            if not session.state.on_review:
                raise NavigationError(
                    "Sections can only be edited from the review step",
                    detail={"current_step": int(session.state.current_step)},
                )
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)
        return self._move(op, session, EditFrom(step), [])

    def _move(
        self, op: str, session: WizardSession, event: WizardEvent, warnings: list[str]
    ) -> ServiceResult:
        previous = session.state
        try:
            session.state = transition(previous, event)
        except NavigationError as exc:
            return ServiceResult.failure(op, exc, warnings=warnings)

        extra: dict[str, Any] = {}
        if session.state.current_step != previous.current_step:
            self._dispatch_event(
                "post_step_change",
                {
                    "session_id": session.session_id,
                    "from_step": int(previous.current_step),
                    "to_step": int(session.state.current_step),
                    "editing_from_review": session.state.editing_from_review,
                },
                warnings,
            )
        if session.state.current_step is WizardStep.SERVICE_TYPES and session.needs_notice(
            SERVICE_RATES_NOTICE
        ):
            extra["notices"] = [SERVICE_RATES_NOTICE]
        return self._state_result(op, session, warnings, **extra)

    def _state_result(
        self, op: str, session: WizardSession, warnings: list[str], **extra: Any
    ) -> ServiceResult:
        state = session.state
        data = dump_validated(
            StepStateData,
            {
                "session_id": session.session_id,
                "mode": str(state.mode),
                "current_step": int(state.current_step),
                "step_label": state.current_step.label,
                "visited_steps": sorted(state.visited_steps),
                "editing_from_review": state.editing_from_review,
                "flagged_fields": list(decorate(state.current_step, session.rejections)),
            },
        )
        data.update(extra)
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    @traced
    def acknowledge_notice(self, session: WizardSession, notice: str) -> ServiceResult:
        """Record that a one-time notice was shown."""
        session.acknowledge(notice)
        return ServiceResult(
            ok=True,
            op="acknowledge_notice",
            data={"session_id": session.session_id, "acknowledged": sorted(session.acknowledged_notices)},
        )

    # ------------------------------------------------------------------
    # Service types and rates
    # ------------------------------------------------------------------

    @traced
    def selectable_service_types(self, session: WizardSession) -> ServiceResult:
        """Service types offered on the step, with their eligibility."""
        hidden = self._gateway.settings.wizard.hidden_service_codes
        held = session.reference.certificate_codes(session.draft.held_certificate_type_ids)
        names = session.reference.language_names(session.draft.language_ids)
        items = []
        for service_type in session.reference.selectable_service_types(hidden):
            try:
                ensure_selectable(service_type.code, held)
                eligible = True
            except OnboardingError:
                eligible = False
            rate = compute_effective_rate(service_type, RateType.PLATFORM, names)
            items.append(
                {
                    "service_type_id": service_type.id,
                    "code": service_type.normalized_code,
                    "name": service_type.name,
                    "eligible": eligible,
                    "selected": service_type.id in session.draft.service_selections,
                    "platform_rate_amount": format(rate.amount, "f"),
                    "platform_rate_unit": str(rate.unit),
                }
            )
        return ServiceResult(
            ok=True,
            op="selectable_service_types",
            data={"session_id": session.session_id, "count": len(items), "items": items},
        )

    @traced
    def select_service(self, session: WizardSession, service_type_id: str) -> ServiceResult:
        """Select a service type at the platform rate.

        Gated types need a qualifying certificate; a refused selection
        leaves the draft unchanged and queues an error notice.
        """
        op = "select_service"
        warnings: list[str] = []
        try:
            _ensure_open(session)
            service_type = self._selectable(session, service_type_id)
            note("service_code", service_type.code)
            held = session.reference.certificate_codes(session.draft.held_certificate_type_ids)
            ensure_selectable(service_type.code, held)
        except OnboardingError as exc:
            if exc.code == "INELIGIBLE_SERVICE":
                self._notify(session.session_id, "error", exc.message, warnings)
            return ServiceResult.failure(op, exc, warnings=warnings)

        existing = session.draft.service_selections.get(service_type.id)
        if existing is not None:
            return self._selection_result(op, session, existing, warnings)

        names = session.reference.language_names(session.draft.language_ids)
        selection = platform_selection(service_type, names)
        session.draft.put_selection(selection)
        self._dispatch_selected(session, selection, warnings)
        return self._selection_result(op, session, selection, warnings)

    @traced
    def deselect_service(self, session: WizardSession, service_type_id: str) -> ServiceResult:
        op = "deselect_service"
        try:
            _ensure_open(session)
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)
        removed = session.draft.remove_selection(str(service_type_id))
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "session_id": session.session_id,
                "service_type_id": str(service_type_id),
                "removed": removed,
                "service_type_ids": list(session.draft.service_type_ids),
            },
        )

    @traced
    def set_platform_rate(self, session: WizardSession, service_type_id: str) -> ServiceResult:
        """Switch a selected service back to the platform rate."""
        op = "set_platform_rate"
        warnings: list[str] = []
        try:
            _ensure_open(session)
            selection, service_type = self._selected(session, service_type_id)
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)

        names = session.reference.language_names(session.draft.language_ids)
        updated = selection.model_copy(
            update={
                "rate_type": RateType.PLATFORM,
                "rate": compute_effective_rate(service_type, RateType.PLATFORM, names),
            }
        )
        session.draft.put_selection(updated)
        self._dispatch_selected(session, updated, warnings)
        return self._selection_result(op, session, updated, warnings)

    @traced
    def set_custom_rate(
        self,
        session: WizardSession,
        service_type_id: str,
        custom: CustomRate | dict[str, Any],
    ) -> ServiceResult:
        """Set a custom rate; invalid fields are reported per field."""
        op = "set_custom_rate"
        warnings: list[str] = []
        try:
            _ensure_open(session)
            selection, service_type = self._selected(session, service_type_id)
            if not isinstance(custom, CustomRate):
                custom = CustomRate.model_validate(custom)
            names = session.reference.language_names(session.draft.language_ids)
            rate = compute_effective_rate(service_type, RateType.CUSTOM, names, custom)
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)
        except PydanticValidationError as exc:
            return _malformed(op, "custom rate", exc)

        updated = selection.model_copy(update={"rate_type": RateType.CUSTOM, "rate": rate})
        session.draft.put_selection(updated)
        self._dispatch_selected(session, updated, warnings)
        return self._selection_result(op, session, updated, warnings)

    @traced
    def set_language_override(
        self,
        session: WizardSession,
        service_type_id: str,
        language_id: str,
        amount: Any,
        unit: RateUnit | str | None = None,
    ) -> ServiceResult:
        """Set, blank, or (with ``amount=None``) remove a language override."""
        op = "set_language_override"
        try:
            _ensure_open(session)
            selection, _service_type = self._selected(session, service_type_id)
            updated = apply_language_override(
                selection,
                language_id,
                amount,
                unit,
                draft_language_ids=session.draft.language_ids,
            )
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)
        except ValueError as exc:
            return ServiceResult.failure(op, ValidationError({"language_rates": str(exc)}))
        session.draft.put_selection(updated)
        return self._selection_result(op, session, updated, [])

    def _selectable(self, session: WizardSession, service_type_id: str) -> Any:
        service_type = session.reference.service_type(service_type_id)
        hidden = self._gateway.settings.wizard.hidden_service_codes
        if service_type is None or service_type not in session.reference.selectable_service_types(hidden):
            raise ValidationError(
                {"service_types": f"Unknown service type: {service_type_id}"}
            )
        return service_type

    def _selected(self, session: WizardSession, service_type_id: str) -> tuple[ServiceSelection, Any]:
        key = str(service_type_id)
        selection = session.draft.service_selections.get(key)
        service_type = session.reference.service_type(key)
        if selection is None or service_type is None:
            raise ValidationError({"service_types": f"Service type {key} is not selected"})
        note("service_code", service_type.code)
        return selection, service_type

    def _dispatch_selected(
        self, session: WizardSession, selection: ServiceSelection, warnings: list[str]
    ) -> None:
        service_type = session.reference.service_type(selection.service_type_id)
        self._dispatch_event(
            "post_service_selected",
            {
                "session_id": session.session_id,
                "service_type_id": selection.service_type_id,
                "service_code": service_type.normalized_code if service_type else "",
                "rate_type": str(selection.rate_type),
            },
            warnings,
        )

    def _selection_result(
        self, op: str, session: WizardSession, selection: ServiceSelection, warnings: list[str]
    ) -> ServiceResult:
        rate = selection.rate
        service_type = session.reference.service_type(selection.service_type_id)
        note("rate_type", str(selection.rate_type))
        data = dump_validated(
            SelectionData,
            {
                "session_id": session.session_id,
                "service_type_id": selection.service_type_id,
                "service_code": service_type.normalized_code if service_type else "",
                "rate_type": str(selection.rate_type),
                "rate_amount": format(rate.amount, "f"),
                "rate_unit": str(rate.unit),
                "minimum_hours": format(rate.minimum_hours, "f"),
                "interval_minutes": rate.interval_minutes,
                "second_interval_rate_amount": (
                    format(rate.second_interval_amount, "f")
                    if rate.second_interval_amount is not None
                    else None
                ),
                "second_interval_rate_unit": (
                    str(rate.second_interval_unit) if rate.second_interval_unit else None
                ),
                "language_overrides": {
                    k: {"amount": v.amount, "unit": str(v.unit)}
                    for k, v in selection.language_overrides.items()
                },
            },
        )
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    # ------------------------------------------------------------------
    # Address
    # ------------------------------------------------------------------

    @traced
    def suggest_addresses(self, session: WizardSession, text: str) -> ServiceResult:
        op = "suggest_addresses"
        try:
            validator = self._gateway.address_validator(session.reference)
            suggestions = validator.suggest(text)
        except OnboardingError as exc:
            return ServiceResult.failure(op, exc)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "session_id": session.session_id,
                "count": len(suggestions),
                "items": [s.model_dump() for s in suggestions],
            },
        )

    @traced
    def validate_address(
        self, session: WizardSession, *, place_id: str | None = None
    ) -> ServiceResult:
        """Validate the draft address, or fill it from an autocomplete pick.

        Timeouts and misses are recoverable: the user edits and retries.
        """
        op = "validate_address"
        warnings: list[str] = []
        try:
            _ensure_open(session)
            validator = self._gateway.address_validator(session.reference)
            with waiting_on("geocode", from_suggestion=bool(place_id)) as wait:
                if place_id:
                    outcome = validator.select_suggestion(session.draft.address, place_id)
                else:
                    outcome = validator.validate(session.draft.address)
                if wait is not None:
                    wait.note("line_2_ignored", outcome.line_2_ignored)
        except OnboardingError as exc:
            self._notify(session.session_id, "error", exc.message, warnings)
            return ServiceResult.failure(op, exc, warnings=warnings)

        session.draft.address = outcome.address
        self._notify(session.session_id, "success", outcome.message, warnings)
        address = outcome.address
        data = dump_validated(
            AddressData,
            {
                "session_id": session.session_id,
                "message": outcome.message,
                "line_2_ignored": outcome.line_2_ignored,
                "formatted_address": address.formatted_address,
                "latitude": address.latitude,
                "longitude": address.longitude,
                "place_id": address.place_id,
                "city": address.city,
                "state_id": address.state_id,
                "zip_code": address.zip_code,
            },
        )
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    # ------------------------------------------------------------------
    # Resubmission
    # ------------------------------------------------------------------

    @traced
    def flagged_fields(
        self, session: WizardSession, step: int | None = None
    ) -> ServiceResult:
        """Rejection flags for *step* (default: the current step)."""
        op = "flagged_fields"
        try:
            target = WizardStep(int(step)) if step is not None else session.state.current_step
        except ValueError:
            return ServiceResult.failure(
                op, NavigationError(f"Unknown wizard step: {step}", detail={"step": step})
            )
        flags = decorate(target, session.rejections)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "session_id": session.session_id,
                "step": int(target),
                "fields": {k: v.message for k, v in flags.items()},
            },
        )

    @traced
    def steps_requiring_reentry(self, session: WizardSession) -> ServiceResult:
        steps = steps_requiring_reentry(session.rejections)
        return ServiceResult(
            ok=True,
            op="steps_requiring_reentry",
            data={
                "session_id": session.session_id,
                "steps": [int(s) for s in steps],
                "labels": [s.label for s in steps],
                "note": session.rejections.note,
            },
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    @traced
    def submit(self, session: WizardSession) -> ServiceResult:
        """Validate the whole draft, assemble it, and send it.

        A refused submission keeps the draft so the user can correct it.
        On success the session is closed.
        """
        op = "submit"
        warnings: list[str] = []
        try:
            _ensure_open(session)
            if not session.state.on_review:
                raise NavigationError("Submit is only available from the review step")
            result = validate_draft(session.draft, session.reference, self._clock())
            if not result.valid:
                raise ValidationError(result.errors)

            kind = _submission_kind(session.mode)
            assembled = assemble(
                session.draft,
                session.reference,
                kind=kind,
                rejection_token=session.rejection_token,
                completion_token=session.completion_token,
            )
            with waiting_on("send", kind=kind):
                api = self._gateway.api
                if kind == "completion":
                    assert session.completion_token is not None
                    envelope = api.submit_completion(session.completion_token, to_json(assembled))
                else:
                    data, files = to_multipart(assembled)
                    send = api.create_profile if kind == "create" else api.update_profile
                    envelope = send(data, files)
        except OnboardingError as exc:
            self._notify(session.session_id, "error", exc.message, warnings)
            return ServiceResult.failure(op, exc, warnings=warnings)
        except PydanticValidationError as exc:
            return _malformed(op, "submission", exc)

        session.closed = True
        message = SUBMIT_MESSAGES[kind]
        self._dispatch_event(
            "post_submit",
            {
                "session_id": session.session_id,
                "kind": kind,
                "mode": str(session.mode),
                "response": envelope.data if isinstance(envelope.data, dict) else {},
            },
            warnings,
        )
        self._notify(session.session_id, "success", message, warnings)
        data = dump_validated(
            SubmissionResultData,
            {
                "session_id": session.session_id,
                "kind": kind,
                "message": envelope.message or message,
                "response": envelope.data,
            },
        )
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ensure_open(session: WizardSession) -> None:
    if session.closed:
        raise SessionClosed("This application has already been submitted")


def _submission_kind(mode: WizardMode) -> str:
    if mode is WizardMode.EDIT_EXISTING:
        return "update"
    if mode is WizardMode.COMPLETION:
        return "completion"
    return "create"


def _malformed(op: str, what: str, exc: PydanticValidationError) -> ServiceResult:
    return ServiceResult(
        ok=False,
        op=op,
        error=ServiceError(
            code="VALIDATION_FAILED",
            message=f"Malformed {what}",
            detail={"errors": exc.errors(include_url=False, include_context=False)},
        ),
    )


def _ensure_eligible(draft: Draft, reference: ReferenceData) -> None:
    """Refuse gated service types the draft's certificates do not cover."""
    held = reference.certificate_codes(draft.held_certificate_type_ids)
    for service_type_id in draft.service_type_ids:
        service_type = reference.service_type(service_type_id)
        if service_type is not None:
            ensure_selectable(service_type.code, held)


def _reconcile_selections(draft: Draft, reference: ReferenceData) -> None:
    """Restore the one-selection-per-service invariant on a prefilled draft.

    Unknown service types are dropped; selected types without a stored
    rate get the platform rate.
    """
    names = reference.language_names(draft.language_ids)
    for service_type_id in list(draft.service_type_ids):
        service_type = reference.service_type(service_type_id)
        if service_type is None:
            draft.remove_selection(service_type_id)
            draft.service_type_ids = [x for x in draft.service_type_ids if x != service_type_id]
            continue
        if service_type_id not in draft.service_selections:
            draft.put_selection(platform_selection(service_type, names))
    draft.service_selections = reprice_for_languages(
        draft.service_selections, reference, draft.language_ids
    )
