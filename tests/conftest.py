"""Shared pytest fixtures and test helpers for interpreter_onboarding tests."""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from datetime import date
from typing import Any

import pytest
import requests

from interpreter_onboarding.config.settings import OnboardingSettings
from interpreter_onboarding.domain.draft import (
    AddressInfo,
    Draft,
    LanguageEntry,
    PersonalInfo,
    TaxForm,
    UploadedFile,
)
from interpreter_onboarding.domain.rates import platform_selection
from interpreter_onboarding.domain.reference import ReferenceData
from interpreter_onboarding.domain.types import W9EntryMethod
from interpreter_onboarding.infrastructure.api_client import ApiEnvelope
from interpreter_onboarding.infrastructure.gateway import Gateway
from interpreter_onboarding.infrastructure.geocoding import (
    AddressComponent,
    GeocodeResult,
    Suggestion,
)
from interpreter_onboarding.services.telemetry import enable_telemetry
from interpreter_onboarding.services.wizard import WizardService

TODAY = date(2026, 1, 15)

# Ids used throughout the suite.
SPANISH = "2"
FRENCH = "3"
LEGAL = "1"
MEDICAL = "2"
PHONE = "3"
DOCUMENT = "4"
VIDEO = "5"
CONFERENCE = "6"
OTHER = "7"
COURT_CERT = "10"
MEDICAL_CERT = "11"
GENERAL_CERT = "12"
CALIFORNIA = "1"


def reference_payload() -> dict[str, Any]:
    """``/parametric/all`` body in the backend's flattened shape."""

    def service(
        id_: str,
        code: str,
        name: str,
        amount: str,
        unit: str,
        minimum: str = "1",
        interval: int = 60,
        second_amount: str | None = None,
        second_unit: str | None = None,
    ) -> dict[str, Any]:
        return {
            "id": id_,
            "code": code,
            "name": name,
            "platform_rate_amount": amount,
            "platform_rate_unit": unit,
            "platform_minimum_hours": minimum,
            "platform_interval_minutes": interval,
            "platform_second_interval_rate_amount": second_amount,
            "platform_second_interval_rate_unit": second_unit,
        }

    return {
        "languages": [
            {"id": "1", "name": "English"},
            {"id": SPANISH, "name": "Spanish"},
            {"id": FRENCH, "name": "French"},
            {"id": "4", "name": "Agency"},
        ],
        "serviceTypes": [
            service(LEGAL, "legal", "Legal", "120.00", "per_3_hours", "3"),
            service(MEDICAL, "medical", "Medical", "60.00", "hours", "2", 30, "45.00", "hours"),
            service(PHONE, "phone", "Phone", "0.65", "minutes"),
            service(DOCUMENT, "document", "Document Translation", "0.14", "word"),
            service(VIDEO, "video", "Video Remote", "100.00", "per_3_hours", "3"),
            service(CONFERENCE, "conference", "Conference", "50.00", "hours"),
            service(OTHER, "other", "Other", "10.00", "hours"),
        ],
        "certificateTypes": [
            {"id": COURT_CERT, "code": "court_certified", "name": "Court Certified"},
            {"id": MEDICAL_CERT, "code": "medical-certified", "name": "Medical Certified"},
            {"id": GENERAL_CERT, "code": "general", "name": "General"},
        ],
        "usStates": [
            {"id": CALIFORNIA, "code": "CA", "name": "California"},
            {"id": "2", "code": "NY", "name": "New York"},
        ],
    }


def pdf(name: str = "doc.pdf") -> UploadedFile:
    return UploadedFile(filename=name, content=b"%PDF-1.4 test")


def complete_draft(reference: ReferenceData, **overrides: Any) -> Draft:
    """A draft that passes every step's validation on :data:`TODAY`."""
    draft = Draft(
        personal=PersonalInfo(
            first_name="Ana",
            last_name="Lopez",
            email="ana@example.com",
            phone="555-123-4567",
            date_of_birth=date(1990, 5, 1),
            sms_consent=True,
        ),
        address=AddressInfo(
            street_address="100 Main St",
            city="Los Angeles",
            state_id=CALIFORNIA,
            zip_code="90012",
            formatted_address="100 Main St, Los Angeles, CA 90012, USA",
            latitude=34.05,
            longitude=-118.24,
            place_id="place-100",
            address_validated=True,
        ),
        languages=[LanguageEntry(language_id=SPANISH, is_primary=True)],
        is_certified=False,
        tax_form=TaxForm(entry_method=W9EntryMethod.UPLOAD, file=pdf("w9.pdf")),
        terms_accepted=True,
        privacy_policy_accepted=True,
    )
    conference = reference.service_type(CONFERENCE)
    assert conference is not None
    draft.put_selection(platform_selection(conference, ["Spanish"]))
    for key, value in overrides.items():
        setattr(draft, key, value)
    return draft


def geocode_result(place_id: str = "place-100", **overrides: Any) -> GeocodeResult:
    components = [
        AddressComponent(long_name="100", short_name="100", types=["street_number"]),
        AddressComponent(long_name="Main Street", short_name="Main St", types=["route"]),
        AddressComponent(long_name="Los Angeles", short_name="LA", types=["locality", "political"]),
        AddressComponent(
            long_name="Los Angeles County",
            short_name="Los Angeles County",
            types=["administrative_area_level_2", "political"],
        ),
        AddressComponent(
            long_name="California", short_name="CA", types=["administrative_area_level_1"]
        ),
        AddressComponent(long_name="90012", short_name="90012", types=["postal_code"]),
    ]
    data: dict[str, Any] = {
        "formatted_address": "100 Main St, Los Angeles, CA 90012, USA",
        "latitude": 34.05,
        "longitude": -118.24,
        "place_id": place_id,
        "components": components,
    }
    data.update(overrides)
    return GeocodeResult(**data)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeGeocoder:
    """In-memory :class:`Geocoder`; answers only the queries it was given."""

    def __init__(self, results: dict[str, GeocodeResult] | None = None) -> None:
        self.results = dict(results or {})
        self.queries: list[str] = []
        self.suggestions: list[Suggestion] = []
        self.error: Exception | None = None

    def autocomplete(self, text: str) -> list[Suggestion]:
        self.queries.append(text)
        return list(self.suggestions)

    def resolve(self, place_id: str) -> GeocodeResult | None:
        self.queries.append(place_id)
        return next((r for r in self.results.values() if r.place_id == place_id), None)

    def geocode(self, text: str) -> GeocodeResult | None:
        self.queries.append(text)
        if self.error is not None:
            raise self.error
        return self.results.get(text)


class FakeApi:
    """Stands in for :class:`ProfileApiClient`; records every call."""

    def __init__(self) -> None:
        self.reference = reference_payload()
        self.profile: dict[str, Any] = {}
        self.rejection: dict[str, Any] = {}
        self.imported: dict[str, Any] = {}
        self.pending: dict[str, Any] | None = None
        self.calls: list[tuple[str, Any]] = []
        self.fail_with: Exception | None = None

    def _record(self, name: str, payload: Any = None) -> None:
        self.calls.append((name, payload))
        if self.fail_with is not None and name != "get_reference_data":
            raise self.fail_with

    def calls_to(self, name: str) -> list[Any]:
        return [payload for called, payload in self.calls if called == name]

    def get_reference_data(self) -> dict[str, Any]:
        self.calls.append(("get_reference_data", None))
        return self.reference

    def create_profile(self, data: dict[str, str], files: list[Any]) -> ApiEnvelope:
        self._record("create_profile", (data, files))
        return ApiEnvelope(data={"id": 42}, message="Created")

    def update_profile(self, data: dict[str, str], files: list[Any]) -> ApiEnvelope:
        self._record("update_profile", (data, files))
        return ApiEnvelope(data={"pending_update_id": 7})

    def submit_completion(self, token: str, payload: dict[str, Any]) -> ApiEnvelope:
        self._record("submit_completion", (token, payload))
        return ApiEnvelope(data={"id": 42})

    def get_profile(self) -> dict[str, Any]:
        self._record("get_profile")
        return self.profile

    def get_pending_update(self) -> dict[str, Any] | None:
        self._record("get_pending_update")
        return self.pending

    def cancel_pending_update(self) -> ApiEnvelope:
        self._record("cancel_pending_update")
        return ApiEnvelope(message="Pending update cancelled successfully")

    def get_rejection(self, token: str) -> dict[str, Any]:
        self._record("get_rejection", token)
        return self.rejection

    def validate_completion_token(self, token: str) -> dict[str, Any]:
        self._record("validate_completion_token", token)
        return self.imported

    def close(self) -> None:
        pass


class DummyResponse:
    """Minimal response object mimicking ``requests.Response`` for tests."""

    def __init__(self, status_code: int = 200, body: Any = None) -> None:
        self.status_code = status_code
        self._body = body

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(response=self)  # type: ignore[arg-type]


class DummySession:
    """Session stub capturing every request and replaying canned responses."""

    def __init__(self, *responses: DummyResponse | Exception) -> None:
        self._responses = list(responses)
        self.headers: dict[str, str] = {}
        self.requests: list[dict[str, Any]] = []
        self.closed = False

    def _next(self) -> DummyResponse:
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def request(self, method: str, url: str, **kwargs: Any) -> DummyResponse:
        self.requests.append({"method": method, "url": url, **kwargs})
        return self._next()

    def get(self, url: str, **kwargs: Any) -> DummyResponse:
        self.requests.append({"method": "GET", "url": url, **kwargs})
        return self._next()

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's ONBOARDING_* environment out of the tests."""
    for key in list(os.environ):
        if key.startswith("ONBOARDING_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _reset_telemetry_state() -> Generator[None]:
    yield
    enable_telemetry(False)


@pytest.fixture
def reference() -> ReferenceData:
    return ReferenceData.from_payload(reference_payload())


@pytest.fixture
def draft(reference: ReferenceData) -> Draft:
    return complete_draft(reference)


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder(
        {
            "100 Main St": geocode_result(),
            "100 Main St, Apt 4": geocode_result(place_id="place-apt"),
        }
    )


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def settings() -> OnboardingSettings:
    return OnboardingSettings(api={"base_url": "http://backend.test/api"})


@pytest.fixture
def gateway(
    settings: OnboardingSettings, fake_api: FakeApi, geocoder: FakeGeocoder
) -> Generator[Gateway]:
    gw = Gateway(settings, api=fake_api, geocoder=geocoder)  # type: ignore[arg-type]
    gw.init_plugins(discover=False)
    try:
        yield gw
    finally:
        gw.close()


@pytest.fixture
def wizard(gateway: Gateway) -> WizardService:
    return WizardService(gateway, clock=lambda: TODAY)


# ---------------------------------------------------------------------------
# Shared test helpers (used across service test modules)
# ---------------------------------------------------------------------------


def start_session(wizard: WizardService, **kwargs: Any) -> Any:
    """Start a fresh session via WizardService, asserting success."""
    result = wizard.start_fresh(**kwargs)
    assert result.ok, result.error
    return result.data["session"]


def walk_to(
    wizard: WizardService,
    session: Any,
    draft: Draft,
    step: int,
    *,
    before: Callable[[int], None] | None = None,
) -> None:
    """Advance *session* to *step*, feeding each step its slice of *draft*."""
    outputs: dict[int, Any] = {
        1: draft.personal,
        2: draft.address,
        3: {"languages": [e.model_dump() for e in draft.languages]},
        4: {"is_certified": draft.is_certified, "certificates": draft.certificates},
        5: {"selections": draft.selections_in_order()},
        6: draft.tax_form,
    }
    while session.state.current_step < step:
        current = int(session.state.current_step)
        if before is not None:
            before(current)
        result = wizard.advance(session, outputs[current])
        assert result.ok, result.error
