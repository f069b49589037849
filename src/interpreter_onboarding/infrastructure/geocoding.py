"""Address validation through an external geocoding capability.

The core depends only on the :class:`Geocoder` protocol. Calls run in a
worker thread and are abandoned once ``[address] timeout_seconds``
elapses. When a free-text lookup including the secondary address line
finds nothing, the lookup is retried once with that line stripped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Protocol

import requests
from pydantic import BaseModel, ConfigDict, Field

from interpreter_onboarding.config.models import AddressConfig
from interpreter_onboarding.domain.draft import AddressInfo
from interpreter_onboarding.domain.reference import ReferenceData
from interpreter_onboarding.errors import (
    BackendError,
    ExternalResolutionNotFound,
    ExternalResolutionTimeout,
    OnboardingError,
)

logger = logging.getLogger(__name__)


class Suggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    place_id: str
    description: str


class AddressComponent(BaseModel):
    model_config = ConfigDict(frozen=True)

    long_name: str
    short_name: str = ""
    types: list[str] = Field(default_factory=list)


class GeocodeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    formatted_address: str
    latitude: float
    longitude: float
    place_id: str
    components: list[AddressComponent] = Field(default_factory=list)


class Geocoder(Protocol):
    """External address lookup. ``None`` means no match."""

    def autocomplete(self, text: str) -> list[Suggestion]: ...

    def resolve(self, place_id: str) -> GeocodeResult | None: ...

    def geocode(self, text: str) -> GeocodeResult | None: ...


class ParsedComponents(BaseModel):
    """Components keyed by what the address form needs."""

    model_config = ConfigDict(frozen=True)

    street_number: str = ""
    route: str = ""
    locality: str = ""
    region: str = ""
    region_code: str = ""
    county: str = ""
    postal_code: str = ""
    country: str = ""
    country_code: str = ""

    @property
    def street_line(self) -> str:
        return f"{self.street_number} {self.route}".strip()


# component type -> (long-name field, short-name field)
_COMPONENT_FIELDS: tuple[tuple[str, str, str | None], ...] = (
    ("street_number", "street_number", None),
    ("route", "route", None),
    ("locality", "locality", None),
    ("administrative_area_level_1", "region", "region_code"),
    ("administrative_area_level_2", "county", None),
    ("postal_code", "postal_code", None),
    ("country", "country", "country_code"),
)


def parse_components(components: list[AddressComponent]) -> ParsedComponents:
    """Map geocoder components onto :class:`ParsedComponents`.

    The first matching type of each component wins.
    """
    values: dict[str, str] = {}
    for component in components:
        for component_type, long_field, short_field in _COMPONENT_FIELDS:
            if component_type in component.types:
                values[long_field] = component.long_name
                if short_field:
                    values[short_field] = component.short_name
                break
    return ParsedComponents(**values)


class AddressValidation(BaseModel):
    """Outcome of a successful validation."""

    model_config = ConfigDict(frozen=True)

    address: AddressInfo
    message: str
    line_2_ignored: bool = False


class AddressValidator:
    """Validates draft addresses against a :class:`Geocoder`."""

    def __init__(
        self,
        geocoder: Geocoder,
        reference: ReferenceData,
        config: AddressConfig | None = None,
    ) -> None:
        self._geocoder = geocoder
        self._reference = reference
        self._config = config or AddressConfig()

    def _call[T](self, fn: Callable[..., T], *args: Any) -> T:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="geocode")
        try:
            future = executor.submit(fn, *args)
            try:
                return future.result(timeout=self._config.timeout_seconds)
            except FutureTimeout:
                logger.warning("Address lookup timed out after %ss", self._config.timeout_seconds)
                raise ExternalResolutionTimeout(
                    "Address validation timed out",
                    detail={"timeout_seconds": self._config.timeout_seconds},
                ) from None
            except OnboardingError:
                raise
            except Exception as exc:
                logger.warning("Address lookup failed", exc_info=True)
                raise BackendError("Failed to validate address") from exc
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def suggest(self, text: str) -> list[Suggestion]:
        if not text.strip():
            return []
        return self._call(self._geocoder.autocomplete, text.strip())

    def validate(self, address: AddressInfo) -> AddressValidation:
        """Geocode the typed address and return it with geocode fields filled.

        Raises:
            ExternalResolutionTimeout: the lookup did not finish in time.
            ExternalResolutionNotFound: no match, also after dropping line 2.
        """
        street = address.street_address.strip()
        line_2 = address.street_address_2.strip()
        query = f"{street}, {line_2}" if line_2 else street

        result = self._call(self._geocoder.geocode, query)
        if result is not None:
            return AddressValidation(
                address=self._apply(address, result), message="Address validated successfully"
            )

        if line_2 and self._config.retry_without_line_2:
            logger.debug("Retrying address lookup without line 2")
            result = self._call(self._geocoder.geocode, street)
            if result is not None:
                return AddressValidation(
                    address=self._apply(address, result),
                    message="Address validated successfully (address line 2 ignored)",
                    line_2_ignored=True,
                )

        raise ExternalResolutionNotFound("Address validation failed", detail={"query": query})

    def select_suggestion(self, address: AddressInfo, place_id: str) -> AddressValidation:
        """Fill *address* from an autocomplete pick."""
        result = self._call(self._geocoder.resolve, place_id)
        if result is None:
            raise ExternalResolutionNotFound(
                "Failed to get address details", detail={"place_id": place_id}
            )
        return AddressValidation(
            address=self._apply(address, result),
            message="Address auto-filled and validated from selection",
        )

    def _apply(self, address: AddressInfo, result: GeocodeResult) -> AddressInfo:
        parsed = parse_components(result.components)
        region = self._reference.region_by_code(parsed.region_code)
        return address.model_copy(
            update={
                "street_address": parsed.street_line or address.street_address,
                "city": parsed.locality,
                "state_id": region.id if region is not None else None,
                "zip_code": parsed.postal_code,
                "county": parsed.county,
                "formatted_address": result.formatted_address,
                "latitude": result.latitude,
                "longitude": result.longitude,
                "place_id": result.place_id,
                "address_validated": True,
            }
        )


class GoogleGeocoder:
    """:class:`Geocoder` backed by the Google Maps web services."""

    BASE_URL = "https://maps.googleapis.com/maps/api"

    def __init__(
        self,
        api_key: str,
        *,
        country: str = "us",
        session: requests.Session | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._country = country
        self._session = session or requests.Session()
        self._timeout = timeout

    def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        response = self._session.get(
            f"{self.BASE_URL}{path}",
            params={**params, "key": self._api_key},
            timeout=self._timeout,
        )
        response.raise_for_status()
        return response.json()

    def autocomplete(self, text: str) -> list[Suggestion]:
        body = self._get(
            "/place/autocomplete/json",
            {"input": text, "types": "address", "components": f"country:{self._country}"},
        )
        return [
            Suggestion(place_id=p["place_id"], description=p.get("description", ""))
            for p in body.get("predictions", [])
        ]

    def resolve(self, place_id: str) -> GeocodeResult | None:
        body = self._get(
            "/place/details/json",
            {"place_id": place_id, "fields": "address_components,formatted_address,geometry,place_id"},
        )
        if body.get("status") != "OK":
            return None
        return _to_result(body.get("result") or {})

    def geocode(self, text: str) -> GeocodeResult | None:
        body = self._get("/geocode/json", {"address": text, "components": f"country:{self._country}"})
        results = body.get("results") or []
        if body.get("status") != "OK" or not results:
            return None
        return _to_result(results[0])


def _to_result(raw: dict[str, Any]) -> GeocodeResult:
    location = (raw.get("geometry") or {}).get("location") or {}
    return GeocodeResult(
        formatted_address=raw.get("formatted_address", ""),
        latitude=location.get("lat", 0.0),
        longitude=location.get("lng", 0.0),
        place_id=raw.get("place_id", ""),
        components=[AddressComponent.model_validate(c) for c in raw.get("address_components", [])],
    )
