"""Reference data snapshot — languages, service types, certificates, regions.

Loaded once per wizard session from ``GET /parametric/all`` and read-only
afterwards. All models are frozen so the snapshot can be shared freely.
Identifiers are normalised to strings because the backend sends integers
while drafts restored from earlier submissions carry string ids.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict

from interpreter_onboarding.domain.types import RateUnit, normalize_code, parse_rate_unit


def to_decimal(value: Any) -> Any:
    """Coerce floats and numeric strings to :class:`Decimal` without float noise."""
    if value is None or isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return Decimal(text)
        except InvalidOperation:
            return value
    return value


def _to_unit(value: Any) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return parse_rate_unit(value)
    return value


Money = Annotated[Decimal, BeforeValidator(to_decimal)]
Unit = Annotated[RateUnit, BeforeValidator(_to_unit)]


class RateSpec(BaseModel):
    """Tiered billing structure.

    A minimum charge block of ``minimum_hours``, then a second pricing tier
    of ``interval_minutes`` (when ``second_interval_amount`` is set), then
    hourly increments at the base rate.
    """

    model_config = ConfigDict(frozen=True)

    amount: Money
    unit: Unit
    minimum_hours: Money = Decimal("1")
    interval_minutes: int = 60
    second_interval_amount: Annotated[Decimal | None, BeforeValidator(to_decimal)] = None
    second_interval_unit: Annotated[RateUnit | None, BeforeValidator(_to_unit)] = None

    @property
    def has_second_tier(self) -> bool:
        return self.second_interval_amount is not None and self.second_interval_amount > 0


class Language(BaseModel):
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str
    name: str


class ServiceType(BaseModel):
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str
    code: str
    name: str
    description: str | None = None
    platform_rate: RateSpec

    @property
    def normalized_code(self) -> str:
        return normalize_code(self.code)


class CertificateType(BaseModel):
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str
    code: str
    name: str

    @property
    def normalized_code(self) -> str:
        return normalize_code(self.code)


class Region(BaseModel):
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str
    code: str
    name: str


class ReferenceData(BaseModel):
    """Immutable snapshot of everything the wizard looks up by id or code."""

    model_config = ConfigDict(frozen=True)

    languages: tuple[Language, ...] = ()
    service_types: tuple[ServiceType, ...] = ()
    certificate_types: tuple[CertificateType, ...] = ()
    regions: tuple[Region, ...] = ()

    # --- construction ---

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> ReferenceData:
        """Build a snapshot from the backend's ``/parametric/all`` payload.

        The backend flattens the platform rate into ``platform_*`` columns
        and names the region list ``usStates``.
        """
        service_types = []
        for raw in data.get("serviceTypes") or data.get("service_types") or []:
            if "platform_rate" in raw:
                service_types.append(ServiceType.model_validate(raw))
                continue
            rate = {
                "amount": raw.get("platform_rate_amount") or 0,
                "unit": raw.get("platform_rate_unit") or RateUnit.HOURS,
                "minimum_hours": raw.get("platform_minimum_hours") or 1,
                "interval_minutes": raw.get("platform_interval_minutes") or 60,
                "second_interval_amount": raw.get("platform_second_interval_rate_amount"),
                "second_interval_unit": raw.get("platform_second_interval_rate_unit"),
            }
            service_types.append(
                ServiceType(
                    id=raw["id"],
                    code=raw.get("code", ""),
                    name=raw.get("name", ""),
                    description=raw.get("description"),
                    platform_rate=RateSpec.model_validate(rate),
                )
            )

        return cls(
            languages=tuple(Language.model_validate(x) for x in data.get("languages") or []),
            service_types=tuple(service_types),
            certificate_types=tuple(
                CertificateType.model_validate(x)
                for x in data.get("certificateTypes") or data.get("certificate_types") or []
            ),
            regions=tuple(
                Region.model_validate(x)
                for x in data.get("usStates") or data.get("regions") or []
            ),
        )

    # --- lookups ---

    def language(self, language_id: str | int) -> Language | None:
        key = str(language_id)
        return next((x for x in self.languages if x.id == key), None)

    def service_type(self, service_type_id: str | int) -> ServiceType | None:
        key = str(service_type_id)
        return next((x for x in self.service_types if x.id == key), None)

    def service_type_by_code(self, code: str) -> ServiceType | None:
        key = normalize_code(code)
        return next((x for x in self.service_types if x.normalized_code == key), None)

    def certificate_type(self, certificate_type_id: str | int) -> CertificateType | None:
        key = str(certificate_type_id)
        return next((x for x in self.certificate_types if x.id == key), None)

    def region(self, region_id: str | int) -> Region | None:
        key = str(region_id)
        return next((x for x in self.regions if x.id == key), None)

    def region_by_code(self, code: str | None) -> Region | None:
        if not code:
            return None
        key = code.strip().upper()
        return next((x for x in self.regions if x.code.upper() == key), None)

    def language_names(self, language_ids: list[str]) -> list[str]:
        """Resolve ids to names, skipping unknown ids."""
        names = []
        for language_id in language_ids:
            language = self.language(language_id)
            if language is not None:
                names.append(language.name)
        return names

    def certificate_codes(self, certificate_type_ids: list[str]) -> set[str]:
        """Resolve certificate type ids to normalised codes."""
        codes = set()
        for type_id in certificate_type_ids:
            cert_type = self.certificate_type(type_id)
            if cert_type is not None:
                codes.add(cert_type.normalized_code)
        return codes

    # --- selectable subsets ---

    def selectable_service_types(
        self, hidden_codes: frozenset[str] = frozenset({"other"})
    ) -> list[ServiceType]:
        hidden = {normalize_code(c) for c in hidden_codes}
        return [
            st
            for st in self.service_types
            if st.normalized_code not in hidden and st.name.strip().lower() not in hidden
        ]

    def selectable_languages(
        self, hidden_names: frozenset[str] = frozenset({"agency", "english"})
    ) -> list[Language]:
        hidden = {n.lower() for n in hidden_names}
        return [x for x in self.languages if x.name and x.name.strip().lower() not in hidden]

