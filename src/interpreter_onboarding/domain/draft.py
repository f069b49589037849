"""Draft aggregate — the profile document accumulated by the wizard.

Each wizard step owns one slice of the draft (see :data:`STEP_SLICES`).
The draft keeps two invariants itself:

- every id in ``service_type_ids`` has exactly one entry in
  ``service_selections`` (and vice versa);
- unchecking "I am certified" empties the certificate list.

Language-dependent repricing needs reference data and therefore happens in
the service layer after a Languages merge.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from interpreter_onboarding.domain.rates import LanguageRate, ServiceSelection
from interpreter_onboarding.domain.reference import RateSpec
from interpreter_onboarding.domain.types import RateType, TaxClassification, W9EntryMethod
from interpreter_onboarding.domain.wizard import WizardStep


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _none_to_blank(value: Any) -> Any:
    return "" if value is None else value


OptionalDate = Annotated[date | None, BeforeValidator(_blank_to_none)]
OptionalId = Annotated[str | None, BeforeValidator(_blank_to_none)]
Text = Annotated[str, BeforeValidator(_none_to_blank)]


class UploadedFile(BaseModel):
    """A binary attachment chosen by the user (certificate scan, W-9 PDF)."""

    model_config = ConfigDict(frozen=True)

    filename: str
    content: bytes
    content_type: str = "application/pdf"


# ---------------------------------------------------------------------------
# Step slices
# ---------------------------------------------------------------------------


class PersonalInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_name: Text = ""
    last_name: Text = ""
    middle_name: Text = ""
    email: Text = ""
    phone: Text = ""
    date_of_birth: OptionalDate = None
    gender: Text = ""
    business_name: Text = ""
    sms_consent: bool = False
    is_agency: bool = False

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.middle_name, self.last_name) if p)


class AddressInfo(BaseModel):
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    street_address: Text = ""
    street_address_2: Text = ""
    city: Text = ""
    state_id: OptionalId = None
    zip_code: Text = ""
    county: Text = ""
    formatted_address: Text = ""
    latitude: float | None = None
    longitude: float | None = None
    place_id: Text = ""
    address_validated: bool = False


class LanguageEntry(BaseModel):
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    language_id: Text = ""
    is_primary: bool = False


class LanguagesInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    languages: list[LanguageEntry] = Field(default_factory=list)


class Certificate(BaseModel):
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    certificate_type_id: Text = ""
    number: Text = ""
    issuing_org: Text = ""
    issue_date: OptionalDate = None
    expiry_date: OptionalDate = None
    issuing_region_id: OptionalId = None
    file: UploadedFile | None = None
    file_name: Text = ""
    is_existing: bool = False

    @property
    def is_complete(self) -> bool:
        """All four fields the backend requires are present."""
        return bool(
            self.certificate_type_id.strip()
            and self.number.strip()
            and self.issuing_org.strip()
            and self.expiry_date is not None
        )


class CertificatesInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_certified: bool | None = None
    certificates: list[Certificate] = Field(default_factory=list)


class ServiceTypesInput(BaseModel):
    """Optional bulk output of the service types step."""

    model_config = ConfigDict(frozen=True)

    selections: list[ServiceSelection] = Field(default_factory=list)


class W9Data(BaseModel):
    model_config = ConfigDict(frozen=True)

    business_name: Text = ""
    business_name_alt: Text = ""
    tax_classification: TaxClassification | None = TaxClassification.INDIVIDUAL
    llc_classification: Text = ""
    has_foreign_partners: bool = False
    exempt_payee_code: Text = ""
    fatca_exemption_code: Text = ""
    ssn: Text = ""
    ein: Text = ""
    address: Text = ""
    city: Text = ""
    state: Text = ""
    zip_code: Text = ""
    signature_name: Text = ""
    signature_date: Text = ""


class TaxForm(BaseModel):
    model_config = ConfigDict(frozen=True)

    entry_method: W9EntryMethod | None = None
    file: UploadedFile | None = None
    data: W9Data | None = None


class Agreements(BaseModel):
    model_config = ConfigDict(frozen=True)

    terms_accepted: bool = False
    privacy_policy_accepted: bool = False


STEP_SLICES: dict[WizardStep, type[BaseModel]] = {
    WizardStep.PERSONAL: PersonalInfo,
    WizardStep.ADDRESS: AddressInfo,
    WizardStep.LANGUAGES: LanguagesInput,
    WizardStep.CERTIFICATES: CertificatesInput,
    WizardStep.SERVICE_TYPES: ServiceTypesInput,
    WizardStep.TAX_FORM: TaxForm,
    WizardStep.REVIEW: Agreements,
}


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


class Draft(BaseModel):
    """Mutable profile document owned by one wizard session."""

    model_config = ConfigDict(validate_assignment=True)

    personal: PersonalInfo = Field(default_factory=PersonalInfo)
    address: AddressInfo = Field(default_factory=AddressInfo)
    languages: list[LanguageEntry] = Field(default_factory=list)
    is_certified: bool | None = None
    certificates: list[Certificate] = Field(default_factory=list)
    service_type_ids: list[str] = Field(default_factory=list)
    service_selections: dict[str, ServiceSelection] = Field(default_factory=dict)
    tax_form: TaxForm = Field(default_factory=TaxForm)
    terms_accepted: bool = False
    privacy_policy_accepted: bool = False

    # --- derived views ---

    @property
    def language_ids(self) -> list[str]:
        return [entry.language_id for entry in self.languages if entry.language_id]

    @property
    def held_certificate_type_ids(self) -> list[str]:
        """Certificate type ids that count towards eligibility."""
        if not self.is_certified:
            return []
        return [c.certificate_type_id for c in self.certificates if c.certificate_type_id]

    # --- merging ---

    def merge(self, step: WizardStep, output: BaseModel | dict[str, Any] | None) -> None:
        """Merge one step's output into the draft.

        *output* may be the step's slice model or a plain dict with the
        same fields. ``None`` leaves the draft unchanged.
        """
        if output is None:
            return
        slice_cls = STEP_SLICES[step]
        if not isinstance(output, slice_cls):
            output = slice_cls.model_validate(
                output.model_dump() if isinstance(output, BaseModel) else output
            )

        if isinstance(output, PersonalInfo):
            self.personal = output
        elif isinstance(output, AddressInfo):
            self.address = output
        elif isinstance(output, LanguagesInput):
            seen: set[str] = set()
            entries = []
            for entry in output.languages:
                if not entry.language_id.strip() or entry.language_id in seen:
                    continue
                seen.add(entry.language_id)
                entries.append(entry)
            self.languages = entries
        elif isinstance(output, CertificatesInput):
            self.is_certified = output.is_certified
            self.certificates = list(output.certificates) if output.is_certified else []
        elif isinstance(output, ServiceTypesInput):
            self.service_type_ids = []
            self.service_selections = {}
            for selection in output.selections:
                self.put_selection(selection)
        elif isinstance(output, TaxForm):
            self.tax_form = output
        elif isinstance(output, Agreements):
            self.terms_accepted = output.terms_accepted
            self.privacy_policy_accepted = output.privacy_policy_accepted

    # --- selections ---

    def put_selection(self, selection: ServiceSelection) -> None:
        """Add or replace the selection for its service type."""
        selections = dict(self.service_selections)
        selections[selection.service_type_id] = selection
        self.service_selections = selections
        if selection.service_type_id not in self.service_type_ids:
            self.service_type_ids = [*self.service_type_ids, selection.service_type_id]

    def remove_selection(self, service_type_id: str) -> bool:
        """Drop a service type and its selection. Returns False if absent."""
        service_type_id = str(service_type_id)
        if service_type_id not in self.service_selections:
            return False
        selections = dict(self.service_selections)
        del selections[service_type_id]
        self.service_selections = selections
        self.service_type_ids = [x for x in self.service_type_ids if x != service_type_id]
        return True

    def selections_in_order(self) -> list[ServiceSelection]:
        return [self.service_selections[x] for x in self.service_type_ids]


# ---------------------------------------------------------------------------
# Prefill from earlier submissions
# ---------------------------------------------------------------------------


def submission_from_profile(profile: dict[str, Any]) -> dict[str, Any]:
    """Reshape a ``GET /interpreters/profile`` payload into submission form.

    The approved-profile payload nests languages and service types as
    objects with ``id`` keys; rejected submissions use ``language_id`` /
    ``service_type_id``. Both are normalised to the latter.
    """
    w9_forms = profile.get("w9_forms") or []
    return {
        "interpreter": profile,
        "languages": [{"language_id": x.get("id")} for x in profile.get("languages") or []],
        "service_types": [
            {"service_type_id": x.get("id")} for x in profile.get("service_types") or []
        ],
        "service_rates": profile.get("service_rates") or [],
        "certificates": profile.get("certificates") or [],
        "w9": w9_forms[0] if w9_forms else None,
    }


def draft_from_submission(data: dict[str, Any]) -> Draft:
    """Rebuild a draft from ``original_submission_data``.

    Service rates are restored as stored; callers reconcile them against
    reference data (missing rates get the platform rate).
    """
    interpreter = data.get("interpreter") or {}
    certificates = data.get("certificates")
    w9 = data.get("w9")

    draft = Draft(
        personal=PersonalInfo(
            first_name=interpreter.get("first_name"),
            last_name=interpreter.get("last_name"),
            middle_name=interpreter.get("middle_name"),
            email=interpreter.get("email"),
            phone=interpreter.get("phone"),
            date_of_birth=_date_part(interpreter.get("date_of_birth")),
            gender=interpreter.get("gender"),
            business_name=interpreter.get("business_name"),
            sms_consent=bool(interpreter.get("sms_consent")),
            is_agency=bool(interpreter.get("is_agency")),
        ),
        address=AddressInfo(
            street_address=interpreter.get("street_address"),
            street_address_2=interpreter.get("street_address_2"),
            city=interpreter.get("city"),
            state_id=interpreter.get("state_id"),
            zip_code=interpreter.get("zip_code"),
            county=interpreter.get("county"),
            formatted_address=interpreter.get("formatted_address"),
            latitude=interpreter.get("latitude") or None,
            longitude=interpreter.get("longitude") or None,
            place_id=interpreter.get("place_id"),
            address_validated=bool(
                interpreter.get("latitude")
                and interpreter.get("longitude")
                and interpreter.get("place_id")
            ),
        ),
        languages=[
            LanguageEntry(language_id=x.get("language_id"), is_primary=bool(x.get("is_primary")))
            for x in data.get("languages") or []
        ],
        is_certified=None if certificates is None else bool(certificates),
        certificates=[_certificate_from_submission(x, i) for i, x in enumerate(certificates or [])],
        tax_form=_tax_form_from_submission(w9),
    )

    stored_rates = {str(r.get("service_type_id")): r for r in data.get("service_rates") or []}
    for entry in data.get("service_types") or []:
        service_type_id = str(entry.get("service_type_id"))
        raw = stored_rates.get(service_type_id)
        if raw is None or raw.get("rate_amount") in (None, ""):
            draft.service_type_ids = [*draft.service_type_ids, service_type_id]
            continue
        draft.put_selection(_selection_from_submission(service_type_id, raw))
    return draft


def draft_from_imported(data: dict[str, Any]) -> Draft:
    """Prefill a draft for an imported interpreter completing their profile."""
    address = data.get("address") or {}
    return Draft(
        personal=PersonalInfo(
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            middle_name=data.get("middleName"),
            email=data.get("email"),
            phone=data.get("phone"),
            business_name=data.get("businessName"),
        ),
        address=AddressInfo(
            street_address=address.get("street"),
            street_address_2=address.get("street2"),
            city=address.get("city"),
            state_id=address.get("stateId"),
            zip_code=address.get("zipCode"),
        ),
        languages=[
            LanguageEntry(language_id=x.get("language_id"), is_primary=bool(x.get("is_primary")))
            for x in data.get("languages") or []
        ],
        service_type_ids=[
            str(x.get("service_type_id")) for x in data.get("serviceTypes") or []
        ],
    )


def _date_part(value: Any) -> Any:
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    return value


def _certificate_from_submission(raw: dict[str, Any], index: int) -> Certificate:
    return Certificate(
        id=str(raw.get("id") or f"existing_{index}"),
        certificate_type_id=raw.get("certificate_type_id"),
        number=raw.get("certificate_number"),
        issuing_org=raw.get("issuing_organization"),
        issue_date=_date_part(raw.get("issue_date")),
        expiry_date=_date_part(raw.get("expiry_date")),
        issuing_region_id=raw.get("issuing_state_id") or raw.get("issuing_region_id"),
        file_name=raw.get("file_name"),
        is_existing=True,
    )


def _tax_form_from_submission(w9: dict[str, Any] | None) -> TaxForm:
    if not w9:
        return TaxForm()
    fields = {name: w9.get(name) for name in W9Data.model_fields if name in w9}
    return TaxForm(entry_method=W9EntryMethod.MANUAL, data=W9Data.model_validate(fields))


def _selection_from_submission(service_type_id: str, raw: dict[str, Any]) -> ServiceSelection:
    rate: dict[str, Any] = {"amount": raw["rate_amount"], "unit": raw.get("rate_unit") or "hours"}
    for source, target in (
        ("minimum_hours", "minimum_hours"),
        ("interval_minutes", "interval_minutes"),
        ("second_interval_rate_amount", "second_interval_amount"),
        ("second_interval_rate_unit", "second_interval_unit"),
    ):
        if raw.get(source) not in (None, ""):
            rate[target] = raw[source]

    overrides = {}
    for item in raw.get("language_rates") or []:
        overrides[str(item.get("language_id"))] = LanguageRate(
            amount="" if item.get("rate_amount") is None else str(item["rate_amount"]),
            unit=item.get("rate_unit") or rate["unit"],
        )

    return ServiceSelection(
        service_type_id=service_type_id,
        rate_type=RateType(raw.get("rate_type") or RateType.PLATFORM),
        rate=RateSpec.model_validate(rate),
        language_overrides=overrides,
    )
