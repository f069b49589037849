"""Tests for the submission assembler and its multipart rendering."""

from __future__ import annotations

import json
from datetime import date

import pytest

from interpreter_onboarding.domain.draft import Certificate, Draft, TaxForm, W9Data
from interpreter_onboarding.domain.rates import (
    CustomRate,
    apply_language_override,
    compute_effective_rate,
    platform_selection,
)
from interpreter_onboarding.domain.reference import ReferenceData
from interpreter_onboarding.domain.types import RateType, W9EntryMethod
from interpreter_onboarding.services.submission import assemble, to_json, to_multipart
from tests.conftest import (
    CALIFORNIA,
    CONFERENCE,
    COURT_CERT,
    GENERAL_CERT,
    MEDICAL,
    PHONE,
    SPANISH,
    complete_draft,
    pdf,
)


def _cert(id_: str, **overrides) -> Certificate:
    data = {
        "id": id_,
        "certificate_type_id": GENERAL_CERT,
        "number": f"N-{id_}",
        "issuing_org": "ATA",
        "expiry_date": date(2027, 1, 1),
    }
    data.update(overrides)
    return Certificate(**data)


class TestAssemble:
    def test_basic_payload(self, reference: ReferenceData, draft: Draft) -> None:
        submission = assemble(draft, reference)
        payload = submission.payload
        assert submission.kind == "create"
        assert payload["first_name"] == "Ana"
        assert payload["date_of_birth"] == "1990-05-01"
        assert payload["languages"] == [{"language_id": SPANISH}]
        assert payload["service_types"] == [CONFERENCE]
        assert payload["certificates_metadata"] == []
        assert payload["w9_entry_method"] == "upload"
        assert payload["w9_data"] is None
        assert submission.w9_file is not None

    def test_service_rates_flattened(self, reference: ReferenceData, draft: Draft) -> None:
        rate = draft.service_selections[CONFERENCE]
        draft.put_selection(
            apply_language_override(rate, SPANISH, "55", draft_language_ids=[SPANISH])
        )
        (entry,) = assemble(draft, reference).payload["service_rates"]
        assert entry == {
            "service_type_id": CONFERENCE,
            "rate_type": "platform",
            "rate_amount": "50.00",
            "rate_unit": "hours",
            "minimum_hours": "1",
            "interval_minutes": 60,
            "second_interval_rate_amount": None,
            "second_interval_rate_unit": None,
            "language_rates": [{"language_id": SPANISH, "rate_amount": "55", "rate_unit": "hours"}],
        }

    @pytest.mark.parametrize("amount", ["", "   ", "n/a"])
    def test_non_numeric_overrides_dropped(
        self, reference: ReferenceData, draft: Draft, amount: str
    ) -> None:
        selection = apply_language_override(
            draft.service_selections[CONFERENCE], SPANISH, amount, draft_language_ids=[SPANISH]
        )
        assert SPANISH in selection.language_overrides
        draft.put_selection(selection)
        (entry,) = assemble(draft, reference).payload["service_rates"]
        assert entry["language_rates"] == []

    def test_second_tier_serialised(self, reference: ReferenceData) -> None:
        draft = complete_draft(
            reference,
            is_certified=True,
            certificates=[_cert("m", certificate_type_id="11")],
        )
        medical = reference.service_type(MEDICAL)
        rate = compute_effective_rate(
            medical,
            RateType.CUSTOM,
            custom=CustomRate(amount="70", unit="hours", second_interval_amount="52.5"),
        )
        draft.put_selection(
            platform_selection(medical, []).model_copy(
                update={"rate_type": RateType.CUSTOM, "rate": rate}
            )
        )
        entries = assemble(draft, reference).payload["service_rates"]
        medical_entry = next(e for e in entries if e["service_type_id"] == MEDICAL)
        assert medical_entry["rate_type"] == "custom"
        assert medical_entry["second_interval_rate_amount"] == "52.5"
        assert medical_entry["second_interval_rate_unit"] == "hours"

    def test_incomplete_certificates_dropped_with_files(
        self, reference: ReferenceData
    ) -> None:
        complete = _cert("a", file=pdf("a.pdf"))
        partial = _cert("b", number="", file=pdf("b.pdf"))
        no_expiry = _cert("c", expiry_date=None)
        also_complete = _cert("d", file=pdf("d.pdf"))
        draft = complete_draft(
            reference, is_certified=True, certificates=[complete, partial, no_expiry, also_complete]
        )
        submission = assemble(draft, reference)
        metadata = submission.payload["certificates_metadata"]
        assert [m["certificate_number"] for m in metadata] == ["N-a", "N-d"]
        assert [m["file_index"] for m in metadata] == [0, 1]
        assert [f.filename for f in submission.certificate_files] == ["a.pdf", "d.pdf"]

    def test_region_sent_only_for_court_family(self, reference: ReferenceData) -> None:
        draft = complete_draft(
            reference,
            is_certified=True,
            certificates=[
                _cert("a", certificate_type_id=COURT_CERT, issuing_region_id=CALIFORNIA),
                _cert("b", issuing_region_id=CALIFORNIA),
            ],
        )
        metadata = assemble(draft, reference).payload["certificates_metadata"]
        assert metadata[0]["issuing_state_id"] == CALIFORNIA
        assert metadata[1]["issuing_state_id"] is None

    def test_uncertified_sends_no_certificates(self, reference: ReferenceData) -> None:
        draft = complete_draft(reference)
        draft.certificates = [_cert("a")]
        assert assemble(draft, reference).payload["certificates_metadata"] == []

    def test_manual_w9(self, reference: ReferenceData) -> None:
        tax_form = TaxForm(
            entry_method=W9EntryMethod.MANUAL,
            data=W9Data(
                business_name="Ana Lopez",
                ssn="123-45-6789",
                address="100 Main St",
                city="Los Angeles",
                state="CA",
                zip_code="90012",
            ),
        )
        submission = assemble(complete_draft(reference, tax_form=tax_form), reference)
        assert submission.w9_file is None
        assert submission.payload["w9_entry_method"] == "manual"
        assert submission.payload["w9_data"]["tax_classification"] == "individual"
        assert submission.payload["w9_data"]["ssn"] == "123-45-6789"

    def test_rejection_token_only_on_create(self, reference: ReferenceData, draft: Draft) -> None:
        created = assemble(draft, reference, kind="create", rejection_token="rej-1")
        updated = assemble(draft, reference, kind="update", rejection_token="rej-1")
        assert created.payload["rejection_token"] == "rej-1"
        assert updated.payload["rejection_token"] is None

    def test_completion_token(self, reference: ReferenceData, draft: Draft) -> None:
        submission = assemble(draft, reference, kind="completion", completion_token="tok")
        assert submission.payload["completion_token"] == "tok"

    def test_create_and_update_assemble_identically(
        self, reference: ReferenceData, draft: Draft
    ) -> None:
        created = assemble(draft, reference, kind="create").payload
        updated = assemble(draft, reference, kind="update").payload
        assert created == updated

    def test_only_listed_selections_sent(self, reference: ReferenceData) -> None:
        draft = complete_draft(reference)
        draft.service_type_ids = []
        assert assemble(draft, reference).payload["service_rates"] == []


class TestRendering:
    def test_multipart(self, reference: ReferenceData, draft: Draft) -> None:
        draft.certificates = []
        submission = assemble(draft, reference, rejection_token="rej-1")
        data, files = to_multipart(submission)
        assert data["first_name"] == "Ana"
        assert data["sms_consent"] == "true"
        assert data["is_agency"] == "false"
        assert json.loads(data["languages"]) == [{"language_id": SPANISH}]
        assert json.loads(data["service_types"]) == [CONFERENCE]
        assert json.loads(data["service_rates"])[0]["rate_amount"] == "50.00"
        assert data["rejection_token"] == "rej-1"
        assert "completion_token" not in data
        assert "w9_data" not in data
        assert files == [("w9_file", ("w9.pdf", b"%PDF-1.4 test", "application/pdf"))]

    def test_service_types_are_plain_ids(self, reference: ReferenceData, draft: Draft) -> None:
        draft.put_selection(platform_selection(reference.service_type(PHONE), ["Spanish"]))
        data, _ = to_multipart(assemble(draft, reference))
        assert json.loads(data["service_types"]) == [CONFERENCE, PHONE]
        rate_ids = [r["service_type_id"] for r in json.loads(data["service_rates"])]
        assert rate_ids == [CONFERENCE, PHONE]

    def test_certificate_files_precede_w9(self, reference: ReferenceData) -> None:
        draft = complete_draft(reference, is_certified=True, certificates=[_cert("a", file=pdf("a.pdf"))])
        _, files = to_multipart(assemble(draft, reference))
        assert [name for name, _ in files] == ["certificates", "w9_file"]

    def test_json_body(self, reference: ReferenceData, draft: Draft) -> None:
        body = to_json(assemble(draft, reference, kind="completion", completion_token="tok"))
        assert body["completion_token"] == "tok"
        assert "rejection_token" not in body
        assert body["languages"] == [{"language_id": SPANISH}]
