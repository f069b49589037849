"""Tests for typed payload contracts at service/adapter boundaries."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from interpreter_onboarding.domain.draft import Draft
from interpreter_onboarding.domain.reference import ReferenceData
from interpreter_onboarding.services.contracts import (
    CertificateMetadata,
    ServiceRatePayload,
    StepStateData,
    SubmissionPayload,
    SubmissionResultData,
    W9DataPayload,
    dump_validated,
)
from interpreter_onboarding.services.submission import assemble
from interpreter_onboarding.services.wizard import WizardService
from tests.conftest import start_session


class TestPayloadContracts:
    def test_assembled_payload_conforms(self, reference: ReferenceData, draft: Draft) -> None:
        payload = SubmissionPayload.model_validate(assemble(draft, reference).payload)
        assert payload.service_rates[0].rate_type == "platform"
        assert payload.certificates_metadata == []

    def test_step_state_conforms(self, wizard: WizardService) -> None:
        session = start_session(wizard)
        result = wizard.retreat(session)
        payload = StepStateData.model_validate(result.data)
        assert payload.current_step == 1
        assert payload.visited_steps == [1]

    def test_dump_validated_normalises(self) -> None:
        data = dump_validated(
            CertificateMetadata,
            {
                "certificate_type_id": "10",
                "certificate_number": "CA-1",
                "issuing_organization": "Judicial Council",
                "expiry_date": "2027-03-01",
            },
        )
        assert data["issuing_state_id"] is None
        assert data["file_index"] is None
        assert data["is_existing"] is False

    def test_certificates_key_is_metadata(self, reference: ReferenceData, draft: Draft) -> None:
        payload = assemble(draft, reference).payload
        assert "certificates_metadata" in payload
        assert "certificates" not in payload

    def test_rate_type_rejects_unknown(self) -> None:
        with pytest.raises(ValidationError):
            ServiceRatePayload.model_validate(
                {
                    "service_type_id": "1",
                    "rate_type": "negotiated",
                    "rate_amount": "10",
                    "rate_unit": "hours",
                    "minimum_hours": "1",
                    "interval_minutes": 60,
                }
            )

    def test_w9_rejects_unknown_field(self) -> None:
        with pytest.raises(ValidationError):
            W9DataPayload.model_validate(
                {
                    "business_name": "Ana Lopez",
                    "tax_classification": "individual",
                    "address": "100 Main St",
                    "city": "Los Angeles",
                    "state": "CA",
                    "zip_code": "90012",
                    "routing_number": "123",
                }
            )

    def test_submission_result_rejects_unknown_kind(self) -> None:
        with pytest.raises(ValidationError):
            SubmissionResultData.model_validate(
                {"session_id": "s", "kind": "delete", "message": "ok"}
            )
