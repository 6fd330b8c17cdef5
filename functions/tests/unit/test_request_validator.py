"""Unit tests for request payload validation."""

import pytest

from config.errors import ErrorCode, ValidationError
from models.completed_job import JobOutcome
from models.service_request import ServiceRequest
from validators.request_validator import (
    require_valid,
    validate_job_outcome,
    validate_service_request,
)


class TestValidateServiceRequest:
    """Tests for validate_service_request."""

    def test_camel_case_payload(self):
        result = validate_service_request({
            "text": "  Fix my leaking kitchen faucet  ",
            "urgent": True,
            "location": "Austin, TX",
            "propertyType": "condo",
            "photos": ["https://example.com/faucet.jpg"],
        })

        assert result.is_valid
        request = result.parsed
        assert isinstance(request, ServiceRequest)
        assert request.description == "Fix my leaking kitchen faucet"
        assert request.urgent is True
        assert request.address == "Austin, TX"
        assert request.property_type == "condo"
        assert request.photos == ["https://example.com/faucet.jpg"]

    def test_snake_case_payload(self):
        result = validate_service_request({"description": "Mow the lawn", "property_type": "single_family"})
        assert result.is_valid
        assert result.parsed.property_type == "single_family"

    def test_unknown_keys_ignored(self):
        result = validate_service_request({"text": "Mow the lawn", "sessionId": "sess-1"})
        assert result.is_valid

    @pytest.mark.parametrize("payload", [
        {},
        {"text": ""},
        {"text": "   "},
        {"text": None, "urgent": True},
    ])
    def test_empty_text(self, payload):
        result = validate_service_request(payload)

        assert result.is_valid is False
        assert result.code == ErrorCode.EMPTY_REQUEST_TEXT

    def test_wrong_type(self):
        result = validate_service_request({"text": "Mow the lawn", "urgent": "sometimes"})

        assert result.is_valid is False
        assert result.code == ErrorCode.INVALID_FIELD
        assert result.errors[0].startswith("urgent")

    def test_not_a_dict(self):
        result = validate_service_request(["Mow the lawn"])
        assert result.is_valid is False
        assert result.errors == ["Request body must be a JSON object"]


class TestValidateJobOutcome:
    """Tests for validate_job_outcome."""

    def test_valid_outcome(self):
        result = validate_job_outcome({
            "sessionId": "sess-1",
            "actualManHours": 2.5,
            "actualCost": 31000,
            "customerRating": 5,
            "issuesEncountered": "Corroded shutoff valve",
            "materialsUsed": ["1/2in copper coupling"],
        })

        outcome = result.parsed
        assert isinstance(outcome, JobOutcome)
        assert outcome.actual_man_hours == 2.5
        assert outcome.actual_cost == 31000
        assert outcome.materials_used == ["1/2in copper coupling"]

    @pytest.mark.parametrize("payload", [
        {"customerRating": 6},
        {"customerRating": 0},
        {"actualCost": -100},
        {"actualManHours": -1},
    ])
    def test_out_of_range(self, payload):
        assert validate_job_outcome(payload).is_valid is False

    def test_all_fields_optional(self):
        result = validate_job_outcome({})
        assert result.is_valid
        assert result.parsed.actual_cost is None


class TestRequireValid:
    """Tests for require_valid."""

    def test_returns_parsed(self):
        request = require_valid(validate_service_request({"text": "Mow the lawn"}))
        assert request.description == "Mow the lawn"

    def test_raises_with_code_and_errors(self):
        with pytest.raises(ValidationError) as exc_info:
            require_valid(validate_service_request({"text": ""}))

        assert exc_info.value.code == ErrorCode.EMPTY_REQUEST_TEXT
        assert exc_info.value.details["errors"] == ["text: request text must not be empty"]

    def test_collects_every_problem(self):
        with pytest.raises(ValidationError) as exc_info:
            require_valid(validate_job_outcome({"customerRating": 9, "actualCost": -1}))

        assert exc_info.value.code == ErrorCode.INVALID_FIELD
        assert len(exc_info.value.details["errors"]) == 2
