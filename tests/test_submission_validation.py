"""Unit tests for submission and status update payload validation."""

import pytest

from directory_api.core.errors import ValidationAppError
from directory_api.core.validation import validate_submission_payload, validate_update_payload
from directory_api.schemas.submission import SubmissionStatus


class TestValidSubmissions:
    """Payloads that must pass validation."""

    def test_accepts_full_payload(self, valid_payload) -> None:
        draft = validate_submission_payload(valid_payload)

        assert draft.name == valid_payload["name"]
        assert draft.url == valid_payload["url"]
        assert draft.tags == ["dataset", "video"]
        assert draft.disciplines == ["education", "psychology"]

    def test_optional_fields_default_to_empty(self) -> None:
        draft = validate_submission_payload(
            {
                "name": "ERIC",
                "url": "http://eric.ed.gov",
                "captcha": {"a": 1, "b": 2, "op": "+", "answer": 3},
            }
        )

        assert draft.description == ""
        assert draft.contact == ""
        assert draft.page == ""
        assert draft.tags == []
        assert draft.disciplines == []

    def test_strings_are_trimmed(self, payload_factory) -> None:
        draft = validate_submission_payload(
            payload_factory(name="  ERIC  ", tags=["  dataset "], disciplines=[" math "])
        )

        assert draft.name == "ERIC"
        assert draft.tags == ["dataset"]
        assert draft.disciplines == ["math"]

    def test_captcha_op_defaults_to_plus(self, payload_factory) -> None:
        draft = validate_submission_payload(payload_factory(captcha={"a": 10, "b": 5, "answer": 15}))

        assert draft.captcha.op == "+"

    def test_captcha_accepts_numeric_strings(self, payload_factory) -> None:
        draft = validate_submission_payload(payload_factory(captcha={"a": "3", "b": "4", "op": "+", "answer": "7"}))

        assert draft.captcha.answer == 7

    def test_unknown_fields_are_ignored(self, payload_factory) -> None:
        draft = validate_submission_payload(payload_factory(status="approved", ip="1.2.3.4"))

        assert not hasattr(draft, "status")

    def test_bounds_are_inclusive(self, payload_factory) -> None:
        validate_submission_payload(
            payload_factory(
                name="x" * 120,
                description="d" * 2000,
                contact="c" * 200,
                tags=["t" * 40] * 20,
                disciplines=["ab"] * 20,
            )
        )


class TestCaptcha:
    def test_correct_answer_accepted(self, payload_factory) -> None:
        validate_submission_payload(payload_factory(captcha={"a": 3, "b": 4, "op": "+", "answer": 7}))

    def test_wrong_answer_rejected(self, payload_factory) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            validate_submission_payload(payload_factory(captcha={"a": 3, "b": 4, "op": "+", "answer": 8}))

        assert exc_info.value.code == "captcha_failed"
        assert exc_info.value.message == "Captcha failed"

    @pytest.mark.parametrize(
        "captcha",
        [
            {"a": 3, "b": 4, "op": "-", "answer": -1},
            {"a": 3, "b": 4, "op": "*", "answer": 12},
            {"a": 3, "b": 4, "op": "+"},
            {"a": "three", "b": 4, "op": "+", "answer": 7},
            {},
            "7",
        ],
    )
    def test_malformed_or_unsupported_captcha_rejected(self, payload_factory, captcha) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            validate_submission_payload(payload_factory(captcha=captcha))

        assert exc_info.value.code == "captcha_failed"

    def test_missing_captcha_rejected(self, payload_factory) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            validate_submission_payload(payload_factory(captcha=None))

        assert exc_info.value.code == "captcha_failed"


class TestFieldErrors:
    """Each invalid field is reported with its own code."""

    @pytest.mark.parametrize(
        ("overrides", "expected_code"),
        [
            ({"name": None}, "invalid_name"),
            ({"name": "x"}, "invalid_name"),
            ({"name": "   x   "}, "invalid_name"),
            ({"name": "x" * 121}, "invalid_name"),
            ({"name": 42}, "invalid_name"),
            ({"url": None}, "invalid_url"),
            ({"url": "not a url"}, "invalid_url"),
            ({"url": "ftp://files.example.org/data"}, "invalid_url"),
            ({"url": "javascript:alert(1)"}, "invalid_url"),
            ({"url": "https://"}, "invalid_url"),
            ({"description": "d" * 2001}, "invalid_description"),
            ({"description": ["not", "text"]}, "invalid_description"),
            ({"contact": "c" * 201}, "invalid_contact"),
            ({"tags": "dataset"}, "invalid_tags"),
            ({"tags": ["ok"] * 21}, "invalid_tags"),
            ({"tags": [""]}, "invalid_tags"),
            ({"tags": ["t" * 41]}, "invalid_tags"),
            ({"tags": [7]}, "invalid_tags"),
            ({"disciplines": ["m"]}, "invalid_disciplines"),
            ({"disciplines": ["x" * 21]}, "invalid_disciplines"),
            ({"disciplines": ["ab"] * 21}, "invalid_disciplines"),
            ({"page": 12}, "invalid_page"),
        ],
    )
    def test_field_error_codes(self, payload_factory, overrides, expected_code) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            validate_submission_payload(payload_factory(**overrides))

        assert exc_info.value.code == expected_code

    def test_null_description_rejected(self, valid_payload) -> None:
        payload = dict(valid_payload, description=None)

        with pytest.raises(ValidationAppError) as exc_info:
            validate_submission_payload(payload)

        assert exc_info.value.code == "invalid_description"

    def test_first_failing_field_wins(self, payload_factory) -> None:
        payload = payload_factory(
            url="nope",
            tags=["t" * 41],
            captcha={"a": 1, "b": 1, "op": "+", "answer": 3},
        )

        with pytest.raises(ValidationAppError) as exc_info:
            validate_submission_payload(payload)

        assert exc_info.value.code == "invalid_url"

    def test_field_errors_reported_before_captcha(self, payload_factory) -> None:
        payload = payload_factory(contact="c" * 500, captcha={"a": 1, "b": 1, "answer": 5})

        with pytest.raises(ValidationAppError) as exc_info:
            validate_submission_payload(payload)

        assert exc_info.value.code == "invalid_contact"


class TestStatusUpdateValidation:
    def test_accepts_valid_update(self) -> None:
        update = validate_update_payload({"id": "abc", "status": "approved", "note": "looks good"})

        assert update.id == "abc"
        assert update.status is SubmissionStatus.APPROVED
        assert update.note == "looks good"

    def test_note_is_optional(self) -> None:
        update = validate_update_payload({"id": "abc", "status": "rejected"})

        assert update.note is None

    @pytest.mark.parametrize(
        ("payload", "expected_code"),
        [
            ({"status": "approved"}, "missing_id"),
            ({"id": "", "status": "approved"}, "missing_id"),
            ({"id": 12, "status": "approved"}, "missing_id"),
            ({"id": "abc", "status": "deleted"}, "invalid_status"),
            ({"id": "abc"}, "invalid_status"),
            ({"id": "abc", "status": "approved", "note": ["x"]}, "invalid_note"),
        ],
    )
    def test_update_error_codes(self, payload, expected_code) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            validate_update_payload(payload)

        assert exc_info.value.code == expected_code
