from datetime import datetime

import pytest
from pydantic import ValidationError

from formdata.config import FieldMap
from formdata.normalize import normalize_submission, resolve_value, sanitize_email, sanitize_text

FM = FieldMap()
NOW = datetime(2024, 5, 17, 9, 30, 5)


def submit(**by_role):
    fields = {getattr(FM, role): value for role, value in by_role.items()}
    return normalize_submission(fields, FM, now=NOW)


def test_declined_newsletter_refuses_every_channel():
    record = submit(
        newsletter_consent="I do not agree",
        email_consent="Yes",
        phone_sms_consent=["Yes"],
        mail_consent="Yes",
    )
    assert record.newsletter_consent == "I do not agree"
    assert (record.email_consent, record.phone_sms_consent, record.mail_consent) == ("No", "No", "No")


def test_channels_follow_their_own_answers_otherwise():
    record = submit(newsletter_consent="Yes", email_consent="Yes", phone_sms_consent="No")
    assert record.email_consent == "Yes"
    assert record.phone_sms_consent == "No"
    assert record.mail_consent == "No"


@pytest.mark.parametrize("answer", ["yes", "YES", " Yes", "Y", "1", "", None, []])
def test_only_exact_yes_counts(answer):
    record = submit(newsletter_consent="I agree", email_consent=answer)
    expected = "Yes" if answer == " Yes" else "No"  # surrounding whitespace is trimmed
    assert record.email_consent == expected


def test_terms_accepted_on_presence_alone():
    assert submit().terms_accepted == "No"
    assert submit(terms_accepted="on").terms_accepted == "Yes"
    assert submit(terms_accepted=["I accept the terms"]).terms_accepted == "Yes"
    assert submit(terms_accepted="   ").terms_accepted == "No"
    assert submit(terms_accepted=[]).terms_accepted == "No"


def test_list_values_use_first_element():
    record = submit(newsletter_consent=["I do not agree", "Yes"], phone=["+49 30 1234", "ignored"])
    assert record.newsletter_consent == "I do not agree"
    assert record.phone == "+49 30 1234"


def test_defaults_for_empty_submission():
    record = normalize_submission({}, FM, now=NOW)
    assert record.model_dump() == {
        "entry_id": "",
        "timestamp": "2024-05-17 09:30:05",
        "email": "",
        "phone": "",
        "newsletter_consent": "",
        "email_consent": "No",
        "phone_sms_consent": "No",
        "mail_consent": "No",
        "terms_accepted": "No",
        "token": "",
    }


def test_unknown_identifiers_are_ignored():
    record = normalize_submission({"something-else": "Yes", "form-field-xyz": ["a", "b"]}, FM, now=NOW)
    assert record.email == ""
    assert record.email_consent == "No"


def test_full_submission_maps_all_roles():
    fm = FieldMap(token="form-token")
    fields = {
        "form-field-ehvmdc": "42",
        "form-field-2ba381": " Jane@Example.com ",
        "form-field-vsjpsv": "555-0100",
        "form-field-wfejpt": ["I agree"],
        "form-field-vkpqeq": ["Yes"],
        "form-field-gakgwk": ["No"],
        "form-field-ytzddf": ["Yes"],
        "form-field-csfous": ["on"],
        "form-token": "tok-1",
    }
    record = normalize_submission(fields, fm, now=NOW)
    assert record.entry_id == "42"
    assert record.email == "Jane@Example.com"
    assert record.phone == "555-0100"
    assert (record.email_consent, record.phone_sms_consent, record.mail_consent) == ("Yes", "No", "Yes")
    assert record.terms_accepted == "Yes"
    assert record.token == "tok-1"


def test_timestamp_defaults_to_current_time():
    record = normalize_submission({}, FM)
    datetime.strptime(record.timestamp, "%Y-%m-%d %H:%M:%S")


def test_sanitize_text_strips_markup_and_controls():
    assert sanitize_text("<b>Hello</b>\n\tworld\x00 ") == "Hello world"
    assert sanitize_text(None) == ""
    assert sanitize_text(12) == "12"


def test_resolve_value():
    assert resolve_value(["Yes", "No"]) == "Yes"
    assert resolve_value([]) == ""
    assert resolve_value(("  spaced  ",)) == "spaced"
    assert resolve_value(None) == ""


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("a@x.com", "a@x.com"),
        (" A@X.com ", "A@X.com"),
        ("<a@x.com>", ""),
        ("not-an-email", ""),
        ("a@b@c.com", ""),
        ("a@localhost", ""),
        ("jo hn@x.com", "john@x.com"),
    ],
)
def test_sanitize_email(raw, expected):
    assert sanitize_email(raw) == expected


def test_field_map_rejects_duplicate_identifiers():
    with pytest.raises(ValidationError):
        FieldMap(email="form-field-vsjpsv")


def test_field_map_rejects_blank_identifier():
    with pytest.raises(ValidationError):
        FieldMap(phone="  ")


def test_sanitize_text_drops_c1_controls_and_lone_surrogates():
    assert sanitize_text("a\x9bb\x80c") == "a b c"
    assert sanitize_text("12\ud80034") == "1234"
