import pytest
from pydantic import ValidationError

from formdata.config import MatchKey, Settings


def test_defaults():
    s = Settings(_env_file=None)
    assert s.match_key is MatchKey.EMAIL
    assert s.field_map.email == "form-field-2ba381"
    assert s.field_map.token is None
    assert s.admin_token is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("FORMDATA_MATCH_KEY", "entry_id")
    monkeypatch.setenv("FORMDATA_FIELD_MAP__TOKEN", "form-field-token")
    monkeypatch.setenv("FORMDATA_TIMEZONE", "Europe/Berlin")
    s = Settings(_env_file=None)
    assert s.match_key is MatchKey.ENTRY_ID
    assert s.field_map.token == "form-field-token"
    assert s.field_map.email == "form-field-2ba381"
    assert s.tzinfo().key == "Europe/Berlin"


def test_unknown_timezone_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, timezone="Mars/Olympus_Mons")


def test_field_map_collision_rejected_at_startup():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, field_map={"email": "form-field-vsjpsv"})


def test_allowed_groups_default_to_default_group():
    assert Settings(_env_file=None).allowed_groups() == ["submissions"]
    s = Settings(_env_file=None, groups=["contact", "newsletter"])
    assert s.allowed_groups() == ["contact", "newsletter"]
