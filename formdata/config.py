from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class MatchKey(str, Enum):
    """Which record attribute identifies an existing row on upsert."""

    EMAIL = "email"
    # historical scheme, kept selectable for tables keyed by the form's entry id
    ENTRY_ID = "entry_id"


class FieldMap(BaseModel):
    """Canonical record role -> identifier the form posts it under."""

    entry_id: str = "form-field-ehvmdc"
    email: str = "form-field-2ba381"
    phone: str = "form-field-vsjpsv"
    newsletter_consent: str = "form-field-wfejpt"
    email_consent: str = "form-field-vkpqeq"
    phone_sms_consent: str = "form-field-gakgwk"
    mail_consent: str = "form-field-ytzddf"
    terms_accepted: str = "form-field-csfous"
    token: Optional[str] = None

    @field_validator("*")
    @classmethod
    def _not_blank(cls, value):
        if value is not None and not value.strip():
            raise ValueError("field identifier must not be blank")
        return value.strip() if value is not None else value

    @model_validator(mode="after")
    def _unique(self) -> "FieldMap":
        seen = {}
        for role, ident in self.model_dump().items():
            if ident is None:
                continue
            if ident in seen:
                raise ValueError(f"{role} and {seen[ident]} both map to {ident!r}")
            seen[ident] = role
        return self


class Settings(BaseSettings):
    app_name: str = "form-data-manager"
    app_version: str = "2.6.0"

    data_dir: Path = Path("form-data")
    default_group: str = "submissions"
    # groups accepting submissions; empty means only the default group
    groups: List[str] = []
    timezone: str = "UTC"
    match_key: MatchKey = MatchKey.EMAIL
    field_map: FieldMap = FieldMap()

    # admin surface is disabled while no token is configured
    admin_token: Optional[str] = None
    secret_key: str = "change-me"
    nonce_max_age: int = 3600

    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(
        env_prefix="FORMDATA_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError:
            raise ValueError(f"unknown timezone {value!r}")
        return value

    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def allowed_groups(self) -> List[str]:
        return list(self.groups) or [self.default_group]


@lru_cache
def get_settings() -> Settings:
    return Settings()
