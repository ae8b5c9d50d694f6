from __future__ import annotations

from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from .rules import CHANNEL_FIELDS, NEWSLETTER_DECLINED, NO, YES

YesNo = Literal["Yes", "No"]


class SubmissionRecord(BaseModel):
    entry_id: str = ""
    timestamp: str = ""
    email: str = ""
    phone: str = ""
    newsletter_consent: str = ""
    email_consent: YesNo = NO
    phone_sms_consent: YesNo = NO
    mail_consent: YesNo = NO
    terms_accepted: YesNo = NO
    token: str = ""

    @field_validator(
        "email_consent", "phone_sms_consent", "mail_consent", "terms_accepted",
        mode="before",
    )
    @classmethod
    def _strict_yes(cls, value):
        # anything but the exact literal is a refusal
        return YES if value == YES else NO

    @field_validator(
        "entry_id", "timestamp", "email", "phone", "newsletter_consent", "token",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("email", mode="before")
    @classmethod
    def _trim_email(cls, value):
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _declined_newsletter_blocks_channels(self) -> "SubmissionRecord":
        if self.newsletter_consent == NEWSLETTER_DECLINED:
            for name in CHANNEL_FIELDS:
                setattr(self, name, NO)
        return self

    def email_key(self) -> str:
        return self.email.strip().lower()


class SubmissionResponse(BaseModel):
    status: Literal["created", "updated"]
    group: str
    rows: int
    record: SubmissionRecord


class DashboardSummary(BaseModel):
    group: str
    file_exists: bool
    total_submissions: int = 0
    latest_submission: str = Field(default="N/A")
    file_size: int = 0
    file_size_human: str = "0 B"
    recent: List[SubmissionRecord] = Field(default_factory=list)


class NonceResponse(BaseModel):
    action: str
    nonce: str


class ClearResponse(BaseModel):
    group: str
    cleared: bool


class LoadReport(BaseModel):
    """What the codec had to do to turn stored bytes into rows."""

    encoding_detected: Optional[str] = None
    decode_used: str = "utf-8-sig"
    decode_fallback: bool = False
    delimiter: str = ","
    short_rows_padded: int = 0
    long_rows_truncated: int = 0
    unknown_columns: List[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    ok: bool = True
