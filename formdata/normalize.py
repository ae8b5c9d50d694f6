"""
Submission normalization.

Responsibilities:
- resolve raw posted values (radio/checkbox inputs arrive as lists)
- strip markup and control characters down to plain text
- map configured field identifiers onto a SubmissionRecord
- apply the newsletter override: declining the newsletter refuses every channel
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, tzinfo
from typing import Any, Mapping, Optional

from .config import FieldMap
from .models import SubmissionRecord
from .rules import CHANNEL_FIELDS, NEWSLETTER_DECLINED, NO, TIMESTAMP_FORMAT, YES

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_SPACE_RE = re.compile(r"\s+")
_EMAIL_BAD_CHARS_RE = re.compile(r"[^A-Za-z0-9.!#$%&'*+/=?^_`{|}~@-]")
_DOMAIN_LABEL_RE = re.compile(r"^[A-Za-z0-9-]+$")


def sanitize_text(value: Any) -> str:
    """Reduce an arbitrary value to a single line of plain text."""
    if value is None:
        return ""
    # lone surrogates (valid in JSON) cannot be stored as UTF-8
    text = str(value).encode("utf-8", "ignore").decode("utf-8")
    text = _TAG_RE.sub("", text)
    text = _CONTROL_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", text).strip()


def sanitize_email(value: Any) -> str:
    """Plain-text email address, or "" if the value cannot be one."""
    text = _EMAIL_BAD_CHARS_RE.sub("", sanitize_text(value))
    if text.count("@") != 1:
        return ""
    local, domain = text.split("@")
    if not local:
        return ""
    labels = domain.strip(".").split(".")
    if len(labels) < 2 or not all(label and _DOMAIN_LABEL_RE.match(label) for label in labels):
        return ""
    return f"{local}@{'.'.join(labels)}"


def resolve_value(raw: Any) -> str:
    """First element of a sequence, the value itself otherwise; sanitized."""
    if isinstance(raw, (list, tuple)):
        raw = raw[0] if raw else None
    return sanitize_text(raw)


def _lookup(fields: Mapping[str, Any], ident: Optional[str]) -> Optional[Any]:
    if ident is None or ident not in fields:
        return None
    return fields[ident]


def normalize_submission(
    fields: Mapping[str, Any],
    field_map: Optional[FieldMap] = None,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> SubmissionRecord:
    """
    Build the canonical record for one submission.

    Never raises on content: unknown identifiers are ignored and missing ones
    fall back to "" (text) or "No" (consents).
    """
    field_map = field_map or FieldMap()
    if now is None:
        now = datetime.now(tz)

    def get(role: str) -> str:
        return resolve_value(_lookup(fields, getattr(field_map, role)))

    newsletter = get("newsletter_consent")
    declined = newsletter == NEWSLETTER_DECLINED

    channels = {}
    for role in CHANNEL_FIELDS:
        raw = _lookup(fields, getattr(field_map, role))
        if declined:
            channels[role] = NO
            if raw is not None:
                logger.info("Overriding %s from %r to No: newsletter declined", role, raw)
        else:
            channels[role] = YES if resolve_value(raw) == YES else NO

    terms = get("terms_accepted")

    record = SubmissionRecord(
        entry_id=get("entry_id"),
        timestamp=now.strftime(TIMESTAMP_FORMAT),
        email=sanitize_email(get("email")),
        phone=get("phone"),
        newsletter_consent=newsletter,
        terms_accepted=YES if terms else NO,
        token=get("token"),
        **channels,
    )
    logger.debug(
        "Normalized submission entry_id=%r declined=%s consents=%s terms=%s",
        record.entry_id, declined, channels, record.terms_accepted,
    )
    return record
