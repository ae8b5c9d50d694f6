"""
Deterministic storage and consent rules.

Kept in one place so the stored layout and the consent literals cannot drift
between the normalizer, the store and the exporters.
"""

TARGET_ENCODING = "utf-8-sig"  # UTF-8 with BOM, opens cleanly in Excel
NORMALIZED_DELIMITER = ","
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

YES = "Yes"
NO = "No"
NEWSLETTER_DECLINED = "I do not agree"

CHANNEL_FIELDS = ("email_consent", "phone_sms_consent", "mail_consent")

# record attribute -> column title, in file order
COLUMNS = {
    "entry_id": "Entry ID",
    "timestamp": "Timestamp",
    "email": "Email",
    "phone": "Phone",
    "newsletter_consent": "Newsletter Consent",
    "email_consent": "E-Mail Consent",
    "phone_sms_consent": "Phone/SMS Consent",
    "mail_consent": "Mail Consent",
    "terms_accepted": "Terms Accepted",
    "token": "Token",
}
HEADER = list(COLUMNS.values())
REQUIRED_COLUMNS = ("Email",)

SHEET_TITLE = "Form Submissions"
DOWNLOAD_PREFIX = "form-submissions"
PREVIEW_ROWS = 10

NONCE_ACTIONS = ("download_table", "clear_table")
