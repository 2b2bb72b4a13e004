"""Helper utilities for turning Gmail API payloads into attachment models."""

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from gmail_attachments.attachments import date_key, extract_attachments
from gmail_attachments.models import EmailWithAttachments

NO_SUBJECT = 'No Subject'
UNKNOWN_SENDER = 'Unknown Sender'


def validate_date_format(date_str: str | None) -> bool:
    """
    Validate that a date string is in the format YYYY/MM/DD or YYYY-MM-DD.

    Args:
        date_str: The date string to validate

    Returns:
        bool: True if valid (or empty), False otherwise
    """
    if not date_str:
        return True

    if not re.match(r'^\d{4}[/-]\d{2}[/-]\d{2}$', date_str):
        return False

    try:
        datetime.strptime(date_str.replace('-', '/'), '%Y/%m/%d')
        return True
    except ValueError:
        return False


def get_headers_dict(message: dict[str, Any]) -> dict[str, str]:
    """
    Extract headers from a Gmail message into a dictionary.

    Missing payloads or header lists yield an empty dictionary.
    """
    headers = {}
    for header in (message.get('payload') or {}).get('headers') or []:
        name = header.get('name')
        if name:
            headers[name] = header.get('value', '')
    return headers


def parse_email_date(date_str: str | None) -> datetime:
    """
    Parse an RFC 2822 (or ISO-8601) Date header into an aware UTC datetime.

    Falls back to the current time when the header is missing or unparsable.
    """
    if date_str:
        try:
            dt = parsedate_to_datetime(date_str)
        except (ValueError, TypeError, IndexError):
            dt = _parse_iso(date_str)
        if dt is not None:
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt.astimezone(timezone.utc)

    return datetime.now(timezone.utc)


def _parse_iso(date_str: str) -> datetime | None:
    try:
        return datetime.fromisoformat(date_str.strip().replace('Z', '+00:00'))
    except ValueError:
        return None


def format_iso_timestamp(dt: datetime) -> str:
    """Format an aware datetime as a UTC ISO-8601 string ending in 'Z'."""
    return dt.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def build_email(message: dict[str, Any], message_id: str) -> EmailWithAttachments:
    """
    Build an EmailWithAttachments from a full Gmail message object.

    Missing headers are defaulted rather than treated as errors. The returned
    model may carry an empty attachment list; callers decide whether to keep it.

    Args:
        message: The Gmail message object (format=full)
        message_id: The message ID

    Returns:
        EmailWithAttachments instance
    """
    headers = get_headers_dict(message)
    email_date = parse_email_date(headers.get('Date'))

    return EmailWithAttachments(
        id=message_id,
        subject=headers.get('Subject') or NO_SUBJECT,
        sender=headers.get('From') or UNKNOWN_SENDER,
        date=format_iso_timestamp(email_date),
        date_string=date_key(email_date),
        attachments=extract_attachments(message.get('payload')),
    )
