"""Attachment extraction and local filename derivation."""

from datetime import datetime, timezone
from typing import Any

from gmail_attachments.models import AttachmentInfo

DEFAULT_MIME_TYPE = 'application/octet-stream'
MAX_FILENAME_LENGTH = 200


def is_attachment_part(part: dict[str, Any]) -> bool:
    """Return True if the part carries both a filename and an attachment ID."""
    return bool(part.get('filename') and (part.get('body') or {}).get('attachmentId'))


def extract_attachments(payload: dict[str, Any] | None) -> list[AttachmentInfo]:
    """
    Collect every attachment in a message part tree.

    The tree is walked depth-first, pre-order, starting at the payload itself
    so single-part messages are covered too. A qualifying part is emitted and
    its children are still visited.

    Args:
        payload: The 'payload' part of a Gmail message (format=full)

    Returns:
        Attachments in traversal order; empty if the message has none
    """
    attachments = []
    if not payload:
        return attachments

    stack = [payload]
    while stack:
        part = stack.pop()
        if is_attachment_part(part):
            body = part['body']
            attachments.append(
                AttachmentInfo(
                    filename=part['filename'],
                    attachment_id=body['attachmentId'],
                    mime_type=part.get('mimeType') or DEFAULT_MIME_TYPE,
                    size=int(body.get('size') or 0),
                )
            )

        # Push children reversed so the first child is visited next
        stack.extend(reversed(part.get('parts') or []))

    return attachments


def sanitize_filename(filename: str) -> str:
    """
    Sanitize a filename to prevent path traversal and ensure safe file operations.

    Path separators, control characters and anything else outside a conservative
    set become underscores, so the result is safe both on disk and inside a
    quoted Content-Disposition header.

    Args:
        filename: The filename to sanitize

    Returns:
        Sanitized filename safe for file system operations
    """
    # Replace invalid characters with underscores
    safe_filename = ''.join(c if c.isalnum() or c in '.-_ ' else '_' for c in filename)

    # Ensure filename doesn't start with a dot (hidden file or '..')
    if not safe_filename or safe_filename.startswith('.'):
        safe_filename = 'file_' + safe_filename

    # Limit length, keeping a short extension when there is one
    if len(safe_filename) > MAX_FILENAME_LENGTH:
        stem, dot, ext = safe_filename.rpartition('.')
        if dot and 0 < len(ext) <= 10:
            safe_filename = stem[: MAX_FILENAME_LENGTH - len(ext) - 1] + '.' + ext
        else:
            safe_filename = safe_filename[:MAX_FILENAME_LENGTH]

    return safe_filename


def date_key(timestamp: datetime | str) -> str:
    """
    Return the UTC calendar date of a timestamp as YYYY-MM-DD.

    Naive datetimes are taken to be UTC. Strings must be ISO-8601.
    """
    if isinstance(timestamp, str):
        timestamp = datetime.fromisoformat(timestamp.strip().replace('Z', '+00:00'))
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).date().isoformat()


def derive_filename(timestamp: datetime | str, filename: str) -> str:
    """
    Build the local filename for an attachment: '<YYYY-MM-DD>_<filename>'.

    Example:
        ('2024-03-05T10:00:00Z', 'invoice.pdf') -> '2024-03-05_invoice.pdf'
    """
    return f'{date_key(timestamp)}_{sanitize_filename(filename)}'
