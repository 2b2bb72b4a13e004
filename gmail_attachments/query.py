"""Gmail search query builder for attachment searches."""

from gmail_attachments.config import DEFAULT_QUERY

ATTACHMENT_TYPE_QUERIES = {
    'pdf': 'filename:pdf',
    'doc': '(filename:doc OR filename:docx)',
    'xls': '(filename:xls OR filename:xlsx)',
    'img': '(filename:jpg OR filename:png OR filename:gif OR filename:jpeg)',
    'zip': '(filename:zip OR filename:rar OR filename:7z)',
}


def build_query(
    sender: str | None = None,
    subject: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    attachment_type: str | None = None,
    has_attachment: bool = False,
) -> str:
    """
    Build a Gmail search query from structured filters.

    Args:
        sender: Sender email address or name (optional)
        subject: Subject phrase, matched as a quoted phrase (optional)
        date_from: Only messages after this date (optional)
        date_to: Only messages before this date (optional)
        attachment_type: One of the ATTACHMENT_TYPE_QUERIES keys (optional)
        has_attachment: If True, add 'has:attachment'

    Returns:
        The query string, or 'has:attachment' when no filter is set

    Raises:
        ValueError: If attachment_type is not a known type
    """
    query_parts = []

    if sender and sender.strip():
        query_parts.append(f'from:{sender.strip()}')

    if subject and subject.strip():
        query_parts.append(f'subject:"{subject.strip()}"')

    # Handle date filters
    if date_from:
        query_parts.append(f'after:{date_from}')
    if date_to:
        query_parts.append(f'before:{date_to}')

    if attachment_type:
        try:
            query_parts.append(ATTACHMENT_TYPE_QUERIES[attachment_type])
        except KeyError:
            raise ValueError(
                f"Unknown attachment type '{attachment_type}'. "
                f'Expected one of: {", ".join(ATTACHMENT_TYPE_QUERIES)}'
            ) from None

    if has_attachment:
        query_parts.append('has:attachment')

    return ' '.join(query_parts) if query_parts else DEFAULT_QUERY
