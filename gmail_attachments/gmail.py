"""Gmail API calls used by attachment searches: list, fetch message, fetch attachment body."""

import base64
from typing import Any

from google.auth.exceptions import TransportError
from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error

from gmail_attachments.config import DEFAULT_USER_ID

# Type alias for the Gmail service
GmailService = Resource

# API rejections and network failures (timeouts, DNS, dropped connections, token endpoint)
PROVIDER_ERRORS = (HttpError, HttpLib2Error, TransportError, OSError)


def _messages(service: GmailService) -> Any:
    return service.users().messages()


def list_messages(
    service: GmailService,
    user_id: str = DEFAULT_USER_ID,
    max_results: int = 50,
    query: str | None = None,
) -> list[dict[str, Any]]:
    """
    Return message references matching a Gmail query.

    Only the first page is read; ``max_results`` caps it.

    Args:
        service: Gmail API service instance
        user_id: Gmail user ID (default: 'me')
        max_results: Maximum number of references (default: 50)
        query: Gmail search query, passed through verbatim

    Returns:
        List of {'id', 'threadId'} dicts in the order Gmail ranks them
    """
    request = _messages(service).list(userId=user_id, maxResults=max_results, q=query or '')
    return request.execute().get('messages', [])


def get_message(service: GmailService, message_id: str, user_id: str = DEFAULT_USER_ID) -> dict[str, Any]:
    """Fetch a message with headers and its complete part tree (format=full)."""
    return _messages(service).get(userId=user_id, id=message_id, format='full').execute()


def get_attachment_data(
    service: GmailService, message_id: str, attachment_id: str, user_id: str = DEFAULT_USER_ID
) -> bytes:
    """
    Fetch an attachment body as raw bytes.

    Args:
        service: Gmail API service instance
        message_id: ID of the message that owns the attachment
        attachment_id: Attachment ID, only valid together with message_id
        user_id: Gmail user ID (default: 'me')

    Returns:
        Decoded attachment bytes
    """
    request = _messages(service).attachments().get(userId=user_id, messageId=message_id, id=attachment_id)
    body = request.execute()

    # base64url, padding is not always present
    data = body.get('data') or ''
    return base64.urlsafe_b64decode(data + '=' * (-len(data) % 4))
