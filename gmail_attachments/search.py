"""Search orchestration: list matching messages, fetch details concurrently, keep those with attachments."""

import asyncio
import logging

from google.auth.exceptions import RefreshError

from gmail_attachments.config import DEFAULT_USER_ID
from gmail_attachments.exceptions import GmailAuthError, GmailFetchError
from gmail_attachments.gmail import PROVIDER_ERRORS, get_message, list_messages
from gmail_attachments.helpers import build_email
from gmail_attachments.models import EmailWithAttachments, SearchResult
from gmail_attachments.session import GmailSession

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 50
DEFAULT_MAX_CONCURRENCY = 8


def _fetch_email(session: GmailSession, message_id: str, user_id: str) -> EmailWithAttachments:
    service = session.build_service()
    message = get_message(service, message_id, user_id=user_id)
    return build_email(message, message_id)


async def get_email(
    session: GmailSession, message_id: str, user_id: str = DEFAULT_USER_ID
) -> EmailWithAttachments:
    """
    Fetch one message with its attachment list, which may be empty.

    Raises:
        GmailAuthError: If the session is not authorized
        GmailFetchError: If the Gmail API rejects the request or the network fails
    """
    session.require_credentials()
    try:
        return await asyncio.to_thread(_fetch_email, session, message_id, user_id)
    except PROVIDER_ERRORS as e:
        raise GmailFetchError(f'Failed to fetch message {message_id}: {e}') from e


async def fetch_email_details(
    session: GmailSession,
    message_id: str,
    semaphore: asyncio.Semaphore,
    user_id: str = DEFAULT_USER_ID,
) -> EmailWithAttachments | None:
    """
    Fetch one message and extract its attachments.

    Returns None when the message has no attachments or could not be fetched;
    fetch failures are logged, not raised.
    """
    async with semaphore:
        try:
            email = await asyncio.to_thread(_fetch_email, session, message_id, user_id)
        except Exception as e:
            logger.warning(f'Error getting email details for {message_id}: {e}')
            return None

    return email if email.attachments else None


def _list_message_ids(session: GmailSession, query: str, max_results: int, user_id: str) -> list[str]:
    service = session.build_service()
    messages = list_messages(service, user_id=user_id, max_results=max_results, query=query)
    return [msg['id'] for msg in messages]


async def search_attachments(
    session: GmailSession,
    query: str,
    max_results: int = DEFAULT_MAX_RESULTS,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    user_id: str = DEFAULT_USER_ID,
) -> SearchResult:
    """
    Find the messages matching a query that carry attachments.

    Message details are fetched concurrently, at most ``max_concurrency`` at a
    time. The result keeps the provider's match order.

    Args:
        session: Authorized Gmail session
        query: Gmail search query, passed through verbatim
        max_results: Cap on the number of matched messages
        max_concurrency: Cap on concurrent detail fetches
        user_id: Gmail user ID (default: 'me')

    Returns:
        SearchResult with the kept messages and aggregate counts

    Raises:
        GmailAuthError: If the session is not authorized
        GmailFetchError: If listing messages fails or the network is unreachable
    """
    session.require_credentials()
    logger.info(f'Searching for emails with query: "{query}"')

    try:
        message_ids = await asyncio.to_thread(_list_message_ids, session, query, max_results, user_id)
    except RefreshError as e:
        raise GmailAuthError(f'Authorization failed: {e}') from e
    except PROVIDER_ERRORS as e:
        raise GmailFetchError(f'Failed to list messages: {e}') from e

    logger.info(f'Found {len(message_ids)} matching emails')

    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    results = await asyncio.gather(
        *(fetch_email_details(session, msg_id, semaphore, user_id=user_id) for msg_id in message_ids)
    )
    emails = [email for email in results if email is not None]

    logger.info(f'{len(emails)} emails have attachments')

    return SearchResult(
        query=query,
        emails=emails,
        total_found=len(message_ids),
        with_attachments=len(emails),
    )
