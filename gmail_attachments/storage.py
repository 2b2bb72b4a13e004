"""Download attachments and write them to the local download folder."""

import asyncio
import logging
from pathlib import Path

from gmail_attachments.attachments import derive_filename
from gmail_attachments.config import DEFAULT_USER_ID
from gmail_attachments.exceptions import GmailFetchError
from gmail_attachments.gmail import PROVIDER_ERRORS, get_attachment_data
from gmail_attachments.models import (
    AttachmentInfo,
    DownloadedAttachment,
    DownloadSummary,
    EmailWithAttachments,
)
from gmail_attachments.search import DEFAULT_MAX_CONCURRENCY, DEFAULT_MAX_RESULTS, search_attachments
from gmail_attachments.session import GmailSession

logger = logging.getLogger(__name__)


def _fetch_attachment(session: GmailSession, message_id: str, attachment_id: str, user_id: str) -> bytes:
    service = session.build_service()
    return get_attachment_data(service, message_id=message_id, attachment_id=attachment_id, user_id=user_id)


async def fetch_attachment(
    session: GmailSession, message_id: str, attachment_id: str, user_id: str = DEFAULT_USER_ID
) -> bytes:
    """
    Fetch the raw bytes of one attachment.

    Raises:
        GmailAuthError: If the session is not authorized
        GmailFetchError: If the Gmail API rejects the request or the network fails
    """
    session.require_credentials()
    try:
        return await asyncio.to_thread(_fetch_attachment, session, message_id, attachment_id, user_id)
    except PROVIDER_ERRORS as e:
        raise GmailFetchError(f'Failed to fetch attachment {attachment_id} of {message_id}: {e}') from e


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def save_attachment(
    download_dir: str | Path,
    email: EmailWithAttachments,
    attachment: AttachmentInfo,
    data: bytes,
) -> DownloadedAttachment:
    """Write attachment bytes as '<date>_<filename>' under download_dir, overwriting any previous copy."""
    filename = derive_filename(email.date, attachment.filename)
    path = Path(download_dir) / filename

    await asyncio.to_thread(_write_file, path, data)
    logger.info(f'Saved {attachment.filename} as {path}')

    return DownloadedAttachment(
        path=str(path.resolve()),
        filename=filename,
        original_filename=attachment.filename,
        size_bytes=len(data),
        mime_type=attachment.mime_type,
        message_id=email.id,
        attachment_id=attachment.attachment_id,
    )


async def _download_one(
    session: GmailSession,
    download_dir: str | Path,
    email: EmailWithAttachments,
    attachment: AttachmentInfo,
    semaphore: asyncio.Semaphore,
    user_id: str,
) -> DownloadedAttachment | None:
    async with semaphore:
        logger.info(f'Downloading attachment: {attachment.filename}')
        try:
            data = await fetch_attachment(session, email.id, attachment.attachment_id, user_id=user_id)
            return await save_attachment(download_dir, email, attachment, data)
        except Exception as e:
            logger.error(f'Error downloading attachment {attachment.filename}: {e}')
            return None


async def download_attachments(
    session: GmailSession,
    query: str,
    download_dir: str | Path,
    max_results: int = DEFAULT_MAX_RESULTS,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    user_id: str = DEFAULT_USER_ID,
) -> DownloadSummary:
    """
    Search for a query and save every attachment found to download_dir.

    A failing attachment is logged and counted; the rest of the batch continues.

    Raises:
        GmailAuthError: If the session is not authorized
        GmailFetchError: If the search itself fails
    """
    result = await search_attachments(
        session, query, max_results=max_results, max_concurrency=max_concurrency, user_id=user_id
    )

    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    outcomes = await asyncio.gather(
        *(
            _download_one(session, download_dir, email, attachment, semaphore, user_id)
            for email in result.emails
            for attachment in email.attachments
        )
    )
    downloaded = [item for item in outcomes if item is not None]
    failed = len(outcomes) - len(downloaded)

    logger.info(f'Download completed! {len(downloaded)}/{len(outcomes)} files downloaded.')

    return DownloadSummary(
        query=query,
        total_found=result.total_found,
        with_attachments=result.with_attachments,
        downloaded=downloaded,
        failed=failed,
    )
