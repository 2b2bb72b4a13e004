"""MCP tool server exposing attachment search and download."""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import ToolAnnotations
from pydantic import Field

from gmail_attachments.config import Settings, get_settings
from gmail_attachments.dual_logger import DualLogger
from gmail_attachments.exceptions import GmailAttachmentsError
from gmail_attachments.models import AttachmentInfo, DownloadedAttachment, DownloadSummary, SearchResult
from gmail_attachments.search import get_email
from gmail_attachments.search import search_attachments as run_search
from gmail_attachments.session import GmailSession
from gmail_attachments.storage import download_attachments as storage_download_attachments
from gmail_attachments.storage import fetch_attachment, save_attachment

# Global variables for resource management
_settings: Settings = get_settings()
_session: GmailSession | None = None


@asynccontextmanager
async def lifespan(server):
    """Create the shared Gmail session on startup."""
    global _session

    if _session is None:
        _session = GmailSession.from_settings(_settings)

    try:
        yield {}
    finally:
        _session.clear()


mcp = FastMCP(
    'Gmail Attachment Downloader',
    instructions=(
        'Search Gmail for messages with attachments and download those attachments '
        'to a local folder as <date>_<filename>.'
    ),
    lifespan=lifespan,
)


def configure(settings: Settings, session: GmailSession | None = None) -> None:
    """Replace the settings (and optionally the session) used by the tools."""
    global _settings, _session
    _settings = settings
    _session = session


async def _require_session() -> GmailSession:
    if _session is None or not await asyncio.to_thread(_session.is_authenticated):
        raise ToolError('Not authenticated. Run `gmail-attachments auth` first.')
    return _session


@mcp.tool(annotations=ToolAnnotations(title='Search Attachments', readOnlyHint=True))
async def search_attachments(
    query: str | None = Field(None, description='Gmail search query (default: "has:attachment")'),
    max_results: int | None = Field(None, description='Maximum number of messages to inspect'),
    ctx: Context = None,
) -> SearchResult:
    """
    Search for emails matching a query and list the ones that carry attachments.

    Args:
        query: Raw Gmail search query
        max_results: Cap on matched messages
        ctx: MCP context for logging

    Returns:
        SearchResult with matching emails and their attachments
    """
    logger = DualLogger(ctx)
    session = await _require_session()
    query = query or _settings.default_query
    await logger.info(f'Searching for emails with query: "{query}"')

    try:
        result = await run_search(
            session,
            query,
            max_results=max_results or _settings.max_results,
            max_concurrency=_settings.max_concurrency,
            user_id=_settings.user_id,
        )
    except GmailAttachmentsError as e:
        await logger.error(f'Search failed: {e}')
        raise ToolError(f'Search failed: {e}') from e

    await logger.info(f'{result.with_attachments} of {result.total_found} emails have attachments')
    return result


@mcp.tool(annotations=ToolAnnotations(title='Download Attachments', readOnlyHint=False, idempotentHint=True))
async def download_attachments(
    query: str | None = Field(None, description='Gmail search query (default: "has:attachment")'),
    max_results: int | None = Field(None, description='Maximum number of messages to inspect'),
    ctx: Context = None,
) -> DownloadSummary:
    """
    Download every attachment of the emails matching a query to the download folder.

    Files are saved as <YYYY-MM-DD>_<filename>; re-running overwrites them.

    Args:
        query: Raw Gmail search query
        max_results: Cap on matched messages
        ctx: MCP context for logging

    Returns:
        DownloadSummary with the saved files
    """
    logger = DualLogger(ctx)
    session = await _require_session()
    query = query or _settings.default_query
    await logger.info(f'Downloading attachments for query: "{query}" to {_settings.download_dir}')

    try:
        summary = await storage_download_attachments(
            session,
            query,
            _settings.download_dir,
            max_results=max_results or _settings.max_results,
            max_concurrency=_settings.max_concurrency,
            user_id=_settings.user_id,
        )
    except GmailAttachmentsError as e:
        await logger.error(f'Download failed: {e}')
        raise ToolError(f'Download failed: {e}') from e

    if summary.failed:
        await logger.warning(f'{summary.failed} attachments failed to download')
    await logger.info(f'Downloaded {len(summary.downloaded)} attachments')
    return summary


@mcp.tool(annotations=ToolAnnotations(title='Download Attachment', readOnlyHint=False, idempotentHint=True))
async def download_attachment(
    message_id: str = Field(..., description='Gmail message ID'),
    attachment_id: str = Field(..., description='Gmail attachment ID from a search result'),
    filename: str = Field(..., description='Original filename from a search result'),
    ctx: Context = None,
) -> DownloadedAttachment:
    """
    Download one attachment to the download folder.

    Args:
        message_id: The Gmail message ID
        attachment_id: The attachment ID from a search result
        filename: The original filename from a search result
        ctx: MCP context for logging

    Returns:
        DownloadedAttachment with the saved path
    """
    logger = DualLogger(ctx)
    session = await _require_session()
    await logger.info(f'Downloading attachment {filename} from message {message_id}')

    try:
        email = await get_email(session, message_id, user_id=_settings.user_id)
        # Attachment IDs are not stable across fetches, so fall back to the filename
        attachment = next(
            (att for att in email.attachments if att.attachment_id == attachment_id),
            next((att for att in email.attachments if att.filename == filename), None),
        )
        if attachment is None:
            attachment = AttachmentInfo(
                filename=filename,
                attachment_id=attachment_id,
                mime_type='application/octet-stream',
                size=0,
            )
        data = await fetch_attachment(session, message_id, attachment_id, user_id=_settings.user_id)
        saved = await save_attachment(Path(_settings.download_dir), email, attachment, data)
    except GmailAttachmentsError as e:
        await logger.error(f'Download failed: {e}')
        raise ToolError(f'Download failed: {e}') from e

    await logger.info(f'Downloaded attachment to {saved.path}')
    return saved
