"""HTTP server and browser UI for searching and downloading Gmail attachments."""

import asyncio
import logging
import unicodedata
from contextlib import asynccontextmanager
from pathlib import Path
from urllib.parse import quote

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from gmail_attachments.attachments import sanitize_filename
from gmail_attachments.config import Settings, get_settings
from gmail_attachments.exceptions import GmailAuthError
from gmail_attachments.helpers import validate_date_format
from gmail_attachments.models import DownloadRequest, SearchFilters, SearchRequest
from gmail_attachments.query import build_query
from gmail_attachments.search import search_attachments
from gmail_attachments.session import GmailSession
from gmail_attachments.storage import fetch_attachment

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / 'static'


def _error(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'success': False, 'error': error})


def content_disposition(filename: str) -> str:
    """
    Build an attachment Content-Disposition header for a sender-supplied filename.

    Header values are latin-1 on the wire, so ``filename`` carries an ASCII
    fallback and non-ASCII names are sent in full as ``filename*`` (RFC 6266).
    """
    safe_name = sanitize_filename(filename)
    folded = unicodedata.normalize('NFKD', safe_name)
    fallback = ''.join(c if c.isascii() else '_' for c in folded if not unicodedata.combining(c))
    if fallback == safe_name:
        return f'attachment; filename="{fallback}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(safe_name, safe='')}"


def get_session(request: Request) -> GmailSession:
    return request.app.state.session


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def create_app(settings: Settings | None = None, session: GmailSession | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use (default: get_settings())
        session: Gmail session to share across requests (default: built from settings)

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f'Gmail Attachment Downloader UI is running on http://{settings.host}:{settings.port}')
        if not Path(settings.credentials_path).exists():
            logger.warning(f'Make sure you have your {settings.credentials_path} file in place')
        yield

    app = FastAPI(
        title='Gmail Attachment Downloader',
        description='Search a Gmail mailbox and download message attachments',
        version='1.0.0',
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session = session or GmailSession.from_settings(settings)

    if STATIC_DIR.is_dir():
        app.mount('/static', StaticFiles(directory=STATIC_DIR), name='static')

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error(404, 'Endpoint not found')
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error(400, f'Invalid request: {exc.errors()}')

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f'Server error: {exc}', exc_info=exc)
        return _error(500, 'Internal server error')

    @app.get('/', include_in_schema=False)
    async def index():
        """Serve the main page."""
        return FileResponse(STATIC_DIR / 'index.html')

    @app.get('/api/auth-status')
    async def auth_status(session: GmailSession = Depends(get_session)):
        """Check authentication status without calling Gmail."""
        try:
            authenticated = await asyncio.to_thread(session.is_authenticated)
        except Exception as e:
            logger.warning(f'Error checking auth status: {e}')
            authenticated = False
        return {'authenticated': authenticated}

    @app.post('/api/auth')
    async def authenticate(session: GmailSession = Depends(get_session)):
        """Run the interactive authorization flow."""
        try:
            await asyncio.to_thread(session.authorize)
        except Exception as e:
            logger.error(f'Authentication error: {e}')
            return _error(500, f'Authentication failed: {e}')
        return {'success': True, 'message': 'Authentication successful'}

    @app.post('/api/search')
    async def search(
        body: SearchRequest,
        session: GmailSession = Depends(get_session),
        app_settings: Settings = Depends(get_app_settings),
    ):
        """Search emails and return those with attachments."""
        if not await asyncio.to_thread(session.is_authenticated):
            return _error(401, 'Not authenticated')

        query = (body.query or '').strip()
        if not query:
            filters = body.filters or SearchFilters()
            for name, value in (('dateFrom', filters.date_from), ('dateTo', filters.date_to)):
                if not validate_date_format(value):
                    return _error(400, f"{name} '{value}' is not in the required format YYYY-MM-DD")
            try:
                query = build_query(**filters.model_dump())
            except ValueError as e:
                return _error(400, str(e))

        try:
            result = await search_attachments(
                session,
                query,
                max_results=app_settings.max_results,
                max_concurrency=app_settings.max_concurrency,
                user_id=app_settings.user_id,
            )
        except GmailAuthError as e:
            logger.warning(f'Search rejected: {e}')
            session.clear()
            return _error(401, str(e))
        except Exception as e:
            logger.error(f'Search error: {e}')
            return _error(500, f'Search failed: {e}')

        return JSONResponse(content=result.model_dump(by_alias=True))

    @app.post('/api/download-attachment')
    async def download_attachment(
        body: DownloadRequest,
        session: GmailSession = Depends(get_session),
        app_settings: Settings = Depends(get_app_settings),
    ):
        """Stream a single attachment back to the browser."""
        if not await asyncio.to_thread(session.is_authenticated):
            return _error(401, 'Not authenticated')

        try:
            data = await fetch_attachment(
                session, body.message_id, body.attachment_id, user_id=app_settings.user_id
            )
        except GmailAuthError as e:
            session.clear()
            return _error(401, str(e))
        except Exception as e:
            logger.error(f'Download error: {e}')
            return _error(500, f'Download failed: {e}')

        return Response(
            content=data,
            media_type='application/octet-stream',
            headers={'Content-Disposition': content_disposition(body.filename)},
        )

    return app
