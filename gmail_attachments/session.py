"""Authorized Gmail session: token persistence, interactive flow and service construction."""

import json
import logging
import threading
from pathlib import Path

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from gmail_attachments.config import DEFAULT_CREDENTIALS_PATH, DEFAULT_TOKEN_PATH, GMAIL_SCOPES, Settings
from gmail_attachments.exceptions import GmailAuthError
from gmail_attachments.gmail import GmailService

logger = logging.getLogger(__name__)


class GmailSession:
    """Holds the process-wide Gmail credentials.

    Credentials are loaded lazily from the token file and cached until
    ``clear()`` is called or a new authorization replaces them.

    Args:
        credentials_path: Path to the OAuth client secrets JSON (read-only).
        token_path: Path where the authorized-user token is persisted.
        scopes: OAuth scopes to request.
    """

    def __init__(
        self,
        credentials_path: str | Path = DEFAULT_CREDENTIALS_PATH,
        token_path: str | Path = DEFAULT_TOKEN_PATH,
        scopes: list[str] | None = None,
    ):
        self.credentials_path = Path(credentials_path)
        self.token_path = Path(token_path)
        self.scopes = list(scopes or GMAIL_SCOPES)
        self._credentials: Credentials | None = None
        self._refresh_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> 'GmailSession':
        return cls(settings.credentials_path, settings.token_path, settings.scopes)

    @property
    def credentials(self) -> Credentials | None:
        return self._credentials

    def load(self) -> Credentials | None:
        """Return cached credentials, reading the token file on first use.

        A missing or unreadable token file yields None.
        """
        if self._credentials is not None:
            return self._credentials

        if not self.token_path.exists():
            return None

        try:
            token_data = json.loads(self.token_path.read_text())
            self._credentials = Credentials.from_authorized_user_info(token_data, self.scopes)
        except (OSError, ValueError) as e:
            logger.warning(f'Could not load token from {self.token_path}: {e}')
            return None

        logger.debug(f'Loaded credentials from {self.token_path}')
        return self._credentials

    def is_authenticated(self) -> bool:
        return self.load() is not None

    def require_credentials(self) -> Credentials:
        """Return credentials or raise GmailAuthError('Not authenticated')."""
        creds = self.load()
        if creds is None:
            raise GmailAuthError('Not authenticated')
        return creds

    def authorize(self) -> Credentials:
        """
        Load saved credentials or run the interactive OAuth flow. Opens a browser.

        Returns:
            Authorized credentials

        Raises:
            GmailAuthError: If the client secrets file is missing
        """
        creds = self.load()
        if creds is not None:
            return creds

        if not self.credentials_path.exists():
            raise GmailAuthError(
                f'Credentials file not found at {self.credentials_path}. '
                'Please download your OAuth credentials from Google Cloud Console.'
            )

        flow = InstalledAppFlow.from_client_secrets_file(str(self.credentials_path), self.scopes)
        creds = flow.run_local_server(port=0)

        if creds.refresh_token:
            self.save(creds)
        else:
            logger.warning('Authorization returned no refresh token; it will not be persisted')

        self._credentials = creds
        logger.info('Authorization successful')
        return creds

    def save(self, creds: Credentials) -> None:
        """Persist credentials in the authorized-user format, keyed from the client secrets."""
        keys = json.loads(self.credentials_path.read_text())
        key = keys.get('installed') or keys.get('web') or {}
        payload = {
            'type': 'authorized_user',
            'client_id': key.get('client_id', creds.client_id),
            'client_secret': key.get('client_secret', creds.client_secret),
            'refresh_token': creds.refresh_token,
        }
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        self.token_path.write_text(json.dumps(payload))
        logger.debug(f'Saved token to {self.token_path}')

    def build_service(self) -> GmailService:
        """
        Return a new Gmail API service for the current credentials.

        Each call returns its own service object so worker threads never share
        an HTTP transport. Expired credentials are refreshed first.

        Raises:
            GmailAuthError: If there are no credentials or the refresh fails
        """
        creds = self.require_credentials()

        with self._refresh_lock:
            if not creds.valid:
                if not creds.refresh_token:
                    raise GmailAuthError('Token is invalid and cannot be refreshed. Re-authorize.')
                try:
                    creds.refresh(Request())
                except RefreshError as e:
                    raise GmailAuthError(f'Failed to refresh token: {e}') from e

        return build('gmail', 'v1', credentials=creds, cache_discovery=False)

    def clear(self) -> None:
        """Forget the cached credentials. The token file is left in place."""
        self._credentials = None
