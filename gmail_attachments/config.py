"""Configuration settings for the Gmail attachment downloader."""

import json
import os
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

# Default settings
DEFAULT_CREDENTIALS_PATH = 'credentials.json'
DEFAULT_TOKEN_PATH = 'token.json'
DEFAULT_USER_ID = 'me'
DEFAULT_QUERY = 'has:attachment'
DEFAULT_DOWNLOAD_DIR = 'downloads'

# Read-only access is all we need. If modifying these scopes, delete the token file.
GMAIL_SCOPES = ['https://www.googleapis.com/auth/gmail.readonly']


class Settings(BaseSettings):
    """
    Settings model for the Gmail attachment downloader.

    Automatically reads from environment variables with GMAIL_ATTACHMENTS_ prefix.
    """

    credentials_path: str = DEFAULT_CREDENTIALS_PATH
    token_path: str = DEFAULT_TOKEN_PATH
    scopes: list[str] = GMAIL_SCOPES
    user_id: str = DEFAULT_USER_ID
    # Limit to prevent overwhelming the UI
    max_results: int = 50
    max_concurrency: int = 8
    download_dir: str = DEFAULT_DOWNLOAD_DIR
    default_query: str = DEFAULT_QUERY
    host: str = '127.0.0.1'
    port: int = 3000
    debug: bool = False

    # Configure environment variable settings
    model_config = SettingsConfigDict(
        env_prefix='GMAIL_ATTACHMENTS_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )


@lru_cache()
def get_settings(config_file: str | None = None) -> Settings:
    """
    Get settings instance, optionally loaded from a config file.

    Uses LRU cache so every caller shares one instance per config file.

    Args:
        config_file: Path to a JSON configuration file (optional)

    Returns:
        Settings instance
    """
    if config_file and os.path.exists(config_file):
        with open(config_file, 'r') as f:
            file_config = json.load(f)
            return Settings.model_validate(file_config)

    return Settings()
