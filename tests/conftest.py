"""Shared fixtures."""

import pytest

from fakes import FakeGmailService, FakeSession
from gmail_attachments.config import get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_service():
    return FakeGmailService()


@pytest.fixture
def fake_session(fake_service):
    return FakeSession(fake_service)
