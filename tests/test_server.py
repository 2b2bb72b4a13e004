"""Tests for the HTTP API."""

from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient
from googleapiclient.errors import HttpError
from httplib2 import Response

from fakes import FakeGmailService, FakeSession, make_message, make_part
from gmail_attachments.attachments import derive_filename
from gmail_attachments.config import Settings
from gmail_attachments.exceptions import GmailAuthError
from gmail_attachments.server import create_app


def _mailbox():
    return {
        'm1': make_message('m1', parts=[make_part('invoice.pdf', 'a1', size=3)]),
        'm2': make_message('m2', parts=[make_part(mime_type='text/plain')]),
    }


def _client(session):
    return TestClient(create_app(Settings(), session=session))


@pytest.fixture
def service():
    return FakeGmailService(messages=_mailbox(), attachments={('m1', 'a1'): b'PDF'})


@pytest.fixture
def session(service):
    return FakeSession(service)


@pytest.fixture
def client(session):
    return _client(session)


def test_index_page(client):
    response = client.get('/')
    assert response.status_code == 200
    assert 'text/html' in response.headers['content-type']


def test_static_assets(client):
    assert client.get('/static/script.js').status_code == 200


def test_auth_status(client, session):
    assert client.get('/api/auth-status').json() == {'authenticated': True}

    session.authenticated = False
    assert client.get('/api/auth-status').json() == {'authenticated': False}


def test_auth_runs_flow(session):
    session.authenticated = False
    client = _client(session)

    response = client.post('/api/auth')

    assert response.status_code == 200
    assert response.json() == {'success': True, 'message': 'Authentication successful'}
    assert session.authorize_calls == 1


def test_auth_failure(session, monkeypatch):
    def failing_authorize():
        raise GmailAuthError('Credentials file not found at credentials.json')

    monkeypatch.setattr(session, 'authorize', failing_authorize)
    response = _client(session).post('/api/auth')

    assert response.status_code == 500
    assert response.json()['success'] is False
    assert response.json()['error'].startswith('Authentication failed: Credentials file not found')


def test_search_returns_camel_case_result(client, service):
    response = client.post('/api/search', json={'query': 'has:attachment'})

    assert response.status_code == 200
    body = response.json()
    assert body['success'] is True
    assert body['totalFound'] == 2
    assert body['withAttachments'] == 1
    email = body['emails'][0]
    assert email['dateString'] == '2024-03-05'
    assert email['attachments'][0]['attachmentId'] == 'a1'
    assert ('list', 'has:attachment', 50) in service.calls


def test_search_builds_query_from_filters(client, service):
    response = client.post(
        '/api/search',
        json={'filters': {'sender': 'billing@example.com', 'attachmentType': 'pdf', 'dateFrom': '2024/01/01'}},
    )

    assert response.status_code == 200
    assert response.json()['query'] == 'from:billing@example.com after:2024/01/01 filename:pdf'


def test_search_without_query_or_filters_uses_default(client):
    response = client.post('/api/search', json={})
    assert response.json()['query'] == 'has:attachment'


def test_search_rejects_bad_date(client, service):
    response = client.post('/api/search', json={'filters': {'dateFrom': '03/05/2024'}})

    assert response.status_code == 400
    assert 'dateFrom' in response.json()['error']
    assert service.calls == []


def test_search_rejects_unknown_attachment_type(client):
    response = client.post('/api/search', json={'filters': {'attachmentType': 'exe'}})
    assert response.status_code == 400
    assert 'Unknown attachment type' in response.json()['error']


def test_search_requires_authentication(service):
    client = _client(FakeSession(service, authenticated=False))

    response = client.post('/api/search', json={'query': 'has:attachment'})

    assert response.status_code == 401
    assert response.json() == {'success': False, 'error': 'Not authenticated'}
    assert service.calls == []


def test_search_provider_failure(session, service):
    service.list_error = HttpError(Response({'status': 500}), b'backend error')

    response = _client(session).post('/api/search', json={'query': 'has:attachment'})

    assert response.status_code == 500
    assert response.json()['error'].startswith('Search failed:')


def test_search_auth_failure_clears_session(session, monkeypatch):
    def expired():
        raise GmailAuthError('Failed to refresh token: invalid_grant')

    monkeypatch.setattr(session, 'build_service', expired)
    response = _client(session).post('/api/search', json={'query': 'has:attachment'})

    assert response.status_code == 401
    assert session.cleared is True


def test_download_attachment(client):
    response = client.post(
        '/api/download-attachment',
        json={'messageId': 'm1', 'attachmentId': 'a1', 'filename': 'invoice.pdf'},
    )

    assert response.status_code == 200
    assert response.content == b'PDF'
    assert response.headers['content-type'] == 'application/octet-stream'
    assert response.headers['content-disposition'] == 'attachment; filename="invoice.pdf"'


def test_download_sanitizes_header_filename(client):
    response = client.post(
        '/api/download-attachment',
        json={'messageId': 'm1', 'attachmentId': 'a1', 'filename': '../"evil".pdf'},
    )

    assert response.headers['content-disposition'] == 'attachment; filename="file_..__evil_.pdf"'


def test_download_non_ascii_filename(client):
    response = client.post(
        '/api/download-attachment',
        json={'messageId': 'm1', 'attachmentId': 'a1', 'filename': 'отчёт.pdf'},
    )

    assert response.status_code == 200
    assert response.content == b'PDF'
    disposition = response.headers['content-disposition']
    assert 'filename="_____.pdf"' in disposition
    assert f"filename*=UTF-8''{quote('отчёт.pdf')}" in disposition


def test_download_accented_filename_folds_to_ascii(client):
    response = client.post(
        '/api/download-attachment',
        json={'messageId': 'm1', 'attachmentId': 'a1', 'filename': 'café menu.pdf'},
    )

    assert response.status_code == 200
    assert response.headers['content-disposition'] == (
        "attachment; filename=\"cafe menu.pdf\"; filename*=UTF-8''caf%C3%A9%20menu.pdf"
    )


def test_auth_checks_run_off_the_event_loop(client, session):
    client.post('/api/search', json={'query': 'has:attachment'})
    client.post(
        '/api/download-attachment',
        json={'messageId': 'm1', 'attachmentId': 'a1', 'filename': 'invoice.pdf'},
    )
    client.get('/api/auth-status')

    assert session.checked_on_loop is False


def test_download_requires_authentication(service):
    client = _client(FakeSession(service, authenticated=False))

    response = client.post(
        '/api/download-attachment',
        json={'messageId': 'm1', 'attachmentId': 'a1', 'filename': 'invoice.pdf'},
    )

    assert response.status_code == 401
    assert service.calls == []


def test_download_missing_attachment(client):
    response = client.post(
        '/api/download-attachment',
        json={'messageId': 'm1', 'attachmentId': 'nope', 'filename': 'invoice.pdf'},
    )

    assert response.status_code == 500
    assert response.json()['error'].startswith('Download failed:')


def test_download_rejects_incomplete_body(client):
    response = client.post('/api/download-attachment', json={'messageId': 'm1'})
    assert response.status_code == 400
    assert response.json()['success'] is False


def test_unknown_endpoint(client):
    response = client.get('/api/nothing-here')
    assert response.status_code == 404
    assert response.json() == {'success': False, 'error': 'Endpoint not found'}


def test_browser_save_name_matches_local_download_name(client):
    """dateString plus the header filename is the name the batch downloader writes."""
    raw_name = '../"evil".pdf'
    email = client.post('/api/search', json={'query': 'has:attachment'}).json()['emails'][0]

    response = client.post(
        '/api/download-attachment',
        json={'messageId': email['id'], 'attachmentId': 'a1', 'filename': raw_name},
    )
    header_name = response.headers['content-disposition'].split('filename="', 1)[1].split('"', 1)[0]

    assert f"{email['dateString']}_{header_name}" == derive_filename(email['date'], raw_name)
