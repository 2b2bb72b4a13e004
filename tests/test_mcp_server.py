"""Tests for the MCP tools, called directly without a transport."""

import pytest
from mcp.server.fastmcp.exceptions import ToolError

from fakes import FakeGmailService, FakeSession, make_message, make_part
from gmail_attachments import mcp_server
from gmail_attachments.config import Settings
from gmail_attachments.exceptions import GmailFetchError


@pytest.fixture
def service():
    return FakeGmailService(
        messages={
            'm1': make_message('m1', parts=[make_part('invoice.pdf', 'a1')]),
            'm2': make_message('m2'),
        },
        attachments={('m1', 'a1'): b'PDF'},
    )


@pytest.fixture
def configured(tmp_path, service):
    session = FakeSession(service)
    mcp_server.configure(Settings(download_dir=str(tmp_path)), session)
    yield session
    mcp_server.configure(Settings(), None)


@pytest.mark.asyncio
async def test_search_tool(configured, service):
    result = await mcp_server.search_attachments(query=None, max_results=10, ctx=None)

    assert result.query == 'has:attachment'
    assert result.with_attachments == 1
    assert ('list', 'has:attachment', 10) in service.calls


@pytest.mark.asyncio
async def test_download_tool(configured, tmp_path):
    summary = await mcp_server.download_attachments(query='has:attachment', max_results=None, ctx=None)

    assert [item.filename for item in summary.downloaded] == ['2024-03-05_invoice.pdf']
    assert (tmp_path / '2024-03-05_invoice.pdf').read_bytes() == b'PDF'


@pytest.mark.asyncio
async def test_download_single_attachment(configured, tmp_path):
    saved = await mcp_server.download_attachment(
        message_id='m1', attachment_id='a1', filename='invoice.pdf', ctx=None
    )

    assert saved.filename == '2024-03-05_invoice.pdf'
    assert saved.mime_type == 'application/pdf'
    assert (tmp_path / saved.filename).exists()


@pytest.mark.asyncio
async def test_tools_require_authentication(tmp_path, service):
    mcp_server.configure(Settings(download_dir=str(tmp_path)), FakeSession(service, authenticated=False))
    try:
        with pytest.raises(ToolError, match='Not authenticated'):
            await mcp_server.search_attachments(query='has:attachment', max_results=None, ctx=None)
    finally:
        mcp_server.configure(Settings(), None)

    assert service.calls == []


@pytest.mark.asyncio
async def test_provider_errors_become_tool_errors(configured, monkeypatch):
    async def failing_search(*args, **kwargs):
        raise GmailFetchError('Failed to list messages')

    monkeypatch.setattr(mcp_server, 'run_search', failing_search)
    with pytest.raises(ToolError, match='Search failed: Failed to list messages'):
        await mcp_server.search_attachments(query='has:attachment', max_results=None, ctx=None)


@pytest.mark.asyncio
async def test_network_outage_becomes_tool_error(configured, service):
    service.list_error = OSError('Network is unreachable')

    with pytest.raises(ToolError, match='Download failed: .*Network is unreachable'):
        await mcp_server.download_attachments(query='has:attachment', max_results=None, ctx=None)
