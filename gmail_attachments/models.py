"""Pydantic models for the Gmail attachment downloader with strict validation."""

import pydantic
from pydantic.alias_generators import to_camel


class BaseModel(pydantic.BaseModel):
    """Base model with strict validation - no extra fields, camelCase on the wire."""

    model_config = pydantic.ConfigDict(
        extra='forbid',
        strict=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class AttachmentInfo(BaseModel):
    """Metadata for a Gmail attachment, scoped to its owning message."""

    filename: str  # As sent, untrusted
    attachment_id: str
    mime_type: str
    size: int


class EmailWithAttachments(BaseModel):
    """A message that carries at least one attachment."""

    id: str
    subject: str
    sender: str
    date: str  # ISO-8601, UTC
    date_string: str  # YYYY-MM-DD, used as filename prefix
    attachments: list[AttachmentInfo]


class SearchResult(BaseModel):
    """Result of a search operation."""

    success: bool = True
    query: str
    emails: list[EmailWithAttachments]
    total_found: int  # Messages matching the query
    with_attachments: int  # Messages kept after filtering


class DownloadedAttachment(BaseModel):
    """Information about an attachment written to the download folder."""

    path: str
    filename: str  # Derived local filename
    original_filename: str
    size_bytes: int
    mime_type: str
    message_id: str
    attachment_id: str


class DownloadSummary(BaseModel):
    """Result of a batch download."""

    query: str
    total_found: int
    with_attachments: int
    downloaded: list[DownloadedAttachment]
    failed: int = 0


class RequestModel(BaseModel):
    """Base for request bodies parsed from JSON; lenient about types."""

    model_config = pydantic.ConfigDict(strict=False)


class SearchFilters(RequestModel):
    """Structured filters used to build a query when none is given."""

    sender: str | None = None
    subject: str | None = None
    date_from: str | None = None  # YYYY-MM-DD or YYYY/MM/DD
    date_to: str | None = None
    attachment_type: str | None = None
    has_attachment: bool = False


class SearchRequest(RequestModel):
    """Body of POST /api/search."""

    query: str | None = None
    filters: SearchFilters | None = None


class DownloadRequest(RequestModel):
    """Body of POST /api/download-attachment."""

    message_id: str
    attachment_id: str
    filename: str
