"""Exception hierarchy for the Gmail attachment downloader."""


class GmailAttachmentsError(Exception):
    """Base exception for all attachment downloader errors."""


class GmailAuthError(GmailAttachmentsError):
    """No usable credentials: missing token, missing client secrets or a failed refresh."""


class GmailFetchError(GmailAttachmentsError):
    """A Gmail API call failed."""
