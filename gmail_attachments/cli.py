"""Command line entry point for the Gmail attachment downloader."""

import argparse
import asyncio
import logging
import sys

from gmail_attachments.config import Settings, get_settings
from gmail_attachments.exceptions import GmailAttachmentsError
from gmail_attachments.query import ATTACHMENT_TYPE_QUERIES, build_query
from gmail_attachments.session import GmailSession
from gmail_attachments.storage import download_attachments

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='gmail-attachments',
        description='Search Gmail and download message attachments.',
    )
    parser.add_argument('--config', help='Path to a JSON configuration file')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', required=True)

    serve = subparsers.add_parser('serve', help='Run the HTTP server and browser UI')
    serve.add_argument('--host', help='Interface to bind (default from settings)')
    serve.add_argument('--port', type=int, help='Port to listen on (default from settings)')

    subparsers.add_parser('auth', help='Authorize access to Gmail and save the token')

    download = subparsers.add_parser('download', help='Download all attachments matching a query')
    download.add_argument('-q', '--query', help='Raw Gmail search query (overrides the filters)')
    download.add_argument('-o', '--output', help='Download folder (default from settings)')
    download.add_argument('--max-results', type=int, help='Maximum number of messages to inspect')

    filter_group = download.add_argument_group('filters', 'Build the query from filters')
    filter_group.add_argument('--sender', help='Only messages from this sender')
    filter_group.add_argument('--subject', help='Only messages with this subject phrase')
    filter_group.add_argument('--after', dest='date_from', help='Only messages after this date (YYYY/MM/DD)')
    filter_group.add_argument('--before', dest='date_to', help='Only messages before this date (YYYY/MM/DD)')
    filter_group.add_argument(
        '--type',
        dest='attachment_type',
        choices=sorted(ATTACHMENT_TYPE_QUERIES),
        help='Only attachments of this kind',
    )
    filter_group.add_argument(
        '--has-attachment', action='store_true', help="Add 'has:attachment' to the built query"
    )

    subparsers.add_parser('mcp', help='Run the MCP tool server over stdio')

    return parser


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='[%(asctime)s] [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    # googleapiclient is chatty at DEBUG
    logging.getLogger('googleapiclient.discovery_cache').setLevel(logging.ERROR)


def resolve_query(args: argparse.Namespace) -> str:
    """Use --query verbatim when given, otherwise build one from the filter flags."""
    if args.query and args.query.strip():
        return args.query.strip()
    return build_query(
        sender=args.sender,
        subject=args.subject,
        date_from=args.date_from,
        date_to=args.date_to,
        attachment_type=args.attachment_type,
        has_attachment=args.has_attachment,
    )


def run_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from gmail_attachments.server import create_app

    uvicorn.run(
        create_app(settings),
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level='debug' if settings.debug else 'info',
    )
    return 0


def run_auth(args: argparse.Namespace, settings: Settings) -> int:
    session = GmailSession.from_settings(settings)
    try:
        session.authorize()
    except GmailAttachmentsError as e:
        logger.error(str(e))
        return 1
    print(f'Authorized. Token saved to {settings.token_path}')
    return 0


def run_download(args: argparse.Namespace, settings: Settings) -> int:
    session = GmailSession.from_settings(settings)
    output = args.output or settings.download_dir

    try:
        query = resolve_query(args)
        session.authorize()
        summary = asyncio.run(
            download_attachments(
                session,
                query,
                output,
                max_results=args.max_results or settings.max_results,
                max_concurrency=settings.max_concurrency,
                user_id=settings.user_id,
            )
        )
    except (GmailAttachmentsError, ValueError) as e:
        logger.error(str(e))
        return 1

    if not summary.total_found:
        print('No messages found.')
        return 0

    for item in summary.downloaded:
        print(f'  -> {item.original_filename}  saved as {item.path}')
    print(
        f'{summary.total_found} matching emails, {summary.with_attachments} with attachments, '
        f'{len(summary.downloaded)} files downloaded, {summary.failed} failed.'
    )
    return 1 if summary.failed else 0


def run_mcp(args: argparse.Namespace, settings: Settings) -> int:
    from gmail_attachments import mcp_server

    mcp_server.configure(settings)
    mcp_server.mcp.run(transport='stdio')
    return 0


COMMANDS = {
    'serve': run_serve,
    'auth': run_auth,
    'download': run_download,
    'mcp': run_mcp,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings(args.config)
    if args.debug:
        settings = settings.model_copy(update={'debug': True})

    configure_logging(settings.debug)
    return COMMANDS[args.command](args, settings)


if __name__ == '__main__':
    sys.exit(main())
