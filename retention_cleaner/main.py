#!/usr/bin/env python3
"""
Retention Cleaner - Remove personal retention tags from mailbox folders
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional, Set

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from retention_cleaner.errors import MailboxConnectionError, PersistError, TransportError
from retention_cleaner.ews_service import ExchangeService
from retention_cleaner.models import ConnectionConfig, RunSummary


logger = logging.getLogger(__name__)

console = Console()

EXIT_OK = 0
EXIT_NO_MAILBOX = 1
EXIT_FAILURE = 2

USAGE_TEXT = {
    "mailbox": [
        "Parameter: mailbox",
        "Parameter is mandatory",
        "\"mailbox\" is the mailbox you would like to alter.",
        "The program expects the primary smtp address here.",
    ],
    "logonly": [
        "Parameter: logonly",
        "Parameter is optional",
        "Only logs the folders which have an archive or policy tag. Nothing is changed.",
        "Set LOG_FILE to also write the log into a file.",
    ],
    "foldername": [
        "Parameter: foldername",
        "Parameter is optional",
        "Filters the folder list by folder path (like \"\\Inbox\\Invoices\").",
        "It uses \"contains\", so --foldername Inbox matches \"Inbox\" including its subfolders.",
        "To select one specific folder submit its complete folder path.",
    ],
    "ignorecertificate": [
        "Parameter: ignorecertificate",
        "Parameter is optional",
        "Ignores certificate errors when connecting to the EWS endpoint.",
        "Usually you would use this together with --url.",
    ],
    "url": [
        "Parameter: url",
        "Parameter is optional (env: EWS_URL)",
        "If you can't use autodiscover (in a test lab for example) you can specify",
        "the EWS endpoint here. Usually it is \"https://server/EWS/Exchange.asmx\".",
        "Whenever it's possible use autodiscover.",
    ],
    "allowredirection": [
        "Parameter: allowredirection",
        "Parameter is optional",
        "Accepts an autodiscover endpoint outside the mailbox domain, as long as it is HTTPS.",
        "This is a check on the final endpoint only, not a guard on where credentials go:",
        "autodiscover follows redirects and may have sent credentials to the redirected host already.",
    ],
    "user": [
        "Parameter: user",
        "Parameter is optional (env: EWS_USER)",
        "The username (primary smtp address) used for altering the mailbox.",
        "If you specify a user you also need to specify the password. If no user is specified",
        "the credentials of the user running the program are used.",
    ],
    "password": [
        "Parameter: password",
        "Parameter is optional (env: EWS_PASSWORD). It's mandatory when --user is set.",
        "The password for --user.",
    ],
    "impersonate": [
        "Parameter: impersonate",
        "Parameter is optional",
        "Use this when you want to alter a mailbox other than yours.",
        "You need ApplicationImpersonation rights on the Exchange server.",
    ],
    "retentionid": [
        "Parameter: retentionid",
        "Parameter is optional",
        "Comma separated retention ids. Only tags with one of these ids are removed.",
        "Useful when the user has more than one personal tag applied.",
        "You can get the retention id from the retention policy tags in the Exchange Management Shell.",
    ],
    "archive": [
        "Parameter: archive",
        "Parameter is optional",
        "Search folders inside the online archive instead of the mailbox.",
    ],
}


# === Setup ===

def configure_logging() -> None:
    """Console logging, plus a file when LOG_FILE is set"""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    log_file = os.getenv("LOG_FILE")
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=handlers
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Remove personal retention tags (archive and policy tags) from mailbox folders'
    )

    parser.add_argument('--mailbox', type=str, help='Primary SMTP address of the mailbox to alter')
    parser.add_argument('--archive', action='store_true', help='Search the online archive instead of the mailbox')
    parser.add_argument('--foldername', type=str, help='Only process folders whose path contains this text')
    parser.add_argument('--retentionid', type=str, help='Comma separated retention ids to remove (default: all)')
    parser.add_argument('--logonly', dest='log_only', action='store_true', help='Only log tagged folders, change nothing')
    parser.add_argument('--no-logonly', dest='log_only', action='store_false', help='Actually remove tags')
    parser.add_argument('--url', type=str, help='EWS endpoint, skips autodiscover')
    parser.add_argument('--allowredirection', action='store_true', help='Accept autodiscover redirection to another HTTPS host')
    parser.add_argument('--user', type=str, help='User name for explicit credentials')
    parser.add_argument('--password', type=str, help='Password for --user')
    parser.add_argument('--impersonate', action='store_true', help='Use ApplicationImpersonation for the mailbox')
    parser.add_argument('--ignorecertificate', action='store_true', help='Ignore TLS certificate errors')
    parser.add_argument('--usage', type=str, metavar='PARAM', help='Show detailed help for one parameter')
    parser.set_defaults(log_only=None)

    return parser


def parse_retention_ids(value: Optional[str]) -> Optional[Set[str]]:
    """Split a comma separated id list; empty input means no filter"""
    if not value:
        return None
    ids = {part.strip() for part in value.split(',') if part.strip()}
    return ids or None


def build_connection_config(args: argparse.Namespace) -> ConnectionConfig:
    """CLI args override environment"""
    return ConnectionConfig(
        mailbox=args.mailbox,
        url=args.url or os.getenv('EWS_URL'),
        allow_redirection=args.allowredirection,
        user=args.user or os.getenv('EWS_USER'),
        password=args.password or os.getenv('EWS_PASSWORD'),
        impersonate=args.impersonate,
        ignore_certificate=args.ignorecertificate,
        archive=args.archive
    )


def resolve_log_only(args: argparse.Namespace) -> bool:
    if args.log_only is None:
        return os.getenv('LOG_ONLY', 'false').lower() == 'true'
    return args.log_only


# === Output ===

def print_usage(param: str, parser: argparse.ArgumentParser) -> None:
    lines = USAGE_TEXT.get(param.lower().lstrip('-'))
    if not lines:
        parser.print_help()
        return
    for line in lines:
        console.print(line)


def print_summary(summary: RunSummary, commit: bool) -> None:
    """Print final summary table"""
    table = Table(title="Retention Tag Cleanup Results", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="cyan", width=25)
    table.add_column("Count", justify="right", style="green", width=10)

    table.add_row("Folders Examined", f"{summary.examined:,}")
    table.add_row("Tags Found", f"{summary.found:,}")
    table.add_row("Folders Changed", f"{summary.changed:,}")

    console.print(table)

    if commit:
        console.print(f"\n[bold green]LIVE MODE COMPLETED:[/bold green]")
        console.print(f"  - {summary.changed:,} folders were updated")
    else:
        console.print(f"\n[bold yellow]DRY RUN MODE:[/bold yellow]")
        console.print(f"  - No tags were removed")
        console.print(f"  - Run without --logonly to remove them")


# === Run ===

async def run(service: ExchangeService, foldername: Optional[str], retention_ids: Optional[Set[str]], commit: bool) -> RunSummary:
    """Enumerate, filter and clean; errors propagate to main()"""
    folders = await service.list_folders()
    if foldername:
        folders = await service.filter_folders(folders, foldername)
    return await service.remove_tags(folders, retention_ids=retention_ids, commit=commit)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point, returns the process exit code"""
    load_dotenv()
    configure_logging()

    parser = build_parser()
    argv = sys.argv[1:] if argv is None else argv

    if not argv:
        parser.print_help()
        return EXIT_OK

    args = parser.parse_args(argv)

    if args.usage:
        print_usage(args.usage, parser)
        return EXIT_OK

    if not args.mailbox:
        logger.error("No mailbox given. Use --help to refer to the usage.")
        console.print("[red]No mailbox given. Use --help to refer to the usage.[/red]")
        return EXIT_NO_MAILBOX

    logger.info("Program started")
    commit = not resolve_log_only(args)
    retention_ids = parse_retention_ids(args.retentionid)

    logger.debug(f"mailbox: {args.mailbox}")
    logger.debug(f"logonly: {not commit}")
    logger.debug(f"impersonate: {args.impersonate}")
    logger.debug(f"allowredirection: {args.allowredirection}")
    logger.debug(f"archive: {args.archive}")
    if retention_ids:
        logger.debug(f"Retention id filter: {sorted(retention_ids)}")
    if args.foldername:
        logger.debug(f"foldername: {args.foldername}")

    service = ExchangeService(build_connection_config(args))

    try:
        service.connect()
    except MailboxConnectionError as error:
        logger.error(f"Error on creating the EWS connection: {error}. Please check the parameters and permissions.")
        console.print(f"[red]Connection failed: {error}[/red]")
        return EXIT_FAILURE

    try:
        summary = asyncio.run(run(service, args.foldername, retention_ids, commit))
    except (TransportError, PersistError) as error:
        logger.error(f"Program stopped with failures: {error}")
        console.print(f"[red]Program stopped with failures: {error}[/red]")
        if error.summary is not None:
            print_summary(error.summary, commit)
        return EXIT_FAILURE

    print_summary(summary, commit)
    if service.interrupted:
        console.print("\n[yellow]Process interrupted by user. Summary shows folders processed before interruption.[/yellow]")

    logger.info("Program finished")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
