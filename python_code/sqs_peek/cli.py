"""Command-line entry point: `sqs-peek -q <queue> [--purge]`."""

import argparse
import sys
from typing import List, Optional

from . import app
from .config import Settings
from .exceptions import DrainError
from .model import DrainSession


def _non_empty(value: str) -> str:
    if not value.strip():
        raise argparse.ArgumentTypeError("must not be empty")
    return value


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="sqs-peek",
        description="Drain every message from an SQS queue into a JSON file, optionally deleting them.",
    )
    ap.add_argument("-q", "--queue", required=True, type=_non_empty, help="Queue URL, ARN or name to drain")
    ap.add_argument("-r", "--region", default=settings.region, help="AWS region of the queue")
    ap.add_argument("-p", "--profile", default=settings.profile, help="AWS profile to access the account")
    ap.add_argument(
        "-f", "--fileName", "--file-name",
        dest="file_name",
        default=settings.file_name,
        help="File name to store the messages in",
    )
    ap.add_argument("--purge", action="store_true", help="Delete every drained message after writing the file")
    ap.add_argument("--endpoint-url", default=settings.endpoint_url, help="SQS endpoint override (e.g. LocalStack)")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    settings = Settings.from_env()
    args = build_parser(settings).parse_args(argv)
    session = DrainSession(
        queue=args.queue,
        file_name=args.file_name,
        region=args.region,
        profile=args.profile,
        purge=args.purge,
        endpoint_url=args.endpoint_url,
        environment=settings.environment,
    )

    try:
        report = app.perform(session, logger=app.build_logger(settings.log_level))
    except DrainError as e:
        print(f"Error in {e.stage} stage: {e}", file=sys.stderr)
        return 1

    print(f"Fetched {report.messages_drained} records into {report.file_name}", file=sys.stderr)
    if session.purge:
        print(f"Purged {report.messages_purged} records", file=sys.stderr)
    return 0
