from __future__ import annotations

import argparse
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from ticketpipe.adapters.crypto import generate_private_key_hex
from ticketpipe.app import build_application
from ticketpipe.config import (
    configure_logging,
    get_issuance_config,
    get_pipelines_path,
    load_pipeline_definitions,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from ticketpipe.app import IssuanceApplication

log = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync ticket providers and serve ticket feeds")
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Root log level (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the scheduler and the HTTP API")
    serve.add_argument("--host", type=str, default=DEFAULT_HOST, help="Bind address")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT, help="Bind port")

    sync = subparsers.add_parser("sync", help="Run one sync cycle and exit")
    sync.add_argument(
        "--pipeline",
        type=str,
        help="Only sync this pipeline id (default: all pipelines)",
    )

    subparsers.add_parser("feeds", help="Print the public feed listing as JSON")
    subparsers.add_parser("keygen", help="Print a new hex EdDSA private key")

    principal = subparsers.add_parser("principal", help="Holder identity commands")
    principal_sub = principal.add_subparsers(dest="principal_command", required=True)
    principal_add = principal_sub.add_parser(
        "add", help="Link an identity commitment to a verified email"
    )
    principal_add.add_argument("--commitment", type=str, required=True, help="Public key hex")
    principal_add.add_argument("--email", type=str, required=True, help="Verified email")

    checkin = subparsers.add_parser("checkin", help="Check-in administration")
    checkin_sub = checkin.add_subparsers(dest="checkin_command", required=True)
    checkin_delete = checkin_sub.add_parser("delete", help="Delete the check-in of a ticket")
    checkin_delete.add_argument("--ticket-id", type=str, required=True, help="Atom id")

    return parser.parse_args(list(argv))


def _build() -> IssuanceApplication:
    definitions = load_pipeline_definitions(get_pipelines_path())
    return build_application(get_issuance_config(), definitions)


def _serve(args: argparse.Namespace) -> None:
    import uvicorn  # noqa: PLC0415

    from ticketpipe.ui.http import create_app  # noqa: PLC0415

    application = _build()
    application.start()
    try:
        uvicorn.run(create_app(application), host=args.host, port=args.port)
    finally:
        application.stop()


def _sync(args: argparse.Namespace) -> int:
    application = _build()
    application.start(schedule=False)
    try:
        if args.pipeline:
            result = application.sync(args.pipeline)
            results = [result] if result is not None else []
        else:
            results = application.sync_all()
    finally:
        application.stop()

    failed = [result for result in results if not result.success]
    for result in results:
        log.info(
            "Pipeline %s: success=%s upserted=%d deleted=%d redacted=%d error=%s",
            result.pipeline_id,
            result.success,
            result.upserted,
            result.deleted,
            result.redacted,
            result.error,
        )
    return 1 if failed else 0


def _feeds() -> None:
    application = _build()
    listing = application.feed_host.list_feeds()
    payload = {
        "providerUrl": listing.provider_url,
        "providerName": listing.provider_name,
        "feeds": [
            {"id": feed.id, "name": feed.name, "folder": feed.folder} for feed in listing.feeds
        ],
    }
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")


def _principal_add(args: argparse.Namespace) -> None:
    application = _build()
    result = application.link_identity(commitment=args.commitment, email=args.email)
    log.info(
        "Principal %s %s; restored %d redacted tickets",
        result.principal.email,
        "created" if result.created else "already linked",
        len(result.restored),
    )


def _checkin_delete(args: argparse.Namespace) -> int:
    application = _build()
    if application.checkins.delete_checkin(args.ticket_id):
        return 0
    log.warning("Ticket %s has no check-in", args.ticket_id)
    return 1


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    level = logging.getLevelNamesMapping().get(parsed_args.log_level.upper(), logging.INFO)
    configure_logging(level=level)

    exit_code = 0
    try:
        if parsed_args.command == "serve":
            _serve(parsed_args)
        elif parsed_args.command == "sync":
            exit_code = _sync(parsed_args)
        elif parsed_args.command == "feeds":
            _feeds()
        elif parsed_args.command == "keygen":
            sys.stdout.write(generate_private_key_hex() + "\n")
        elif parsed_args.command == "principal" and parsed_args.principal_command == "add":
            _principal_add(parsed_args)
        elif parsed_args.command == "checkin" and parsed_args.checkin_command == "delete":
            exit_code = _checkin_delete(parsed_args)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except Exception:
        log.exception("Fatal error running %s", parsed_args.command)
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()
