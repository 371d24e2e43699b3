import argparse
import logging
from typing import Optional, Sequence

from ftpsession.config import load_settings, setup_logging
from ftpsession.errors import FtpError
from ftpsession.ftp_session import Session


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ftpsession",
        description="Check an FTP account configured through FTP_* environment variables or a .env file.",
    )
    parser.add_argument("--env-file", default=None, help="path to a .env file")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    parser.add_argument("--log-file", default=None, help="also write debug logs to this file")
    parser.add_argument("--list", action="store_true", help="list the working directory after connecting")
    return parser


def _print_listing(session: Session) -> None:
    directory = session.get_current_directory()
    print(f"{directory.path}:")
    for row in directory.list_entries():
        marker = "/" if row.get("type") == "dir" else ""
        size = row.get("size") or ""
        print(f"  {row['name']}{marker}\t{size}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug, log_file=args.log_file)

    try:
        settings = load_settings(args.env_file)
    except FtpError as exc:
        logging.error(str(exc))
        return 1
    logging.debug("Loaded %r", settings)

    session = Session.from_settings(settings)
    ok, message = session.validate_connection()
    if not ok:
        logging.error(message)
        return 1
    logging.info(message)

    if args.list:
        with session:
            try:
                _print_listing(session)
            except FtpError as exc:
                logging.error(str(exc))
                return 1
    return 0
