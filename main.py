"""Command-line interface for the contact desk service."""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from contactdesk.admin import ListingParams
from contactdesk.config import load_settings
from contactdesk.database import Database
from contactdesk.export import contacts_to_csv

logger = logging.getLogger("contactdesk.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Contact desk utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (default: CONTACTDESK_CONFIG or config/contactdesk.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the contact database")
    subparsers.add_parser("seed", help="Insert the demo contacts")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")

    export_parser = subparsers.add_parser("export", help="Write contacts as CSV")
    export_parser.add_argument("--search", default=None, help="Case-insensitive text filter")
    export_parser.add_argument("--status", default=None, help="Only export this status")
    export_parser.add_argument(
        "--output",
        default=None,
        help="Destination file (default: standard output)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "seed", "export"}

    # Options given without a subcommand are forwarded to ``serve``.
    if not args_list:
        args_list = ["serve"]
    elif args_list[0] not in ("-h", "--help") and not any(arg in known_commands for arg in args_list):
        if args_list[0] == "--config" and len(args_list) >= 2:
            args_list = [*args_list[:2], "serve", *args_list[2:]]
        else:
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(config_path: str | None) -> Database:
    settings = load_settings(Path(config_path).expanduser() if config_path else None)
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, config_path: str | None, host: str, port: int) -> None:
    from contactdesk.application import create_application
    import uvicorn

    logger.info("Starting contact desk on http://%s:%s", host, port)
    app = create_application(config_path=config_path)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _seed(database: Database) -> None:
    created = database.seed_demo_contacts()
    if not created:
        print("Demo contacts already present.")
        return
    for contact in created:
        print(f"Created contact {contact.id}: {contact.name} <{contact.email}>")


def _export(database: Database, *, search: str | None, status: str | None, output: str | None) -> None:
    params = ListingParams.from_query({"search": search or "", "status": status or ""})
    contacts = database.find_contacts(params.to_filter(), sort="createdAt", order="desc")
    csv_text = contacts_to_csv(contacts)

    if output:
        Path(output).expanduser().write_text(csv_text, encoding="utf-8")
        print(f"Exported {len(contacts)} contact(s) to {output}")
    else:
        sys.stdout.write(csv_text + "\n")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    args = _parse_args(argv)

    if args.command == "serve":
        _serve(config_path=args.config, host=args.host, port=args.port)
        return

    database = _initialise_database(args.config)
    if args.command == "init-db":
        print("Database initialisation complete.")
    elif args.command == "seed":
        _seed(database)
    elif args.command == "export":
        _export(database, search=args.search, status=args.status, output=args.output)


if __name__ == "__main__":
    main()
