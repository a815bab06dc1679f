from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from .config import AppConfig, load_config
from .errors import PortalError
from .ghl import GHLClient
from .google_sheets import GoogleSheetsClient
from .parallel import push_pending
from .pdf_report import (
    render_admin_analytics_pdf,
    render_progress_report_pdf,
    render_staff_workload_pdf,
)
from .portal import Portal, service_user
from .progress import Phase, match, progress_status, step_count, step_index
from .report import (
    default_report_name,
    render_admin_analytics,
    render_progress_report,
    render_staff_workload,
)
from .store import PortalStore
from .users import import_users, write_credentials

LOGGER = logging.getLogger("checklist_portal")

_PHASE_CHOICES = [phase.value for phase in Phase]
_FORMAT_CHOICES = ["html", "pdf"]


def _load_env_files(config_path: Path) -> None:
    """Load environment variables from .env files."""

    # Load default .env in current working directory if present
    load_dotenv(override=False)

    # Load .env placed next to the config file if it exists
    config_env = config_path.parent / ".env"
    if config_env.exists():
        load_dotenv(dotenv_path=config_env, override=False)


def _parse_date(value: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got '{value}'") from exc


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sync, classify and report on building-code checklist progress"
    )
    parser.add_argument("--config", help="Path to the YAML configuration file")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("sync", help="Sync projects from the projects sheet")

    classify_parser = subparsers.add_parser(
        "classify", help="Classify a single checklist value"
    )
    classify_parser.add_argument("--phase", choices=_PHASE_CHOICES, required=True)
    classify_parser.add_argument("value", help="Raw checklist cell text")

    report_parser = subparsers.add_parser("report", help="Write the project progress report")
    report_parser.add_argument("--phase", choices=_PHASE_CHOICES, default=Phase.PLANNING.value)
    report_parser.add_argument("--output", help="Destination file")
    report_parser.add_argument("--format", choices=_FORMAT_CHOICES, default=None)

    workload_parser = subparsers.add_parser("workload", help="Write the staff workload report")
    workload_parser.add_argument("--output", help="Destination file")
    workload_parser.add_argument("--format", choices=_FORMAT_CHOICES, default=None)

    analytics_parser = subparsers.add_parser(
        "analytics", help="Write the admin analytics report"
    )
    analytics_parser.add_argument("--start", type=_parse_date, default=None)
    analytics_parser.add_argument("--end", type=_parse_date, default=None)
    analytics_parser.add_argument("--output", help="Destination file")
    analytics_parser.add_argument("--format", choices=_FORMAT_CHOICES, default=None)

    import_parser = subparsers.add_parser(
        "import-users", help="Create password logins from a contacts CSV export"
    )
    import_parser.add_argument("csv", help="Contacts export with Email and Company Name columns")
    import_parser.add_argument("--credentials-out", help="Write the generated logins to this CSV")

    subparsers.add_parser("ghl-push", help="Push unsynced inspections and contacts to GHL")
    subparsers.add_parser("ghl-test", help="Check the GHL API credentials")

    args = parser.parse_args(argv)
    if args.command != "classify" and not args.config:
        parser.error(f"--config is required for '{args.command}'")
    return args


def _classify(args: argparse.Namespace) -> int:
    phase = Phase(args.phase)
    result = match(args.value, phase)
    status = progress_status(result.percentage)
    step = result.matched_step.label if result.matched_step else "-"
    print(f"percentage: {result.percentage:g}")
    print(f"step: {step_index(args.value, phase)}/{step_count(phase)} ({step})")
    print(f"status: {status.label}")
    return 0


def _report_format(args: argparse.Namespace) -> str:
    if args.format:
        return args.format
    if args.output and args.output.lower().endswith(".pdf"):
        return "pdf"
    return "html"


def _write_report(content: str | bytes, output: str | None, default_name: str) -> Path:
    path = Path(output or default_name).expanduser()
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    LOGGER.info("Report written to %s", path)
    return path


def _run(args: argparse.Namespace, config: AppConfig, config_path: Path) -> int:
    database_path = config.database_path or (config_path.parent / "checklist_portal.sqlite")
    store = PortalStore(database_path)
    try:
        sheets_client = GoogleSheetsClient(config.sheets)
        ghl_client = GHLClient(config.ghl)
        portal = Portal(config, store, sheets_client, ghl_client)
        user = service_user(config.all_companies_token)

        if args.command == "sync":
            count = portal.sync()
            LOGGER.info("Synced %s projects", count)
            return 0

        if args.command == "import-users":
            imported = import_users(store, args.csv)
            if args.credentials_out:
                write_credentials(imported.users, args.credentials_out)
            return 0

        if args.command == "report":
            phase = Phase(args.phase)
            report = portal.progress_report(user, phase)
            fmt = _report_format(args)
            render = render_progress_report_pdf if fmt == "pdf" else render_progress_report
            _write_report(
                render(report),
                args.output,
                default_report_name("project-progress", phase, extension=fmt),
            )
            return 0

        if args.command == "workload":
            workload = portal.staff_workload(user)
            fmt = _report_format(args)
            render = render_staff_workload_pdf if fmt == "pdf" else render_staff_workload
            _write_report(
                render(workload),
                args.output,
                default_report_name("staff-workload", extension=fmt),
            )
            return 0

        if args.command == "analytics":
            analytics = portal.admin_analytics(user, args.start, args.end)
            fmt = _report_format(args)
            render = render_admin_analytics_pdf if fmt == "pdf" else render_admin_analytics
            _write_report(
                render(analytics),
                args.output,
                default_report_name("admin-analytics", extension=fmt),
            )
            return 0

        if args.command == "ghl-push":
            summary = push_pending(
                store,
                ghl_client,
                max_workers=config.ghl.max_workers,
                max_retries=config.ghl.max_retries,
            )
            if summary.failed:
                LOGGER.warning("Failed to push: %s", ", ".join(summary.failed))
                return 1
            return 0

        if args.command == "ghl-test":
            result = ghl_client.test_connection()
            if not result.success:
                LOGGER.error("GHL connection failed: %s", result.error)
                return 1
            LOGGER.info("GHL connection OK")
            return 0

        LOGGER.error("Unknown command '%s'", args.command)
        return 2
    finally:
        store.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "classify":
        return _classify(args)

    config_path = Path(args.config).expanduser().resolve()
    _load_env_files(config_path)
    config = load_config(config_path)

    try:
        return _run(args, config, config_path)
    except PortalError as exc:
        LOGGER.error("%s", exc)
        return 1


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
