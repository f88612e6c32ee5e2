"""Command-line entry point for the mailbox poller."""

from __future__ import annotations

import argparse
import os
from datetime import timedelta
from pathlib import Path

from mailbox_poller.core import (
    AppSettings,
    PollConfiguration,
    configure_logging,
    load_app_settings,
)
from mailbox_poller.jobs import PollMailbox, Scheduler, build_services


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Poll a POP3 mailbox for replies")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", "poll", "run", "status"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "--max-cycles",
        dest="max_cycles",
        type=int,
        default=None,
        help="Stop the run command after this many cycles.",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> None:
    """Execute the requested CLI command."""
    command = args.command
    if command == "info":
        config = PollConfiguration.from_settings(settings, os.environ)
        print(f"POP3 host: {config.host}:{config.port} (SSL: {config.use_ssl})")
        print(f"Polling enabled: {config.should_poll()}")
        print(f"Polling period: {settings.polling.period_minutes} minute(s)")
        print(f"Database path: {settings.storage.db_path}")
    elif command == "poll":
        _run_poll(settings)
    elif command == "run":
        _run_scheduler(settings, max_cycles=args.max_cycles)
    elif command == "status":
        _run_status(settings)


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    execute(args, settings)


def _run_poll(settings: AppSettings) -> None:
    """Run a single polling cycle and report the outcome."""
    with build_services(settings) as services:
        report = services.job.execute({"trigger": "cli"})

    if report is None:
        print("Polling is disabled; nothing to do.")
        return
    print(
        f"Processed {report.processed} message(s): {report.accepted} accepted, "
        f"{report.rejected} rejected, {report.unclassified} unclassified."
    )


def _run_scheduler(settings: AppSettings, *, max_cycles: int | None) -> None:
    """Poll on the configured period until interrupted."""
    period = timedelta(minutes=settings.polling.period_minutes)
    with build_services(settings) as services:
        scheduler = Scheduler(services.job, period)
        try:
            scheduler.run_forever(max_cycles=max_cycles)
        except KeyboardInterrupt:
            scheduler.stop()
            print("Stopped.")


def _run_status(settings: AppSettings) -> None:
    """Print the error rate and active dashboard problems."""
    with build_services(settings) as services:
        errors = PollMailbox.errors_in_past_24_hours(services.error_store)
        problems = services.problems.active_problems()

    print(f"Errors in the past 24 hours: {errors}")
    if not problems:
        print("No active dashboard problems.")
        return
    for problem in problems:
        until = problem.expires_at.strftime("%Y-%m-%d %H:%M")
        print(f"[{problem.key}] {problem.message} (until {until} UTC)")


if __name__ == "__main__":
    main()
