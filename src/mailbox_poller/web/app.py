"""FastAPI application exposing mailbox polling health to administrators."""

from __future__ import annotations

import logging
import os
from typing import Any

from fastapi import FastAPI

from mailbox_poller.core import AppSettings, PollConfiguration, load_app_settings
from mailbox_poller.core.datetime_utils import serialize_datetime
from mailbox_poller.core.models import DashboardProblem, PollReport
from mailbox_poller.jobs import (
    PollerServices,
    PollInProgressError,
    PollMailbox,
    build_services,
)

LOGGER = logging.getLogger(__name__)


def create_app(
    settings: AppSettings | None = None,
    services: PollerServices | None = None,
) -> FastAPI:
    """Build the admin API; ``services`` defaults to the production wiring."""
    app_settings = settings or load_app_settings()
    poller = services or build_services(app_settings)

    app = FastAPI(title="Mailbox poller admin")
    app.state.settings = app_settings
    app.state.services = poller

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        if services is None:
            poller.close()

    @app.get("/api/status")
    def status() -> dict[str, Any]:
        config = PollConfiguration.from_settings(app_settings, os.environ)
        return {
            "polling_enabled": config.should_poll(),
            "host": config.host,
            "polling_period_minutes": int(config.polling_period.total_seconds() // 60),
            "errors_in_past_24_hours": PollMailbox.errors_in_past_24_hours(
                poller.error_store
            ),
            "problems": [
                _serialize_problem(problem)
                for problem in poller.problems.active_problems()
            ],
        }

    @app.get("/api/problems")
    def problems() -> list[dict[str, Any]]:
        return [
            _serialize_problem(problem)
            for problem in poller.problems.active_problems()
        ]

    @app.post("/api/poll")
    def trigger_poll() -> dict[str, Any]:
        LOGGER.info("Polling cycle requested through the admin API")
        try:
            report = poller.job.execute({"trigger": "admin-api"})
        except PollInProgressError:
            LOGGER.info("Polling cycle already running; admin request skipped")
            return {"ran": False, "busy": True}
        return _serialize_report(report)

    return app


def _serialize_problem(problem: DashboardProblem) -> dict[str, Any]:
    return {
        "key": problem.key,
        "message": problem.message,
        "expires_at": serialize_datetime(problem.expires_at),
    }


def _serialize_report(report: PollReport | None) -> dict[str, Any]:
    if report is None:
        return {"ran": False}
    return {
        "ran": True,
        "processed": report.processed,
        "accepted": report.accepted,
        "rejected": report.rejected,
        "unclassified": report.unclassified,
    }


__all__ = ["create_app"]
