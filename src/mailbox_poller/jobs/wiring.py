"""Assemble the polling job and its collaborators from settings."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from types import TracebackType

from ..alerts import OperatorAlerts, build_error_reporter
from ..core.config import AppSettings
from ..core.models import PollConfiguration
from ..ingestion import archiving_receiver_factory
from ..notify import RejectionNotifier
from ..storage import (
    SqliteDashboardProblems,
    SqliteErrorRateStore,
    SqliteIncomingEmailRepository,
)
from ..transport import SmtpDeliverer
from .poll_mailbox import PollMailbox


@dataclass(slots=True)
class PollerServices:
    """The job plus the stores it shares with the CLI and admin API."""

    job: PollMailbox
    repository: SqliteIncomingEmailRepository
    error_store: SqliteErrorRateStore
    problems: SqliteDashboardProblems

    def __enter__(self) -> PollerServices:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self.repository.close()
        self.error_store.close()
        self.problems.close()


def build_services(
    settings: AppSettings, environ: Mapping[str, str] | None = None
) -> PollerServices:
    """Wire the production collaborators around a :class:`PollMailbox`."""
    repository = SqliteIncomingEmailRepository(settings.storage)
    error_store = SqliteErrorRateStore(settings.storage)
    problems = SqliteDashboardProblems(settings.storage)
    alerts = OperatorAlerts(problems, build_error_reporter(settings.alerts))
    notifier = RejectionNotifier(SmtpDeliverer(settings.smtp), repository)

    def config_provider() -> PollConfiguration:
        return PollConfiguration.from_settings(
            settings, os.environ if environ is None else environ
        )

    job = PollMailbox(
        config_provider=config_provider,
        receiver_factory=archiving_receiver_factory(repository),
        notifier=notifier,
        error_store=error_store,
        alerts=alerts,
    )
    return PollerServices(
        job=job, repository=repository, error_store=error_store, problems=problems
    )


__all__ = ["PollerServices", "build_services"]
