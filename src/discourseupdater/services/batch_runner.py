"""Fleet-wide sequential update runner."""

from datetime import date
from typing import Callable, List, Optional, Sequence

from rich.markup import escape

from discourseupdater.constants import RESERVED_INSTALL_NAME
from discourseupdater.errors import ConfigurationError
from discourseupdater.errors_catalog import actionable_error
from discourseupdater.models import BatchResult, RemoteInstall, UpdateOutcome
from discourseupdater.services.checklist import format_checklist
from discourseupdater.services.progress_log import BatchProgressLog, progress_log_path
from discourseupdater.services.validation import ValidationService


def resolve_targets(installs: Sequence[RemoteInstall], name: str) -> List[RemoteInstall]:
    """`all` expands to the whole fleet in config order; anything else must match one install."""
    if name == RESERVED_INSTALL_NAME:
        return list(installs)

    for install in installs:
        if install.name == name:
            return [install]
    raise ConfigurationError(actionable_error("unknown_install", name=name))


class BatchRunner:
    """Runs one UpdateSession per install, strictly in order, stopping at the first failure."""

    def __init__(
        self,
        commands,
        session_factory: Callable[[RemoteInstall], object],
        logger,
        console,
        changelog_poster=None,
        validation_service: Optional[ValidationService] = None,
        run_date: Optional[date] = None,
    ):
        self.commands = commands
        self.session_factory = session_factory
        self.logger = logger
        self.console = console
        self.changelog_poster = changelog_poster
        self.validation_service = validation_service or ValidationService()
        self.run_date = run_date

    def run(
        self,
        installs: Sequence[RemoteInstall],
        post_changelog: bool = False,
        auto_confirm: bool = False,
        concurrent: bool = False,
    ) -> BatchResult:
        if concurrent:
            raise ConfigurationError(actionable_error("concurrent_disabled"))

        self.validation_service.validate_fleet(installs)
        if post_changelog and self.changelog_poster is None:
            raise ConfigurationError("Changelog posting was requested but no poster is configured.")

        log_path = progress_log_path(self.commands.log_dir, self.run_date)
        outcomes: List[UpdateOutcome] = []

        with BatchProgressLog(log_path, logger=self.logger) as progress_log:
            for install in installs:
                outcome = self.session_factory(install).run()
                outcomes.append(outcome)
                progress_log.record(outcome)

                if not outcome.succeeded:
                    return self._stopped(outcomes, log_path, outcome)

                if post_changelog:
                    self.changelog_poster.post(
                        install,
                        format_checklist(outcome),
                        auto_confirm=auto_confirm,
                    )

        self.logger.info("Fleet update finished: %s install(s) updated", len(outcomes))
        self.console.print(f"[bold green]Updated {len(outcomes)} install(s).[/bold green]")
        return BatchResult(outcomes=tuple(outcomes), log_path=log_path)

    def _stopped(self, outcomes: List[UpdateOutcome], log_path: str, failed: UpdateOutcome) -> BatchResult:
        status = failed.final_status
        stage_label = status.stage.label if status.stage else "update"
        message = actionable_error(
            "batch_failed",
            install=failed.install,
            stage=stage_label,
            reason=status.reason or "unknown error",
        )
        self.logger.error(message)
        self.console.print(f"[bold red]Batch failed:[/bold red] {escape(message)}")
        return BatchResult(
            outcomes=tuple(outcomes),
            log_path=log_path,
            failed_install=failed.install,
            failed_stage=status.stage,
            reason=status.reason,
        )
