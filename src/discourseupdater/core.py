import logging
import subprocess
from datetime import date
from typing import List, Mapping, Optional

import requests
from rich.console import Console
from rich.markup import escape

from .constants import RESERVED_INSTALL_NAME
from .errors import UpdaterError
from .models import BatchResult, RemoteInstall, UpdateOutcome
from .services.batch_runner import BatchRunner, resolve_targets
from .services.changelog import ChangelogPoster, DiscourseChangelogPublisher
from .services.checklist import format_checklist
from .services.command_runner import CommandRunner
from .services.command_set import resolve_command_set
from .services.discourse_api import DiscourseClient
from .services.transport import SshTransport
from .services.update_session import UpdateSession
from .services.validation import ValidationService

console = Console()
logger = logging.getLogger("discourseupdater")


class DiscourseUpdater:
    def __init__(
        self,
        installs: List[RemoteInstall],
        target: str,
        post_changelog: bool = False,
        auto_confirm: bool = False,
        concurrent: bool = False,
        environ: Optional[Mapping[str, str]] = None,
        transport=None,
        requests_module=requests,
        run_date: Optional[date] = None,
    ):
        self.installs = installs
        self.target = target
        self.post_changelog = post_changelog
        self.auto_confirm = auto_confirm
        self.concurrent = concurrent
        self.requests = requests_module

        self.validation_service = ValidationService()
        self.commands = resolve_command_set(environ)
        self.transport = transport or SshTransport(
            logger=logger,
            console=console,
            subprocess_module=subprocess,
        )
        self.command_runner = CommandRunner(
            transport=self.transport,
            logger=logger,
            default_options=self.commands.ssh,
            default_timeout=self.commands.command_timeout,
            validation_service=self.validation_service,
        )
        self.changelog_poster = ChangelogPoster(
            publisher=DiscourseChangelogPublisher(client_factory=self._client),
            logger=logger,
            console=console,
        )
        self.batch_runner = BatchRunner(
            commands=self.commands,
            session_factory=self.build_session,
            logger=logger,
            console=console,
            changelog_poster=self.changelog_poster,
            validation_service=self.validation_service,
            run_date=run_date,
        )

    def _client(self, install: RemoteInstall) -> DiscourseClient:
        return DiscourseClient(install, requests_module=self.requests)

    def build_session(self, install: RemoteInstall) -> UpdateSession:
        version_probe = None
        if install.baseurl:
            version_probe = self._client(install).fetch_version

        return UpdateSession(
            install=install,
            commands=self.commands,
            command_runner=self.command_runner,
            logger=logger,
            console=console,
            version_probe=version_probe,
            validation_service=self.validation_service,
        )

    def update_one(self, install: RemoteInstall) -> UpdateOutcome:
        outcome = self.build_session(install).run()
        if outcome.succeeded and self.post_changelog:
            self.changelog_poster.post(
                install,
                format_checklist(outcome),
                auto_confirm=self.auto_confirm,
            )
        return outcome

    def update_all(self) -> BatchResult:
        return self.batch_runner.run(
            self.installs,
            post_changelog=self.post_changelog,
            auto_confirm=self.auto_confirm,
            concurrent=self.concurrent,
        )

    def run(self) -> int:
        try:
            self.validation_service.validate_fleet(self.installs)

            if self.target == RESERVED_INSTALL_NAME:
                result = self.update_all()
                return 0 if result.succeeded else 1

            if self.concurrent:
                raise UpdaterError("--concurrent only applies to 'all'.")

            install = resolve_targets(self.installs, self.target)[0]
            outcome = self.update_one(install)
            if not outcome.succeeded:
                status = outcome.final_status
                console.print(
                    f"[bold red]Update of {escape(install.name)} failed during "
                    f"{status.stage.label if status.stage else 'update'}:[/bold red] "
                    f"{escape(status.reason or 'unknown error')}"
                )
                return 1
            return 0

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return 1
        except UpdaterError as exc:
            console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
            logger.error(str(exc))
            return 1
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {escape(str(exc))}")
            logger.exception("Unexpected error")
            return 1
