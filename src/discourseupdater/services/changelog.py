"""Changelog confirmation and publishing for discourse-updater."""

from typing import Callable, Optional

from rich.markup import escape
from rich.prompt import Confirm

from discourseupdater.errors import ReportingWarning
from discourseupdater.models import ChangelogPostResult, RemoteInstall
from discourseupdater.services.discourse_api import DiscourseClient


class ChangelogPublisher:
    """Publishes a checklist to a changelog destination and returns the post id."""

    def publish(self, install: RemoteInstall, topic_id: int, text: str) -> int:
        raise NotImplementedError


class DiscourseChangelogPublisher(ChangelogPublisher):
    """Posts the checklist as a reply in the install's changelog topic."""

    def __init__(self, client_factory: Callable[[RemoteInstall], DiscourseClient] = DiscourseClient):
        self.client_factory = client_factory

    def publish(self, install: RemoteInstall, topic_id: int, text: str) -> int:
        return self.client_factory(install).create_post(topic_id, text)


class ChangelogPoster:
    """Shows the checklist, asks the operator, then hands it to the publisher."""

    PROMPT = "Post this to changelog?"

    def __init__(
        self,
        publisher: ChangelogPublisher,
        logger,
        console,
        confirm: Optional[Callable[[str], bool]] = None,
    ):
        self.publisher = publisher
        self.logger = logger
        self.console = console
        self.confirm = confirm or self._ask

    def _ask(self, prompt: str) -> bool:
        return Confirm.ask(prompt, default=False, console=self.console)

    def post(self, install: RemoteInstall, checklist: str, auto_confirm: bool = False) -> ChangelogPostResult:
        self.console.print(f"\n[bold]Changelog message for {escape(install.name)}:[/bold]")
        self.console.print(escape(checklist), highlight=False)
        self.console.print()

        try:
            topic_id = self._resolve_destination(install)
            if auto_confirm:
                self.console.print(f"{self.PROMPT} [y/N]: y (auto)")
            elif not self.confirm(self.PROMPT):
                raise ReportingWarning(f"Changelog post declined for {install.name}.")
        except ReportingWarning as exc:
            self.logger.warning("Changelog post skipped: %s", exc)
            self.console.print(f"[yellow]Changelog post skipped:[/yellow] {escape(str(exc))}")
            return ChangelogPostResult(posted=False, skipped_reason=str(exc))

        post_id = self.publisher.publish(install, topic_id, checklist)
        self.logger.info("Changelog post created for %s with ID %s", install.name, post_id)
        self.console.print(f"[green]Changelog post created with ID: {post_id}[/green]")
        return ChangelogPostResult(posted=True, post_id=post_id)

    @staticmethod
    def _resolve_destination(install: RemoteInstall) -> int:
        if install.changelog_topic_id is None:
            raise ReportingWarning(f"missing changelog_topic_id for {install.name}")
        if not install.has_api_credentials:
            raise ReportingWarning(
                f"missing api credentials for {install.name}; "
                "set apikey and api_username in the config file"
            )
        return install.changelog_topic_id
