"""Per-install update state machine for discourse-updater."""

import re
import time
from enum import Enum
from typing import Callable, List, Optional, Sequence

from packaging import version
from rich.markup import escape

from discourseupdater.constants import (
    FALLBACK_OS_VERSION_CMD,
    SSH_PROBE_CMD,
    SSH_PROBE_OPTIONS,
)
from discourseupdater.errors import StageFailure, TransportError, UpdaterError
from discourseupdater.models import (
    CapturedOutput,
    FinalStatus,
    RemoteCommandSet,
    RemoteInstall,
    StageKind,
    StageResult,
    UpdateOutcome,
)
from discourseupdater.services.validation import ValidationService


class SessionState(Enum):
    OS_UPDATING = "os_updating"
    REBOOTING = "rebooting"
    VERSION_VERIFYING = "version_verifying"
    REBUILDING = "rebuilding"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    ABORTED = "aborted"


TERMINAL_STATES = frozenset({SessionState.DONE, SessionState.ABORTED})
REQUIRED_STAGES = (StageKind.OS_UPDATE, StageKind.REBOOT, StageKind.REBUILD)


class _OutcomeBuilder:
    """Accumulates stage results until the session reaches a terminal state."""

    def __init__(self, install: str):
        self.install = install
        self.stages: List[StageResult] = []
        self.os_version_before: Optional[str] = None
        self.os_version_after: Optional[str] = None
        self.discourse_version_before: Optional[str] = None
        self.new_discourse_version: Optional[str] = None
        self.reclaimed_space: Optional[str] = None

    def record(self, stage: StageKind, succeeded: bool, output: str, duration_ms: int):
        self.stages.append(StageResult(stage, succeeded, output, duration_ms))

    def succeeded(self, stage: StageKind) -> bool:
        results = [result for result in self.stages if result.stage is stage]
        return bool(results) and all(result.succeeded for result in results)

    def build(self, final_status: FinalStatus) -> UpdateOutcome:
        return UpdateOutcome(
            install=self.install,
            stages=tuple(self.stages),
            final_status=final_status,
            os_version_before=self.os_version_before,
            os_version_after=self.os_version_after,
            discourse_version_before=self.discourse_version_before,
            new_discourse_version=self.new_discourse_version,
            reclaimed_space=self.reclaimed_space,
        )


class UpdateSession:
    """Runs OS update, reboot, version check, rebuild and cleanup on one install.

    Stage failures never escape `run()`; they end up in the returned
    `UpdateOutcome.final_status`. Only configuration problems raise.
    """

    VERSION_PATTERN = re.compile(
        r"(?:\bUpdated\s+Discourse\s+to\s+version\s+v?|\bDiscourse\s+v?)(\d+\.\d+\.\d+[0-9A-Za-z.\-+]*)",
        re.IGNORECASE,
    )
    RECLAIMED_SPACE_MARKER = "Total reclaimed space:"
    REBOOT_TIMEOUT_REASON = "Server did not come back online after reboot"
    INTERRUPTED_REASON = "interrupted"

    def __init__(
        self,
        install: RemoteInstall,
        commands: RemoteCommandSet,
        command_runner,
        logger,
        console,
        version_probe: Optional[Callable[[], Optional[str]]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        validation_service: Optional[ValidationService] = None,
    ):
        self.install = install
        self.commands = commands
        self.command_runner = command_runner
        self.logger = logger
        self.console = console
        self.version_probe = version_probe
        self.sleep = sleep
        self.clock = clock
        self.validation_service = validation_service or ValidationService()
        self.state = SessionState.OS_UPDATING

    @property
    def host(self) -> str:
        return self.install.host

    @property
    def label(self) -> str:
        return escape(f"[{self.host}]")

    def run(self) -> UpdateOutcome:
        self.validation_service.validate_install_name(self.install.name)
        self.validation_service.validate_ssh_target(self.install.host)

        self.console.print(
            f"\n[bold]==> Updating {escape(self.install.name)} ({escape(self.host)})[/bold]"
        )
        self.logger.info("Starting update of %s (%s)", self.install.name, self.host)

        handlers = {
            SessionState.OS_UPDATING: self._os_update,
            SessionState.REBOOTING: self._reboot,
            SessionState.VERSION_VERIFYING: self._verify_version,
            SessionState.REBUILDING: self._rebuild,
            SessionState.CLEANING_UP: self._cleanup,
        }

        builder = _OutcomeBuilder(self.install.name)
        final_status: Optional[FinalStatus] = None
        self.state = SessionState.OS_UPDATING

        while self.state not in TERMINAL_STATES:
            try:
                self.state = handlers[self.state](builder)
            except StageFailure as exc:
                self.logger.error("[%s] %s", self.host, exc)
                self.console.print(f"[bold red]{self.label} {escape(str(exc))}[/bold red]")
                final_status = FinalStatus.failed(exc.stage, exc.reason)
                self.state = SessionState.ABORTED

        if final_status is None:
            final_status = self._final_status(builder)

        outcome = builder.build(final_status)
        if outcome.succeeded:
            self.console.print(f"[green]{self.label} Update completed.[/green]")
            self.logger.info("Update of %s completed", self.install.name)
        return outcome

    def _final_status(self, builder: _OutcomeBuilder) -> FinalStatus:
        for stage in REQUIRED_STAGES:
            if not builder.succeeded(stage):
                return FinalStatus.failed(stage, f"{stage.label} did not complete")
        return FinalStatus.success()

    def _stage(self, message: str):
        self.console.print(f"[blue]{self.label} {escape(message)}[/blue]")
        self.logger.info("[%s] %s", self.host, message)

    def _execute(
        self,
        command: str,
        extra_options: Sequence[str] = (),
        timeout: Optional[float] = None,
    ) -> CapturedOutput:
        return self.command_runner.run(
            self.host,
            command,
            self.commands.ssh,
            timeout=timeout if timeout is not None else self.commands.command_timeout,
            extra_options=extra_options,
        )

    def _elapsed_ms(self, start: float) -> int:
        return max(0, int((self.clock() - start) * 1000))

    def _failure(self, stage: StageKind, exc: TransportError) -> StageFailure:
        if exc.interrupted:
            return StageFailure(stage, self.INTERRUPTED_REASON, interrupted=True)
        return StageFailure(stage, str(exc))

    def _run_recorded(self, builder: _OutcomeBuilder, stage: StageKind, command: str) -> CapturedOutput:
        """Runs one command and records it; raises StageFailure after recording a failure."""
        start = self.clock()
        try:
            result = self._execute(command)
        except TransportError as exc:
            builder.record(stage, False, exc.stderr or str(exc), self._elapsed_ms(start))
            raise self._failure(stage, exc) from exc
        builder.record(stage, True, result.stdout, self._elapsed_ms(start))
        return result

    def _os_update(self, builder: _OutcomeBuilder) -> SessionState:
        self._stage("Fetching OS version (before update)")
        builder.os_version_before = self._read_os_version(builder)
        self._stage(f"Initial OS Version (before update): {builder.os_version_before or 'unknown'}")

        builder.discourse_version_before = self._probe_discourse_version("before update")

        self._stage("Running OS update")
        try:
            self._run_recorded(builder, StageKind.OS_UPDATE, self.commands.os_update)
        except StageFailure as exc:
            if not exc.interrupted:
                self._rollback_os_update(builder)
            raise
        return SessionState.REBOOTING

    def _rollback_os_update(self, builder: _OutcomeBuilder):
        rollback_cmd = self.commands.os_update_rollback
        if not rollback_cmd:
            return

        self._stage("Running OS update rollback")
        try:
            self._run_recorded(builder, StageKind.OS_UPDATE_ROLLBACK, rollback_cmd)
        except StageFailure as exc:
            self.logger.warning("OS update rollback failed for %s: %s", self.host, exc.reason)
            self.console.print(
                f"[yellow]Warning:[/yellow] OS update rollback failed for {escape(self.host)}."
            )

    def _reboot(self, builder: _OutcomeBuilder) -> SessionState:
        self._stage("Rebooting server")
        start = self.clock()
        try:
            result = self._execute(self.commands.reboot)
            came_back = self.commands.reboot_probe_attempts <= 0 or self._wait_for_host()
        except TransportError as exc:
            builder.record(StageKind.REBOOT, False, exc.stderr or str(exc), self._elapsed_ms(start))
            raise self._failure(StageKind.REBOOT, exc) from exc

        if not came_back:
            builder.record(
                StageKind.REBOOT,
                False,
                self.REBOOT_TIMEOUT_REASON,
                self._elapsed_ms(start),
            )
            raise StageFailure(StageKind.REBOOT, self.REBOOT_TIMEOUT_REASON)

        builder.record(StageKind.REBOOT, True, result.stdout, self._elapsed_ms(start))
        return SessionState.VERSION_VERIFYING

    def _wait_for_host(self) -> bool:
        self._stage("Waiting for server to come back online")
        max_attempts = self.commands.reboot_probe_attempts
        for attempt in range(1, max_attempts + 1):
            self.sleep(self.commands.reboot_wait_seconds)
            try:
                self._execute(SSH_PROBE_CMD, extra_options=SSH_PROBE_OPTIONS)
                return True
            except TransportError as exc:
                if exc.interrupted:
                    raise
                self.logger.debug("SSH probe %s/%s failed: %s", attempt, max_attempts, exc)
                if attempt < max_attempts:
                    self.console.print(
                        f"{self.label} Still waiting for SSH (attempt {attempt + 1}/{max_attempts})"
                    )
        return False

    def _verify_version(self, builder: _OutcomeBuilder) -> SessionState:
        self._stage("Fetching OS version (after update)")
        builder.os_version_after = self._read_os_version(builder)
        self._stage(f"Final OS Version (after update): {builder.os_version_after or 'unknown'}")
        return SessionState.REBUILDING

    def _rebuild(self, builder: _OutcomeBuilder) -> SessionState:
        self._stage("Running Discourse update")
        result = self._run_recorded(builder, StageKind.REBUILD, self.commands.rebuild)

        new_version = self._probe_discourse_version("after update")
        if new_version is None:
            new_version = parse_discourse_version(result.stdout)
        builder.new_discourse_version = new_version
        self._stage(f"Final Discourse Version (after update): {new_version or 'unknown'}")

        before = builder.discourse_version_before
        if before and new_version and version_regressed(before, new_version):
            self.logger.warning(
                "Discourse version on %s went backwards: %s -> %s",
                self.install.name,
                before,
                new_version,
            )
        return SessionState.CLEANING_UP

    def _cleanup(self, builder: _OutcomeBuilder) -> SessionState:
        self._stage("Running cleanup")
        try:
            result = self._run_recorded(builder, StageKind.CLEANUP, self.commands.cleanup)
        except StageFailure as exc:
            if exc.interrupted:
                raise
            self.logger.warning("Cleanup failed for %s: %s", self.host, exc.reason)
            self.console.print(f"[yellow]Warning:[/yellow] cleanup failed for {escape(self.host)}.")
            return SessionState.DONE

        builder.reclaimed_space = parse_reclaimed_space(result.stdout)
        return SessionState.DONE

    def _read_os_version(self, builder: _OutcomeBuilder) -> Optional[str]:
        start = self.clock()
        for command in (self.commands.os_version, FALLBACK_OS_VERSION_CMD):
            try:
                result = self._execute(command)
            except TransportError as exc:
                if exc.interrupted:
                    builder.record(StageKind.OS_VERSION, False, str(exc), self._elapsed_ms(start))
                    raise self._failure(StageKind.OS_VERSION, exc) from exc
                self.logger.debug("OS version command failed on %s: %s", self.host, exc)
                continue
            builder.record(StageKind.OS_VERSION, True, result.stdout, self._elapsed_ms(start))
            return result.stdout.strip() or None

        builder.record(StageKind.OS_VERSION, False, "OS version unavailable", self._elapsed_ms(start))
        return None

    def _probe_discourse_version(self, label: str) -> Optional[str]:
        if self.version_probe is None:
            return None
        try:
            return self.version_probe()
        except UpdaterError as exc:
            self.logger.warning("Discourse version (%s) unknown for %s: %s", label, self.install.name, exc)
            return None


def parse_discourse_version(output: str) -> Optional[str]:
    matches = UpdateSession.VERSION_PATTERN.findall(output or "")
    if not matches:
        return None
    return matches[-1].rstrip(".-+")


def parse_reclaimed_space(output: str) -> Optional[str]:
    for line in (output or "").splitlines():
        _, marker, value = line.partition(UpdateSession.RECLAIMED_SPACE_MARKER)
        if marker:
            return value.strip() or None
    return None


def version_regressed(before: str, after: str) -> bool:
    try:
        return version.parse(after) < version.parse(before)
    except version.InvalidVersion:
        return False
