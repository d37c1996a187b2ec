"""Shared domain models for discourse-updater."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class RemoteInstall:
    """One Discourse install reachable over SSH."""

    name: str
    host: str
    changelog_topic_id: Optional[int] = None
    baseurl: Optional[str] = None
    api_key: Optional[str] = None
    api_username: Optional[str] = None

    @property
    def has_api_credentials(self) -> bool:
        return bool((self.api_key or "").strip() and (self.api_username or "").strip())


@dataclass(frozen=True)
class SshOptions:
    strict_host_key_checking: Optional[str] = "accept-new"
    extra_options: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RemoteCommandSet:
    """Remote commands and SSH settings resolved once per run."""

    os_update: str
    reboot: str
    os_version: str
    rebuild: str
    cleanup: str
    os_update_rollback: Optional[str] = None
    ssh: SshOptions = field(default_factory=SshOptions)
    log_dir: str = "."
    command_timeout: Optional[float] = None
    reboot_wait_seconds: float = 0.0
    reboot_probe_attempts: int = 0


class StageKind(str, Enum):
    OS_VERSION = "os_version"
    OS_UPDATE = "os_update"
    OS_UPDATE_ROLLBACK = "os_update_rollback"
    REBOOT = "reboot"
    REBUILD = "rebuild"
    CLEANUP = "cleanup"

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]


_STAGE_LABELS = {
    StageKind.OS_VERSION: "OS version check",
    StageKind.OS_UPDATE: "OS update",
    StageKind.OS_UPDATE_ROLLBACK: "OS update rollback",
    StageKind.REBOOT: "reboot",
    StageKind.REBUILD: "Discourse rebuild",
    StageKind.CLEANUP: "cleanup",
}


@dataclass(frozen=True)
class StageResult:
    stage: StageKind
    succeeded: bool
    output: str
    duration_ms: int


class StatusKind(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    # Not produced: a failed OS update stays FAILED even after its rollback runs.
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class FinalStatus:
    """Terminal verdict of an update session."""

    kind: StatusKind
    stage: Optional[StageKind] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls) -> "FinalStatus":
        return cls(StatusKind.SUCCESS)

    @classmethod
    def failed(cls, stage: StageKind, reason: str) -> "FinalStatus":
        return cls(StatusKind.FAILED, stage, reason)

    @property
    def is_success(self) -> bool:
        return self.kind is StatusKind.SUCCESS


@dataclass(frozen=True)
class UpdateOutcome:
    """Immutable record of everything an update session did."""

    install: str
    stages: Tuple[StageResult, ...]
    final_status: FinalStatus
    os_version_before: Optional[str] = None
    os_version_after: Optional[str] = None
    discourse_version_before: Optional[str] = None
    new_discourse_version: Optional[str] = None
    reclaimed_space: Optional[str] = None

    def stage_results(self, stage: StageKind) -> Tuple[StageResult, ...]:
        return tuple(result for result in self.stages if result.stage is stage)

    def stage_succeeded(self, stage: StageKind) -> bool:
        results = self.stage_results(stage)
        return bool(results) and all(result.succeeded for result in results)

    @property
    def succeeded(self) -> bool:
        return self.final_status.is_success


@dataclass(frozen=True)
class CapturedOutput:
    returncode: int
    stdout: str = ""
    stderr: str = ""


@dataclass(frozen=True)
class ChangelogPostResult:
    posted: bool
    post_id: Optional[int] = None
    skipped_reason: Optional[str] = None


@dataclass(frozen=True)
class BatchResult:
    """Summary of a fleet run; `failed_install` is set when the batch stopped early."""

    outcomes: Tuple[UpdateOutcome, ...]
    log_path: Optional[str] = None
    failed_install: Optional[str] = None
    failed_stage: Optional[StageKind] = None
    reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.failed_install is None
