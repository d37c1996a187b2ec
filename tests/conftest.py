from typing import Dict, List, Optional

import pytest

from discourseupdater.models import CapturedOutput, RemoteCommandSet, RemoteInstall, SshOptions
from discourseupdater.services.transport import Transport


class RecordingTransport(Transport):
    """Scripted transport: maps a command to a CapturedOutput, an exception, or a list of either."""

    def __init__(self, responses: Optional[Dict[str, object]] = None):
        self.responses = dict(responses or {})
        self.calls: List[dict] = []

    def execute(self, host, command, options, timeout=None, extra_options=()):
        self.calls.append(
            {
                "host": host,
                "command": command,
                "options": options,
                "timeout": timeout,
                "extra_options": tuple(extra_options),
            }
        )
        response = self.responses.get(command, CapturedOutput(0, "", ""))
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, BaseException):
            raise response
        return response

    @property
    def commands(self) -> List[str]:
        return [call["command"] for call in self.calls]

    def hosts(self) -> List[str]:
        return [call["host"] for call in self.calls]


@pytest.fixture
def recording_transport():
    return RecordingTransport


@pytest.fixture
def command_set(tmp_path):
    return RemoteCommandSet(
        os_update="os-update",
        os_update_rollback=None,
        reboot="reboot",
        os_version="os-version",
        rebuild="rebuild",
        cleanup="cleanup",
        ssh=SshOptions(strict_host_key_checking="accept-new"),
        log_dir=str(tmp_path / "logs"),
        command_timeout=60.0,
        reboot_wait_seconds=0.0,
        reboot_probe_attempts=0,
    )


@pytest.fixture
def install():
    return RemoteInstall(name="forum", host="forum.example.com", changelog_topic_id=42)
