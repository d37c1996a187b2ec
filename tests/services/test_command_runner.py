import pytest

from discourseupdater.errors import ConfigurationError, TransportError
from discourseupdater.models import CapturedOutput, SshOptions
from discourseupdater.services.command_runner import CommandRunner


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


def test_command_runner_returns_captured_output(recording_transport):
    transport = recording_transport({"uptime": CapturedOutput(0, "up 3 days\n", "")})
    runner = CommandRunner(transport=transport, logger=DummyLogger())

    result = runner.run("forum.example.com", "uptime")

    assert result.stdout == "up 3 days\n"
    assert transport.calls[0]["host"] == "forum.example.com"


def test_command_runner_raises_with_stderr_on_non_zero_exit(recording_transport):
    transport = recording_transport({"apt upgrade": CapturedOutput(100, "", "dpkg lock held")})
    runner = CommandRunner(transport=transport, logger=DummyLogger())

    with pytest.raises(TransportError, match="dpkg lock held") as excinfo:
        runner.run("forum.example.com", "apt upgrade")

    assert excinfo.value.returncode == 100
    assert excinfo.value.stderr == "dpkg lock held"
    assert excinfo.value.host == "forum.example.com"


@pytest.mark.parametrize("host", ["-oProxyCommand=touch /tmp/pwned", " -v", "", "forum example", "host\x00"])
def test_command_runner_rejects_unsafe_host_before_transport_call(recording_transport, host):
    transport = recording_transport()
    runner = CommandRunner(transport=transport, logger=DummyLogger())

    with pytest.raises(ConfigurationError):
        runner.run(host, "uptime")

    assert transport.calls == []


def test_command_runner_rejects_empty_command(recording_transport):
    transport = recording_transport()
    runner = CommandRunner(transport=transport, logger=DummyLogger())

    with pytest.raises(ConfigurationError, match="empty"):
        runner.run("forum.example.com", "   ")

    assert transport.calls == []


def test_command_runner_applies_default_options_and_timeout(recording_transport):
    transport = recording_transport()
    options = SshOptions(strict_host_key_checking="yes", extra_options=("-p", "2222"))
    runner = CommandRunner(
        transport=transport,
        logger=DummyLogger(),
        default_options=options,
        default_timeout=12.5,
    )

    runner.run("forum.example.com", "uptime")

    assert transport.calls[0]["options"] == options
    assert transport.calls[0]["timeout"] == 12.5


def test_command_runner_treats_interrupt_as_transport_failure(recording_transport):
    transport = recording_transport({"rebuild": KeyboardInterrupt()})
    runner = CommandRunner(transport=transport, logger=DummyLogger())

    with pytest.raises(TransportError, match="Interrupted") as excinfo:
        runner.run("forum.example.com", "rebuild")

    assert excinfo.value.interrupted is True


def test_command_runner_does_not_retry(recording_transport):
    transport = recording_transport({"flaky": CapturedOutput(255, "", "Connection reset")})
    runner = CommandRunner(transport=transport, logger=DummyLogger())

    with pytest.raises(TransportError):
        runner.run("forum.example.com", "flaky")

    assert transport.commands == ["flaky"]
