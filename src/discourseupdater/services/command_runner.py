"""Remote command execution service for discourse-updater."""

from typing import Optional, Sequence

from discourseupdater.errors import ConfigurationError, TransportError
from discourseupdater.models import CapturedOutput, SshOptions
from discourseupdater.services.validation import ValidationService


class CommandRunner:
    """Runs one remote command with consistent validation and error handling."""

    def __init__(
        self,
        transport,
        logger,
        default_options: Optional[SshOptions] = None,
        default_timeout: Optional[float] = None,
        validation_service: Optional[ValidationService] = None,
    ):
        self.transport = transport
        self.logger = logger
        self.default_options = default_options or SshOptions()
        self.default_timeout = default_timeout
        self.validation_service = validation_service or ValidationService()

    def run(
        self,
        host: str,
        command: str,
        options: Optional[SshOptions] = None,
        timeout: Optional[float] = None,
        extra_options: Sequence[str] = (),
    ) -> CapturedOutput:
        self.validation_service.validate_ssh_target(host)
        if not command or not command.strip():
            raise ConfigurationError(f"Remote command for {host} is empty.")

        effective_options = options or self.default_options
        effective_timeout = timeout if timeout is not None else self.default_timeout
        self.logger.debug("Running on %s: %s", host, command)

        try:
            result = self.transport.execute(
                host,
                command,
                effective_options,
                timeout=effective_timeout,
                extra_options=tuple(extra_options),
            )
        except TransportError:
            raise
        except KeyboardInterrupt as exc:
            raise TransportError(
                f"Interrupted while running command on {host}: {command}",
                host=host,
                command=command,
                interrupted=True,
            ) from exc
        except OSError as exc:
            raise TransportError(
                f"Failed to execute command on {host}: {command}. {exc}",
                host=host,
                command=command,
            ) from exc

        if result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip()
        message = f"ssh command failed for {host} ({result.returncode}): {command}"
        if stderr:
            message = f"{message}\n{stderr}"
        raise TransportError(
            message,
            host=host,
            command=command,
            returncode=result.returncode,
            stderr=stderr,
        )
