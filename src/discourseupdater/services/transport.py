"""Remote execution transports for discourse-updater."""

import subprocess
from typing import List, Optional, Sequence

from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from discourseupdater.errors import TransportError
from discourseupdater.models import CapturedOutput, SshOptions


class Transport:
    """Executes one command on one host and captures its output."""

    def execute(
        self,
        host: str,
        command: str,
        options: SshOptions,
        timeout: Optional[float] = None,
        extra_options: Sequence[str] = (),
    ) -> CapturedOutput:
        raise NotImplementedError


class SshTransport(Transport):
    """Runs commands through the OpenSSH client in batch mode."""

    def __init__(self, logger, console, subprocess_module=subprocess, show_progress: bool = True):
        self.logger = logger
        self.console = console
        self.subprocess = subprocess_module
        self.show_progress = show_progress

    def build_command(
        self,
        host: str,
        command: str,
        options: SshOptions,
        extra_options: Sequence[str] = (),
    ) -> List[str]:
        cmd = ["ssh", "-o", "BatchMode=yes"]
        strict = (options.strict_host_key_checking or "").strip()
        if strict:
            cmd += ["-o", f"StrictHostKeyChecking={strict}"]
        cmd += list(extra_options)
        cmd += list(options.extra_options)
        cmd += ["--", host, command]
        return cmd

    def execute(
        self,
        host: str,
        command: str,
        options: SshOptions,
        timeout: Optional[float] = None,
        extra_options: Sequence[str] = (),
    ) -> CapturedOutput:
        cmd = self.build_command(host, command, options, extra_options)
        self.logger.debug("Executing: %s", " ".join(cmd))

        if not self.show_progress:
            return self._run(cmd, host, command, timeout)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        ) as progress:
            progress.add_task(f"[magenta]{escape(f'[{host}] {command}')}", total=None)
            return self._run(cmd, host, command, timeout)

    def _run(self, cmd: List[str], host: str, command: str, timeout: Optional[float]) -> CapturedOutput:
        try:
            result = self.subprocess.run(
                cmd,
                text=True,
                capture_output=True,
                timeout=timeout,
            )
        except FileNotFoundError as exc:
            raise TransportError(
                "Required command not found: ssh. Please install OpenSSH and try again.",
                host=host,
                command=command,
            ) from exc
        except self.subprocess.TimeoutExpired as exc:
            raise TransportError(
                f"Command timed out after {timeout}s on {host}: {command}",
                host=host,
                command=command,
                stderr=_as_text(exc.stderr),
            ) from exc

        return CapturedOutput(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
