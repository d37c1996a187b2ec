"""Resolves the remote command set from defaults and environment overrides."""

import os
from typing import Mapping, Optional

from discourseupdater import constants
from discourseupdater.errors import ConfigurationError
from discourseupdater.models import RemoteCommandSet, SshOptions


def resolve_command_set(environ: Optional[Mapping[str, str]] = None) -> RemoteCommandSet:
    """Reads every override once; the result is passed explicitly to sessions."""
    env = os.environ if environ is None else environ

    strict = env.get(constants.ENV_STRICT_HOST_KEY_CHECKING)
    if strict is None:
        strict = constants.DEFAULT_STRICT_HOST_KEY_CHECKING
    ssh_options = SshOptions(
        strict_host_key_checking=strict.strip() or None,
        extra_options=tuple((env.get(constants.ENV_SSH_OPTIONS) or "").split()),
    )

    return RemoteCommandSet(
        os_update=_command(env, constants.ENV_OS_UPDATE_CMD, constants.DEFAULT_OS_UPDATE_CMD),
        os_update_rollback=(env.get(constants.ENV_OS_UPDATE_ROLLBACK_CMD) or "").strip() or None,
        reboot=_command(env, constants.ENV_REBOOT_CMD, constants.DEFAULT_REBOOT_CMD),
        os_version=_command(env, constants.ENV_OS_VERSION_CMD, constants.DEFAULT_OS_VERSION_CMD),
        rebuild=_command(env, constants.ENV_REBUILD_CMD, constants.DEFAULT_REBUILD_CMD),
        cleanup=_command(env, constants.ENV_CLEANUP_CMD, constants.DEFAULT_CLEANUP_CMD),
        ssh=ssh_options,
        log_dir=(env.get(constants.ENV_UPDATE_LOG_DIR) or "").strip() or os.getcwd(),
        command_timeout=_positive_float(
            env, constants.ENV_COMMAND_TIMEOUT, constants.DEFAULT_COMMAND_TIMEOUT
        )
        or None,
        reboot_wait_seconds=_positive_float(
            env, constants.ENV_REBOOT_WAIT_SECONDS, constants.DEFAULT_REBOOT_WAIT_SECONDS
        ),
        reboot_probe_attempts=_non_negative_int(
            env, constants.ENV_REBOOT_PROBE_ATTEMPTS, constants.DEFAULT_REBOOT_PROBE_ATTEMPTS
        ),
    )


def _command(env: Mapping[str, str], key: str, default: str) -> str:
    value = (env.get(key) or "").strip()
    return value or default


def _positive_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number of seconds, got {raw!r}.") from exc
    if value < 0:
        raise ConfigurationError(f"{key} must not be negative, got {raw!r}.")
    return value


def _non_negative_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}.") from exc
    if value < 0:
        raise ConfigurationError(f"{key} must not be negative, got {raw!r}.")
    return value
