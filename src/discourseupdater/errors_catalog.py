"""Actionable error catalog for discourse-updater."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "reserved_install_name": {
        "what": "Install name `{name}` is reserved for the whole fleet.",
        "next": "Rename the install in the config file; `all` always means every install.",
    },
    "duplicate_install_name": {
        "what": "Install name `{name}` is defined more than once.",
        "next": "Give every install in the config file a unique `name`.",
    },
    "unknown_install": {
        "what": "Unknown install: {name}",
        "next": "Check the name against the config file or use `all` for the whole fleet.",
    },
    "invalid_ssh_target": {
        "what": "Invalid SSH target `{target}`: {problem}.",
        "next": "Set `ssh_host` to a plain host name, `user@host` or an SSH config alias.",
    },
    "progress_log_exists": {
        "what": "Progress log already exists: {path}",
        "next": "Move the previous log aside or point `UPDATE_LOG_DIR` at another directory.",
    },
    "batch_failed": {
        "what": "Update stopped at `{install}` during {stage}: {reason}",
        "next": "Fix the install, then rerun the update for it before resuming the fleet.",
    },
    "concurrent_disabled": {
        "what": "--concurrent is disabled for updates because the batch stops on first failure.",
        "next": "Run the update without --concurrent.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
