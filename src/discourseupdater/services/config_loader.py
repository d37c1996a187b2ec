"""Fleet configuration loader for discourse-updater."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from discourseupdater.errors import ConfigurationError
from discourseupdater.models import RemoteInstall
from discourseupdater.services.validation import ValidationService


class ConfigLoader:
    """Loads the YAML fleet file and turns each entry into a RemoteInstall."""

    SUPPORTED_KEYS = {
        "discourse",
        "verbose",
        "log_file",
        "post_changelog",
    }
    SUPPORTED_INSTALL_KEYS = {
        "name",
        "baseurl",
        "fullname",
        "apikey",
        "api_username",
        "changelog_path",
        "changelog_topic_id",
        "ssh_host",
        "tags",
    }

    def __init__(self, validation_service: Optional[ValidationService] = None):
        self.validation_service = validation_service or ValidationService()

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigurationError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigurationError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigurationError(f"Unknown configuration keys: {unknown_list}")

        return parsed

    def load_installs(self, config: Dict[str, Any]) -> List[RemoteInstall]:
        entries = config.get("discourse") or []
        if not isinstance(entries, list):
            raise ConfigurationError("`discourse` must be a list of install mappings.")

        installs = [self._build_install(index, entry) for index, entry in enumerate(entries)]
        self.validation_service.validate_fleet(installs)
        return installs

    def _build_install(self, index: int, entry: Any) -> RemoteInstall:
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Install entry #{index + 1} must be a mapping.")

        unknown = sorted(set(entry.keys()) - self.SUPPORTED_INSTALL_KEYS)
        if unknown:
            raise ConfigurationError(
                f"Unknown keys in install entry #{index + 1}: {', '.join(unknown)}"
            )

        name = _optional_str(entry.get("name"))
        if not name:
            raise ConfigurationError(f"Install entry #{index + 1} is missing `name`.")

        return RemoteInstall(
            name=name,
            host=_optional_str(entry.get("ssh_host")) or name,
            changelog_topic_id=_optional_topic_id(name, entry.get("changelog_topic_id")),
            baseurl=_optional_str(entry.get("baseurl")),
            api_key=_optional_str(entry.get("apikey")),
            api_username=_optional_str(entry.get("api_username")),
        )


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_topic_id(name: str, value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ConfigurationError(f"`changelog_topic_id` for {name} must be an integer.")
    try:
        topic_id = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"`changelog_topic_id` for {name} must be an integer.") from exc
    return topic_id or None
