"""Install and SSH target validation helpers for discourse-updater."""

from typing import Iterable

from discourseupdater.constants import RESERVED_INSTALL_NAME
from discourseupdater.errors import ConfigurationError
from discourseupdater.errors_catalog import actionable_error


class ValidationService:
    """Rejects install names and SSH destinations that could be read as options."""

    def validate_ssh_target(self, target: str):
        problem = self._target_problem(target)
        if problem:
            raise ConfigurationError(
                actionable_error("invalid_ssh_target", target=target or "", problem=problem)
            )

    def validate_install_name(self, name: str):
        clean_name = (name or "").strip()
        if not clean_name:
            raise ConfigurationError("Install name must not be empty.")
        if clean_name == RESERVED_INSTALL_NAME:
            raise ConfigurationError(actionable_error("reserved_install_name", name=clean_name))
        if clean_name.startswith("-"):
            raise ConfigurationError(f"Install name cannot start with '-': {name}")
        if any(ch.isspace() or not ch.isprintable() for ch in clean_name):
            raise ConfigurationError(f"Install name cannot contain whitespace: {name!r}")

    def validate_fleet(self, installs: Iterable):
        seen = set()
        for install in installs:
            self.validate_install_name(install.name)
            if install.name in seen:
                raise ConfigurationError(
                    actionable_error("duplicate_install_name", name=install.name)
                )
            seen.add(install.name)
            self.validate_ssh_target(install.host)

    @staticmethod
    def _target_problem(target: str) -> str:
        trimmed = (target or "").strip()
        if not trimmed:
            return "target is empty"
        if trimmed.startswith("-"):
            return "target cannot start with '-'"
        if any(ch.isspace() for ch in target):
            return "target cannot contain whitespace"
        if any(not ch.isprintable() for ch in target):
            return "target cannot contain control characters"
        return ""
