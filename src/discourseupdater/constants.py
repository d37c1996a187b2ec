"""Defaults and environment variable names for discourse-updater."""

RESERVED_INSTALL_NAME = "all"

DEFAULT_OS_UPDATE_CMD = (
    "sudo -n DEBIAN_FRONTEND=noninteractive apt update && "
    "sudo -n DEBIAN_FRONTEND=noninteractive apt upgrade -y"
)
DEFAULT_REBOOT_CMD = "sudo -n reboot"
DEFAULT_OS_VERSION_CMD = "lsb_release -d | cut -f2"
FALLBACK_OS_VERSION_CMD = "grep PRETTY_NAME /etc/os-release | cut -d'=' -f2 | tr -d '\"'"
DEFAULT_REBUILD_CMD = "cd /var/discourse && sudo -n ./launcher rebuild app"
DEFAULT_CLEANUP_CMD = "cd /var/discourse && sudo -n ./launcher cleanup"
DEFAULT_STRICT_HOST_KEY_CHECKING = "accept-new"
DEFAULT_COMMAND_TIMEOUT = 3600.0
DEFAULT_REBOOT_WAIT_SECONDS = 30.0
DEFAULT_REBOOT_PROBE_ATTEMPTS = 12

SSH_PROBE_CMD = "echo 'server is up'"
SSH_PROBE_OPTIONS = ("-o", "ConnectTimeout=10")

ENV_OS_UPDATE_CMD = "OS_UPDATE_CMD"
ENV_OS_UPDATE_ROLLBACK_CMD = "OS_UPDATE_ROLLBACK_CMD"
ENV_REBOOT_CMD = "REBOOT_CMD"
ENV_OS_VERSION_CMD = "OS_VERSION_CMD"
ENV_REBUILD_CMD = "REBUILD_CMD"
ENV_CLEANUP_CMD = "CLEANUP_CMD"
ENV_STRICT_HOST_KEY_CHECKING = "STRICT_HOST_KEY_CHECKING"
ENV_SSH_OPTIONS = "SSH_OPTIONS"
ENV_UPDATE_LOG_DIR = "UPDATE_LOG_DIR"
ENV_COMMAND_TIMEOUT = "COMMAND_TIMEOUT"
ENV_REBOOT_WAIT_SECONDS = "REBOOT_WAIT_SECONDS"
ENV_REBOOT_PROBE_ATTEMPTS = "REBOOT_PROBE_ATTEMPTS"

PROGRESS_LOG_SUFFIX = "-update-all.log"
PROGRESS_LOG_DATE_FORMAT = "%Y.%m.%d"
FILE_MODE = 0o600

DEFAULT_CONFIG_FILE = ".discourseupdater.yml"
