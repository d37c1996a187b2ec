import logging
import os

import click
from rich.logging import RichHandler

from .constants import DEFAULT_CONFIG_FILE
from .core import DiscourseUpdater, UpdaterError
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.argument("name")
@click.option(
    "--config",
    "-c",
    required=False,
    type=click.Path(),
    help=f"Path to the YAML fleet file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option(
    "--post-changelog",
    "-p",
    is_flag=True,
    default=None,
    help="Post the update checklist to the install's changelog topic.",
)
@click.option(
    "--yes",
    "-y",
    "auto_confirm",
    is_flag=True,
    default=False,
    help="Post the changelog without asking for confirmation.",
)
@click.option(
    "--concurrent",
    "-C",
    is_flag=True,
    default=False,
    help="Not supported: fleet updates always run one install at a time.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def main(name, config, post_changelog, auto_confirm, concurrent, verbose, log_file):
    """Update the OS and Discourse on NAME, or on every install with NAME=all."""
    logger = logging.getLogger("discourseupdater")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
        installs = config_loader.load_installs(config_values)
    except UpdaterError as exc:
        raise click.ClickException(str(exc)) from exc

    post_changelog = bool(
        _resolve_option(post_changelog, config_values, "post_changelog", default=False)
    )
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")

    if not installs:
        raise click.ClickException("No installs configured. Add a `discourse` list to the config file.")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    try:
        updater = DiscourseUpdater(
            installs=installs,
            target=name,
            post_changelog=post_changelog,
            auto_confirm=auto_confirm,
            concurrent=concurrent,
        )
    except UpdaterError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(updater.run())


if __name__ == "__main__":
    main()
