"""Configuration management for Gough Rescue Agent.

Defaults come from the environment, optionally a YAML file, and finally
the command line flags, which always win.
"""

import argparse
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import List, Optional

import yaml
from decouple import config

DEFAULT_FINALIZE_SCRIPT = "/usr/local/bin/finalize_rescue.bash"
DEFAULT_RESCUE_USERNAME = "rescue"
DEFAULT_KERNEL_ARGS_FILE = "/proc/cmdline"
DEFAULT_DRIVER_NAME = "agent_ipmitool"

VALID_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class ConfigError(Exception):
    """Raised when the agent configuration is invalid."""
    pass


@dataclass(slots=True)
class AgentConfig:
    """Rescue agent configuration."""

    # Ironic API
    api_url_override: str = ""
    driver_name: str = DEFAULT_DRIVER_NAME

    # Rescue handoff
    finalize_script: str = DEFAULT_FINALIZE_SCRIPT
    rescue_username: str = DEFAULT_RESCUE_USERNAME

    # Kernel command line
    kernel_args_file: str = DEFAULT_KERNEL_ARGS_FILE

    # Logging
    debug: bool = False
    log_level: str = "INFO"

    def __post_init__(self):
        self.log_level = str(self.log_level).upper()
        if self.log_level not in VALID_LOG_LEVELS:
            raise ConfigError(
                f"Invalid log level: {self.log_level}. "
                f"Must be one of {', '.join(VALID_LOG_LEVELS)}."
            )

    @property
    def effective_log_level(self) -> int:
        """Numeric log level, forced to DEBUG in debug mode."""
        if self.debug:
            return logging.DEBUG
        return getattr(logging, self.log_level)

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """Load configuration from environment variables."""
        return cls(
            api_url_override=config("RESCUE_AGENT_API_URL", default=""),
            driver_name=config("RESCUE_AGENT_DRIVER_NAME", default=DEFAULT_DRIVER_NAME),
            finalize_script=config(
                "RESCUE_AGENT_FINALIZE_SCRIPT", default=DEFAULT_FINALIZE_SCRIPT
            ),
            rescue_username=config(
                "RESCUE_AGENT_RESCUE_USERNAME", default=DEFAULT_RESCUE_USERNAME
            ),
            kernel_args_file=config(
                "RESCUE_AGENT_KERNEL_ARGS_FILE", default=DEFAULT_KERNEL_ARGS_FILE
            ),
            debug=config("RESCUE_AGENT_DEBUG", default=False, cast=bool),
            log_level=config("RESCUE_AGENT_LOG_LEVEL", default="INFO"),
        )

    @classmethod
    def from_file(cls, config_file: str) -> "AgentConfig":
        """Load configuration from YAML file.

        Keys missing from the file keep their environment values. A
        missing file falls back to the environment entirely.
        """
        path = Path(config_file)
        if not path.exists():
            return cls.from_env()

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Error reading config file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        base = cls.from_env()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys in {path}: {', '.join(unknown)}")

        values = {name: getattr(base, name) for name in known}
        values.update(data)
        return cls(**values)

    @classmethod
    def from_args(cls, argv: Optional[List[str]] = None) -> "AgentConfig":
        """Load configuration with command line flags taking precedence."""
        args = build_parser().parse_args(argv)

        if args.config_file:
            base = cls.from_file(args.config_file)
        else:
            base = cls.from_env()

        for name in (
            "debug",
            "api_url_override",
            "finalize_script",
            "rescue_username",
            "kernel_args_file",
        ):
            value = getattr(args, name)
            if value is not None:
                setattr(base, name, value)

        return base


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser.

    Flags are accepted in single-dash form (``-debug``) as well as the
    usual double-dash form. Unset flags stay None so the environment and
    file values underneath are kept.
    """
    parser = argparse.ArgumentParser(
        prog="rescue-agent",
        description="Register with Ironic and finalize rescue mode.",
    )
    parser.add_argument(
        "-debug", "--debug",
        dest="debug",
        action="store_true",
        default=None,
        help="Debug mode",
    )
    parser.add_argument(
        "-api-url-override", "--api-url-override",
        dest="api_url_override",
        help="Ironic API URL",
    )
    parser.add_argument(
        "-finalize-script", "--finalize-script",
        dest="finalize_script",
        help=f"Run this script as the final step (default: {DEFAULT_FINALIZE_SCRIPT})",
    )
    parser.add_argument(
        "-rescue-username", "--rescue-username",
        dest="rescue_username",
        help=f"Rescue mode username (default: {DEFAULT_RESCUE_USERNAME})",
    )
    parser.add_argument(
        "-kernel-args-file", "--kernel-args-file",
        dest="kernel_args_file",
        help=(
            "File containing kernel command line arguments "
            f"(default: {DEFAULT_KERNEL_ARGS_FILE})"
        ),
    )
    parser.add_argument(
        "-config-file", "--config-file",
        dest="config_file",
        help="YAML configuration file",
    )
    return parser
