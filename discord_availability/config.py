"""
Configuration loading.

Settings live in a YAML file. The first existing file of:

    1. an explicit path (command line)
    2. ./config.yaml
    3. $HOME/.config/discord-availability/config.yaml
    4. /etc/discord-availability/config.yaml

is read, validated and normalised into a read-only `Settings` object that the
gateway hands to every component.
"""
import logging
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from .errors import ConfigError

logger = logging.getLogger("Availability.Config")

CONFIG_RELATIVE_PATH = "discord-availability/config.yaml"
DEFAULT_AVAILABILITIES_DIR = "$HOME/.local/share/discord-availability/availabilities"

_ENV_VAR = re.compile(r"\$([A-Z_]+)")
_CLOCK = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class Settings:
    """Normalised, validated configuration."""
    token: str
    directory_availabilities: Path
    max_availabilities_per_user: int = 100
    default_day: str = "monday"
    default_time: str = "19:00"
    event_name: str = "Dota 2"
    log_level: str = "INFO"
    time_zone: str = "UTC"
    strict_triggers: bool = False

    @property
    def default_date_time(self) -> str:
        """Phrase substituted for vague expressions like 'next week'."""
        return f"{self.default_day} {self.default_time}"

    @property
    def default_hour_offset(self) -> timedelta:
        """Offset added to a midnight-only result to land on the default time."""
        hours, minutes = self.default_time.split(":")
        return timedelta(hours=int(hours), minutes=int(minutes))

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)


def candidate_paths(explicit: Optional[str] = None) -> List[str]:
    """Config locations in lookup order."""
    paths = []
    if explicit:
        paths.append(explicit)
    paths.append("config.yaml")
    if os.name == "nt":
        paths.append(f"$USERPROFILE/.config/{CONFIG_RELATIVE_PATH}")
        paths.append(f"$APPDATA/{CONFIG_RELATIVE_PATH}")
    else:
        paths.append(f"$HOME/.config/{CONFIG_RELATIVE_PATH}")
        paths.append(f"/etc/{CONFIG_RELATIVE_PATH}")
    return paths


def expand_env_vars(path: str) -> str:
    """Replace `$NAME` references with environment values."""
    def _substitute(match):
        value = os.environ.get(match.group(1))
        if value is None:
            raise ConfigError(f'Could not get value for environment variable "{match.group(1)}".')
        return value

    return _ENV_VAR.sub(_substitute, path)


def normalise_path(path: str, cwd: Optional[Path] = None) -> Path:
    """Expand env vars and anchor relative paths at the working directory."""
    expanded = Path(expand_env_vars(path))
    if expanded.is_absolute():
        return expanded
    return (cwd or Path.cwd()) / expanded


def load_config(path: Optional[str] = None) -> Settings:
    """
    Find, read and validate the configuration file.

    Args:
        path: Explicit config location, tried before the defaults

    Raises:
        ConfigError: if no file exists or the file is invalid
    """
    for candidate in candidate_paths(path):
        try:
            config_file = normalise_path(candidate)
        except ConfigError:
            # An unset $APPDATA etc. just means that location doesn't apply
            continue

        if not config_file.is_file():
            continue

        logger.info(f"Loading config from {config_file}")
        try:
            with open(config_file) as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Bad config at `{config_file}`: {e}") from e

        try:
            return settings_from_dict(raw, base_dir=Path.cwd())
        except ConfigError as e:
            raise ConfigError(f"Bad config at `{config_file}`:\n  Error: {e}") from e

    raise ConfigError("Missing config.yaml. Please refer to config.example.yaml.")


def settings_from_dict(raw: Dict[str, Any], base_dir: Optional[Path] = None) -> Settings:
    """Validate a decoded config mapping and apply defaults."""
    if not isinstance(raw, dict):
        raise ConfigError("Config must be a mapping")

    directory = normalise_path(
        raw.get("directoryAvailabilities") or DEFAULT_AVAILABILITIES_DIR, base_dir
    )
    if directory.exists() and not directory.is_dir():
        raise ConfigError(
            f'The "directoryAvailabilities" path is not a directory.\n'
            f'  Specified:   "{raw.get("directoryAvailabilities")}"\n'
            f'  Interpreted: "{directory}"'
        )

    max_per_user = raw.get("maxAvailabilitiesPerUser", 100)
    if not isinstance(max_per_user, int) or isinstance(max_per_user, bool) or max_per_user < 1:
        raise ConfigError('"maxAvailabilitiesPerUser" must be a positive integer')

    default_day = str(raw.get("defaultDay", "monday")).strip().lower()
    if default_day not in _WEEKDAYS:
        raise ConfigError(f'"defaultDay" must be a weekday name, got "{default_day}"')

    default_time = str(raw.get("defaultTime", "19:00")).strip()
    if not _CLOCK.match(default_time):
        raise ConfigError(f'"defaultTime" must look like HH:MM, got "{default_time}"')

    time_zone = str(raw.get("timeZone") or "UTC")
    try:
        ZoneInfo(time_zone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f'Unknown "timeZone" "{time_zone}"') from e

    log_level = str(raw.get("logLevel", "INFO")).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError(f'Unknown "logLevel" "{log_level}"')

    return Settings(
        token=_extract_token(raw, base_dir),
        directory_availabilities=directory,
        max_availabilities_per_user=max_per_user,
        default_day=default_day,
        default_time=default_time,
        event_name=str(raw.get("eventName", "Dota 2")),
        log_level=log_level,
        time_zone=time_zone,
        strict_triggers=bool(raw.get("strictTriggers", False)),
    )


def _extract_token(raw: Dict[str, Any], base_dir: Optional[Path]) -> str:
    has_token = bool(raw.get("token"))
    has_token_file = bool(raw.get("tokenFile"))

    if has_token and has_token_file:
        raise ConfigError('One of "token" or "tokenFile" must be set but both are set.')
    if not has_token and not has_token_file:
        raise ConfigError('One of "token" or "tokenFile" must be set but neither are set.')

    if has_token:
        return str(raw["token"]).strip()

    token_path = normalise_path(str(raw["tokenFile"]), base_dir)
    if not token_path.is_file():
        raise ConfigError(
            f'The "tokenFile" file does not exist.\n'
            f'  Specified:   "{raw["tokenFile"]}"\n'
            f'  Interpreted: "{token_path}"'
        )

    try:
        token = token_path.read_text().strip()
    except OSError as e:
        raise ConfigError(f"Failed to read token from file: {token_path}") from e

    if not token:
        raise ConfigError(f"Token file is empty: {token_path}")
    return token
