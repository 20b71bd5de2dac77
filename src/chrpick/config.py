"""User configuration: the branch naming scheme."""

import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

import toml
import typer

logger = logging.getLogger(__name__)

APP_NAME = "chr"
CONFIG_FILENAME = "chr.toml"
CONFIG_PATH_ENV = "CHR_CONFIG"
ENV_PREFIX = "CHR_"

DEFAULT_PREFIX = "ZUP-"
DEFAULT_SUFFIX_PRD = "-prd"
DEFAULT_SUFFIX_HML = "-hml"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class ConfigError(Exception):
    """Invalid configuration key or value."""


@dataclass(frozen=True)
class NamingScheme:
    """How ticket branches are named: <prefix><ticket><suffix>."""

    prefix: str = DEFAULT_PREFIX
    suffix_prd: str = DEFAULT_SUFFIX_PRD
    suffix_hml: str = DEFAULT_SUFFIX_HML
    color: bool = True

    def production(self, ticket: str) -> str:
        return f"{self.prefix}{ticket}{self.suffix_prd}"

    def homologation(self, ticket: str) -> str:
        return f"{self.prefix}{ticket}{self.suffix_hml}"

    @property
    def pattern(self) -> str:
        """Human readable branch pattern, for error messages."""
        return f"{self.prefix}<ticket>{self.suffix_prd}"


KEYS = tuple(f.name for f in fields(NamingScheme))


def get_config_path() -> Path:
    """Location of the user config file."""
    override = os.environ.get(CONFIG_PATH_ENV)
    if override:
        return Path(override)
    return Path(typer.get_app_dir(APP_NAME)) / CONFIG_FILENAME


def parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"color must be true or false, got {value!r}")


def validate(key: str, value: str) -> Any:
    """Validate a key/value pair given on the command line and return the typed value.

    Raises:
        ConfigError: On unknown keys, empty names or non boolean colors
    """
    if key not in KEYS:
        raise ConfigError(f"Invalid configuration key: {key} (expected one of {', '.join(KEYS)})")
    if key == "color":
        return parse_bool(value)
    if not value:
        raise ConfigError(f"{key} cannot be empty")
    return value


def _from_mapping(data: dict[str, Any], base: NamingScheme) -> NamingScheme:
    values: dict[str, Any] = {}
    for key in KEYS:
        if key not in data:
            continue
        value = data[key]
        expected = bool if key == "color" else str
        if not isinstance(value, expected):
            raise ConfigError(f"{key} must be a {expected.__name__}, got {type(value).__name__}")
        if expected is str and not value:
            # Unset names fall back to the default
            continue
        values[key] = value
    return replace(base, **values)


def _from_env(base: NamingScheme) -> NamingScheme:
    values: dict[str, Any] = {}
    for key in KEYS:
        raw = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
        if not raw:
            continue
        values[key] = validate(key, raw)
    return replace(base, **values)


def load_config(path: Optional[Path] = None, env: bool = True) -> NamingScheme:
    """Load the naming scheme.

    Missing file or fields fall back to the defaults. A file that cannot be
    parsed is reported and ignored. CHR_* environment variables win over the
    file unless env is False, which gives the scheme as stored on disk.
    """
    path = path or get_config_path()
    scheme = NamingScheme()
    if path.exists():
        try:
            scheme = _from_mapping(toml.load(path), scheme)
        except (toml.TomlDecodeError, UnicodeDecodeError, ConfigError, OSError) as err:
            logger.warning("Could not parse config file %s: %s. Using defaults.", path, err)
            scheme = NamingScheme()
    else:
        logger.debug("No config file at %s, using defaults", path)

    if not env:
        return scheme
    try:
        return _from_env(scheme)
    except ConfigError as err:
        logger.warning("Ignoring %s* environment overrides: %s", ENV_PREFIX, err)
        return scheme


def save_config(scheme: NamingScheme, path: Optional[Path] = None) -> Path:
    """Write the naming scheme as TOML and return the file path."""
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        toml.dump(asdict(scheme), handle)
    logger.debug("Wrote config to %s", path)
    return path


def describe(scheme: NamingScheme) -> str:
    return "\n".join(f"{key} = {value!r}" for key, value in asdict(scheme).items())
