import os
import logging
import tomllib
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("./config.toml")
SECRET_ENV_VAR = "GITHUB_HOOK_SECRET_TOKEN"
WILDCARD_REF = "all"


class ConfigError(Exception):
    """Raised when a configuration file cannot be read or validated."""


class RuleKey(NamedTuple):
    event: str
    repository: str
    ref: str

    @classmethod
    def parse(cls, raw: str) -> "RuleKey":
        """
        Parse "<event>:<owner/repo>:<ref>".

        The event is cut at the first colon and the ref at the last one,
        so only the repository part may contain extra colons.
        """
        event, sep, rest = raw.partition(":")
        repository, sep2, ref = rest.rpartition(":")
        if not sep or not sep2 or not event or not repository or not ref:
            raise ValueError(f"Invalid event key '{raw}', expected 'event:owner/repo:ref'")
        return cls(event, repository, ref)

    def __str__(self) -> str:
        return f"{self.event}:{self.repository}:{self.ref}"


class Rule(BaseModel):
    model_config = ConfigDict(frozen=True)

    cmd: str
    # split on whitespace at dispatch time, not here
    args: str = ""


class HarpoonConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    addr: str = ""
    port: int = 9001
    events: Mapping[RuleKey, Rule] = Field(default_factory=dict)
    tunnel: bool = False
    tunnel_name: str = Field(default="", alias="tunnelname")

    @field_validator("events", mode="before")
    @classmethod
    def _parse_event_keys(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        parsed = {}
        for key, rule in value.items():
            rule_key = key if isinstance(key, RuleKey) else RuleKey.parse(str(key))
            if rule_key in parsed:
                logger.warning(f"[config] Duplicate rule '{rule_key}' — last definition wins")
            parsed[rule_key] = rule
        return parsed

    @field_validator("events", mode="after")
    @classmethod
    def _freeze_events(cls, value: Mapping[RuleKey, Rule]) -> Mapping[RuleKey, Rule]:
        return MappingProxyType(dict(value))

    @property
    def address(self) -> str:
        return f"{self.addr}:{self.port}"

    @property
    def bind_host(self) -> str:
        # an empty addr means every interface
        return self.addr or "0.0.0.0"


def get_env(key: str, default=None):
    return os.getenv(key, default)


def get_secret() -> str:
    return get_env(SECRET_ENV_VAR, "") or ""


def load_config(path: Path) -> HarpoonConfig:
    """Load and validate a TOML config file, raising ConfigError on any failure."""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with path.open("rb") as f:
            raw = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Could not read {path}: {e}") from e

    try:
        config = HarpoonConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info(f"[config] Loaded {len(config.events)} event rule(s) from {path}")
    return config


def load_config_with_fallback(path: Optional[Path] = None) -> HarpoonConfig:
    """
    Load the config at `path`, falling back to ./config.toml.

    Raises ConfigError when neither file can be loaded.
    """
    if path is not None and Path(path) != DEFAULT_CONFIG_PATH:
        try:
            return load_config(path)
        except ConfigError as e:
            logger.warning(f"[config] {e} — falling back to {DEFAULT_CONFIG_PATH}")
    return load_config(DEFAULT_CONFIG_PATH)
