"""Configuration management for the validator monitor."""

from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .account import AccountId, InvalidAccountId
from .errors import ConfigError

DEFAULT_INTERVAL = "10s"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_LEVEL_ALIASES = {"TRACE": "DEBUG", "WARN": "WARNING", "CRASH": "CRITICAL"}

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, "d": 86400.0}


def parse_duration(value: str) -> float:
    """Parse a duration such as ``"10s"``, ``"1m30s"`` or ``"500ms"`` into seconds.

    A bare number is read as seconds.
    """
    text = str(value).strip().lower()
    if not text:
        raise ValueError("empty duration")
    try:
        return float(text)
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_PART_RE.finditer(text):
        if text[pos:match.start()].strip():
            raise ValueError(f"illegal duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or text[pos:].strip():
        raise ValueError(f"illegal duration: {value!r}")
    return total


def normalize_log_level(level: str) -> str:
    name = str(level).strip().upper()
    name = LOG_LEVEL_ALIASES.get(name, name)
    if name not in LOG_LEVELS:
        raise ValueError(f"illegal logger level: {level}")
    return name


class MissedBlockThreshold(BaseModel):
    """Alert once ``numerator`` misses fall within the trailing ``denominator`` blocks."""

    model_config = ConfigDict(frozen=True)

    numerator: int = Field(default=1, gt=0)
    denominator: int = Field(default=1, gt=0)

    @classmethod
    def parse(cls, value: str) -> MissedBlockThreshold:
        """Parse ``"N"`` (N out of N) or ``"N/M"``."""
        text = str(value).strip()
        parts = text.split("/")
        if len(parts) > 2:
            raise ValueError(f"illegal missed_block_threshold format: {value}")
        try:
            numbers = [int(p.strip()) for p in parts]
        except ValueError as exc:
            raise ValueError(f"illegal missed_block_threshold format: {value}") from exc
        if any(n <= 0 for n in numbers):
            raise ValueError(f"illegal missed_block_threshold format: {value}")
        if len(numbers) == 1:
            return cls(numerator=numbers[0], denominator=numbers[0])
        return cls(numerator=numbers[0], denominator=numbers[1])

    def __str__(self) -> str:
        return f"{self.numerator}/{self.denominator}"


class LoggerConfig(BaseModel):
    """Logging output configuration."""
    level: str = Field(default="INFO", description="Minimum log level")
    format: Literal["console", "json"] = Field(default="console", description="Console or JSON lines output")

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        return normalize_log_level(value)


class CheckerConfig(BaseModel):
    """One monitored node endpoint and the checks enabled against it."""

    # Node REST endpoint
    scheme: str = Field(default="http", description="http or https")
    host: str = Field(default="127.0.0.1", description="Node host")
    port: int = Field(default=1317, description="Node REST (gRPC gateway) port")
    request_timeout: float = Field(default=10.0, gt=0, description="Per request timeout in seconds")

    # Validator identity
    validator_account: Optional[str] = Field(default=None, description="Hex consensus address (20 bytes)")
    validator_address: Optional[str] = Field(default=None, description="Bech32 operator address")

    # Checks
    syncing: bool = Field(default=True, description="Alert while the node is syncing")
    new_proposal: bool = Field(default=False, description="Alert on governance proposal submissions")
    missed_block: bool = Field(default=False, description="Alert on blocks missed by the validator")
    missed_block_threshold: Optional[MissedBlockThreshold] = Field(default=None, description="'N' or 'N/M'")
    validator_status: bool = Field(default=False, description="Alert when jailed or not bonded")
    slashes: bool = Field(default=False, description="Alert on slash events")

    @field_validator("missed_block_threshold", mode="before")
    @classmethod
    def _parse_threshold(cls, value: Any) -> Any:
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return MissedBlockThreshold.parse(str(value))
        return value

    @model_validator(mode="after")
    def _check_requirements(self) -> CheckerConfig:
        if self.scheme not in ("http", "https"):
            raise ValueError("node scheme must be either 'http' or 'https'...")
        if self.validator_account is not None:
            try:
                AccountId.from_hex(self.validator_account)
            except InvalidAccountId as exc:
                raise ValueError(f"validator_account is invalid: {exc}") from exc
        elif self.missed_block:
            raise ValueError("validator_account is missing...")
        if (self.validator_status or self.slashes) and self.validator_address is None:
            raise ValueError("validator_address is missing...")
        return self

    @property
    def endpoint(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    def account_id(self) -> AccountId | None:
        if self.validator_account is None:
            return None
        return AccountId.from_hex(self.validator_account)

    def threshold(self) -> MissedBlockThreshold:
        return self.missed_block_threshold or MissedBlockThreshold()


class ApplicationConfig(BaseModel):
    """Main configuration for the validator monitor."""

    interval: str = Field(default=DEFAULT_INTERVAL, description="Tick interval, e.g. '10s'")
    checkers: list[CheckerConfig] = Field(default_factory=list, description="Monitored endpoints")
    logger: LoggerConfig = Field(default_factory=LoggerConfig)

    @field_validator("interval")
    @classmethod
    def _check_interval(cls, value: str) -> str:
        try:
            seconds = parse_duration(value)
        except ValueError as exc:
            raise ValueError(f"illegal interval: {value}") from exc
        if seconds <= 0:
            raise ValueError(f"illegal interval: {value}")
        return value

    @property
    def interval_seconds(self) -> float:
        return parse_duration(self.interval)

    def endpoints(self) -> dict[str, float]:
        """Request timeout per distinct endpoint, in configuration order.

        The first checker configured for an endpoint sets its timeout.
        """
        timeouts: dict[str, float] = {}
        for checker in self.checkers:
            timeouts.setdefault(checker.endpoint, checker.request_timeout)
        return timeouts


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"could not read config file {str(path)!r}: {exc}") from exc

    try:
        if path.suffix.lower() == ".toml":
            data = tomllib.loads(text)
        elif path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            raise ConfigError(f"unsupported config format {path.suffix!r} (use .toml, .yaml or .yml)")
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"could not parse config file {str(path)!r}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("config file must contain a mapping")
    return data


def load_config(config_path: str | Path | None = None) -> ApplicationConfig:
    """Load configuration from a TOML/YAML file and environment overrides.

    Without a path (argument or ``VALIDATOR_MONITOR_CONFIG``) the defaults are used,
    which monitor nothing.
    """
    if config_path is None:
        config_path = os.getenv("VALIDATOR_MONITOR_CONFIG") or None

    config_data: dict[str, Any] = {}
    if config_path is not None:
        config_data = _read_config_file(Path(config_path))

    interval = os.getenv("VALIDATOR_MONITOR_INTERVAL")
    if interval:
        config_data["interval"] = interval

    log_level = os.getenv("LOG_LEVEL")
    if log_level:
        logger_data = config_data.get("logger")
        if not isinstance(logger_data, dict):
            logger_data = {}
        config_data["logger"] = {**logger_data, "level": log_level}

    try:
        return ApplicationConfig(**config_data)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration: {exc}") from exc
