"""Configuration management for nomad-bench.

Supports YAML-based configuration with environment overrides for the
orchestrator connection, mirroring the NOMAD_* variables the Nomad CLI reads.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

DEFAULT_NOMAD_ADDR = "http://127.0.0.1:4646"

NUM_CONTAINERS_ENV = "NOMAD_NUM_CONTAINERS"
NUM_JOBS_ENV = "NOMAD_NUM_JOBS"


class ConfigError(Exception):
    """Raised for missing or malformed required configuration."""


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"config section {name!r} must be a mapping")
    return section


def _number(section: Mapping[str, Any], key: str, default: float, name: str) -> float:
    """Read a numeric setting, raising ConfigError for anything else."""
    value = section.get(key, default)
    if isinstance(value, bool):
        raise ConfigError(f"{name}.{key} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name}.{key} must be a number, got {value!r}") from None


@dataclass
class NomadConfig:
    """Orchestrator connection settings."""

    address: str = DEFAULT_NOMAD_ADDR
    token: Optional[str] = None
    region: Optional[str] = None
    namespace: Optional[str] = None
    timeout: int = 30  # seconds, non-blocking calls
    wait: str = "5m"  # server-side long-poll wait for blocking queries


@dataclass
class WatchConfig:
    """Allocation watch loop settings."""

    start_index: int = 1
    allow_stale: bool = True
    min_query_interval: float = 0.1  # seconds, after a no-op long-poll
    error_backoff: float = 1.0  # seconds, after a failed query


@dataclass
class SinkConfig:
    """Metrics sink settings."""

    prefix: str = ""
    connect_timeout: float = 5.0


@dataclass
class BenchConfig:
    """Main configuration container."""

    nomad: NomadConfig = field(default_factory=NomadConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    sink: SinkConfig = field(default_factory=SinkConfig)

    manifest_name: str = "job.yaml"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchConfig":
        """Create config from dictionary."""
        nomad_data = _section(data, "nomad")
        nomad = NomadConfig(
            address=nomad_data.get("address", DEFAULT_NOMAD_ADDR),
            token=nomad_data.get("token"),
            region=nomad_data.get("region"),
            namespace=nomad_data.get("namespace"),
            timeout=nomad_data.get("timeout", 30),
            wait=str(nomad_data.get("wait", "5m")),
        )

        watch_data = _section(data, "watch")
        watch = WatchConfig(
            start_index=watch_data.get("start_index", 1),
            allow_stale=watch_data.get("allow_stale", True),
            min_query_interval=_number(watch_data, "min_query_interval", 0.1, "watch"),
            error_backoff=_number(watch_data, "error_backoff", 1.0, "watch"),
        )

        sink_data = _section(data, "sink")
        sink = SinkConfig(
            prefix=sink_data.get("prefix", ""),
            connect_timeout=_number(sink_data, "connect_timeout", 5.0, "sink"),
        )

        return cls(
            nomad=nomad,
            watch=watch,
            sink=sink,
            manifest_name=data.get("manifest_name", "job.yaml"),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "BenchConfig":
        """Load config from YAML file."""
        if not path.exists():
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid config file {path}: {exc}") from exc
        except OSError as exc:
            raise ConfigError(f"failed reading config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"config file {path} must contain a mapping")
        return cls.from_dict(data)

    @classmethod
    def load(cls, config_path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> "BenchConfig":
        """Load config from path or defaults, then apply environment overrides.

        Checks in order:
        1. Provided path
        2. NOMAD_BENCH_CONFIG env var
        3. ./configs/nomad-bench.yaml
        4. ./nomad-bench.yaml
        5. ~/.nomad_bench/config.yaml
        6. Default config
        """
        env = os.environ if env is None else env
        paths_to_try = []

        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise ConfigError(f"config file not found: {config_path}")
            paths_to_try.append(path)

        if env_path := env.get("NOMAD_BENCH_CONFIG"):
            paths_to_try.append(Path(env_path))

        paths_to_try.extend([
            Path("./configs/nomad-bench.yaml"),
            Path("./nomad-bench.yaml"),
            Path.home() / ".nomad_bench" / "config.yaml",
        ])

        config = cls()
        for path in paths_to_try:
            if path.exists():
                config = cls.from_yaml(path)
                break

        config.apply_env(env)
        return config

    def apply_env(self, env: Mapping[str, str]) -> None:
        """Override orchestrator settings from NOMAD_* environment variables."""
        if addr := env.get("NOMAD_ADDR"):
            self.nomad.address = addr
        if token := env.get("NOMAD_TOKEN"):
            self.nomad.token = token
        if region := env.get("NOMAD_REGION"):
            self.nomad.region = region
        if namespace := env.get("NOMAD_NAMESPACE"):
            self.nomad.namespace = namespace

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary. The ACL token is never included."""
        return {
            "nomad": {
                "address": self.nomad.address,
                "region": self.nomad.region,
                "namespace": self.nomad.namespace,
                "timeout": self.nomad.timeout,
                "wait": self.nomad.wait,
            },
            "watch": {
                "start_index": self.watch.start_index,
                "allow_stale": self.watch.allow_stale,
                "min_query_interval": self.watch.min_query_interval,
                "error_backoff": self.watch.error_backoff,
            },
            "sink": {
                "prefix": self.sink.prefix,
                "connect_timeout": self.sink.connect_timeout,
            },
            "manifest_name": self.manifest_name,
        }


def read_count(name: str, env: Optional[Mapping[str, str]] = None) -> int:
    """Read a positive integer count from an environment variable.

    Raises:
        ConfigError: If the variable is missing, non-numeric or not positive.
    """
    env = os.environ if env is None else env
    raw = env.get(name)
    if raw is None or not raw.strip():
        raise ConfigError(f"{name} must be set")
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be numeric, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be a positive integer, got {value}")
    return value


_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> timedelta:
    """Parse a Go-style duration string ("30s", "5m", "1h30m", "250ms").

    A bare number is taken as seconds.

    Raises:
        ValueError: If the string is not a valid duration.
    """
    text = str(value).strip()
    if not text:
        raise ValueError("empty duration")
    if re.fullmatch(r"\d+(?:\.\d+)?", text):
        return timedelta(seconds=float(text))

    pos = 0
    seconds = 0.0
    for match in _DURATION_RE.finditer(text):
        if match.start() != pos:
            break
        number, unit = match.groups()
        seconds += float(number) * _DURATION_UNITS[unit]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return timedelta(seconds=seconds)
