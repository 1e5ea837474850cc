"""Configuration loading for instructgen (.instructgen.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".instructgen.yml"

ENV_GUIDELINES_DIR = "INSTRUCTGEN_GUIDELINES_DIR"
ENV_CACHE_TTL_HOURS = "INSTRUCTGEN_CACHE_TTL_HOURS"
ENV_GITHUB_TOKEN_KEYS = ("INSTRUCTGEN_GITHUB_TOKEN", "GITHUB_TOKEN")


@dataclass
class CatalogConfig:
    """Location of the remote baseline catalog and cache policy."""

    owner: str = "github"
    repo: str = "awesome-copilot"
    path: str = "instructions"
    branch: str = "main"
    api_base_url: str = "https://api.github.com"
    raw_base_url: str = "https://raw.githubusercontent.com"
    cache_ttl_hours: float = 24.0
    request_timeout: float = 30.0
    user_agent: str = "instructgen/1.0"
    token: Optional[str] = None

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(hours=self.cache_ttl_hours)


@dataclass
class GuidelineConfig:
    """Where organization guideline overrides live."""

    directory: Optional[Path] = None


@dataclass
class DetectionConfig:
    """Additional directories pruned from the detection walk."""

    exclude_dirs: List[str] = field(default_factory=list)


@dataclass
class OutputConfig:
    """Destination of generated instruction files, relative to the project root."""

    instructions_dir: str = ".github/instructions"
    repository_file: str = ".github/copilot-instructions.md"
    update_existing: bool = False


@dataclass
class InstructGenConfig:
    """Represents the settings defined in .instructgen.yml."""

    root: Path
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    guidelines: GuidelineConfig = field(default_factory=GuidelineConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    workers: int = 4

    @property
    def guidelines_dir(self) -> Path:
        return self.guidelines.directory or (self.root / "guidelines")


def load_config(
    config_path: Path | None = None, *, environ: Mapping[str, str] | None = None
) -> InstructGenConfig:
    """Load configuration from disk, falling back to environment variables and defaults."""
    env = os.environ if environ is None else environ
    config_file = _resolve_config_path(config_path or Path.cwd())
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    catalog = CatalogConfig()
    catalog_data = _as_dict(data.get("catalog"))
    catalog.owner = _as_str(catalog_data.get("owner")) or catalog.owner
    catalog.repo = _as_str(catalog_data.get("repo")) or catalog.repo
    catalog.path = _as_str(catalog_data.get("path")) or catalog.path
    catalog.branch = _as_str(catalog_data.get("branch")) or catalog.branch
    catalog.api_base_url = (
        _as_str(catalog_data.get("api_base_url")) or catalog.api_base_url
    ).rstrip("/")
    catalog.raw_base_url = (
        _as_str(catalog_data.get("raw_base_url")) or catalog.raw_base_url
    ).rstrip("/")
    catalog.user_agent = _as_str(catalog_data.get("user_agent")) or catalog.user_agent

    ttl = _as_float(catalog_data.get("cache_ttl_hours"))
    if ttl is None:
        ttl = _as_float(env.get(ENV_CACHE_TTL_HOURS))
    if ttl is not None:
        if ttl < 0:
            raise ConfigError("catalog.cache_ttl_hours must not be negative")
        catalog.cache_ttl_hours = ttl

    timeout = _as_float(catalog_data.get("request_timeout"))
    if timeout is not None and timeout > 0:
        catalog.request_timeout = timeout

    catalog.token = _as_str(catalog_data.get("token")) or _first_env_value(
        env, ENV_GITHUB_TOKEN_KEYS
    )

    guidelines = GuidelineConfig()
    guideline_data = _as_dict(data.get("guidelines"))
    directory = _as_str(guideline_data.get("directory")) or env.get(ENV_GUIDELINES_DIR)
    if directory:
        guidelines.directory = (root / Path(directory).expanduser()).resolve()

    detection = DetectionConfig()
    detection_data = _as_dict(data.get("detection"))
    if detection_data:
        detection.exclude_dirs = _as_str_list(detection_data.get("exclude_dirs"))

    output = OutputConfig()
    output_data = _as_dict(data.get("output"))
    if output_data:
        output.instructions_dir = (
            _as_str(output_data.get("instructions_dir")) or output.instructions_dir
        )
        output.repository_file = (
            _as_str(output_data.get("repository_file")) or output.repository_file
        )
        output.update_existing = bool(_as_bool(output_data.get("update_existing")))

    workers = _as_int(data.get("workers"))
    if workers is not None and workers < 1:
        raise ConfigError("workers must be at least 1")

    return InstructGenConfig(
        root=root,
        catalog=catalog,
        guidelines=guidelines,
        detection=detection,
        output=output,
        workers=workers or 4,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _first_env_value(env: Mapping[str, str], keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = env.get(key)
        if value:
            return value
    return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "CatalogConfig",
    "DetectionConfig",
    "GuidelineConfig",
    "InstructGenConfig",
    "OutputConfig",
    "load_config",
]
