"""Configuration file loading and merging.

Configuration is assembled from layers, lowest precedence first:

1. built-in defaults
2. the global file, ``$DEADSCAN_HOME/config.yml``
3. the ``--config`` file, or else the first project file found in the
   working directory (``deadscan.yml``, ``deadscan.yaml``, dotted variants)
4. command line overrides

String values may reference environment variables as ``${VAR}`` or
``${VAR:-default}``.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from deadscan.config.models import (
    AnalyzerConfig,
    DeadscanConfig,
    GitConfig,
    QueueConfig,
    SchedulerConfig,
    VALID_STORES,
)
from deadscan.config.validation import validate_config
from deadscan.core.errors import DeadscanError
from deadscan.core.logging import get_logger
from deadscan.core.paths import get_deadscan_home

LOGGER = get_logger(__name__)

PROJECT_CONFIG_NAMES = ("deadscan.yml", "deadscan.yaml", ".deadscan.yml", ".deadscan.yaml")
GLOBAL_CONFIG_NAME = "config.yml"

_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<default>[^}]*))?\}")


class ConfigError(DeadscanError):
    """A config file is missing, unreadable or not a YAML mapping."""


def load_config(
    project_root: Optional[Path] = None,
    cli_config_path: Optional[Path] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
) -> DeadscanConfig:
    """Build the effective configuration.

    A broken global file is reported and skipped; a broken project or
    ``--config`` file is an error, since the user asked for it here.

    Raises:
        ConfigError: If ``cli_config_path`` does not exist, or the project or
            custom file cannot be parsed.
    """
    if cli_config_path is not None and not cli_config_path.exists():
        raise ConfigError(f"Config file not found: {cli_config_path}")

    merged: Dict[str, Any] = {}
    sources: List[str] = []

    for label, path in _config_layers(project_root or Path.cwd(), cli_config_path):
        try:
            data = load_yaml_file(path)
        except (yaml.YAMLError, ConfigError, OSError) as e:
            if label == "global":
                LOGGER.warning(f"Ignoring global config {path}: {e}")
                continue
            if isinstance(e, yaml.YAMLError):
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e
            if isinstance(e, OSError):
                raise ConfigError(f"Cannot read {path}: {e}") from e
            raise
        validate_config(data, source=str(path))
        merged = merge_configs(merged, data)
        sources.append(f"{label}:{path}")
        LOGGER.debug(f"Loaded {label} config from {path}")

    if cli_overrides:
        merged = merge_configs(merged, cli_overrides)
        sources.append("cli")

    config = dict_to_config(merged)
    config._config_sources = sources
    LOGGER.debug(f"Config sources: {sources or ['defaults']}")
    return config


def _config_layers(
    project_root: Path, cli_config_path: Optional[Path]
) -> List[Tuple[str, Path]]:
    layers: List[Tuple[str, Path]] = []
    global_path = get_deadscan_home() / GLOBAL_CONFIG_NAME
    if global_path.is_file():
        layers.append(("global", global_path))
    if cli_config_path is not None:
        layers.append(("custom", cli_config_path))
    else:
        project_path = find_project_config(project_root)
        if project_path is not None:
            layers.append(("project", project_path))
    return layers


def find_project_config(project_root: Path) -> Optional[Path]:
    """Return the first project config file present in ``project_root``."""
    return next(
        (project_root / name for name in PROJECT_CONFIG_NAMES if (project_root / name).is_file()),
        None,
    )


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Parse one config file and expand environment references.

    Raises:
        yaml.YAMLError: If the file is not valid YAML.
        ConfigError: If the document is not a mapping.
    """
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(data).__name__}")
    return expand_env_vars(data)


def _resolve_env_reference(match: "re.Match[str]") -> str:
    name, default = match.group("name"), match.group("default")
    if name in os.environ:
        return os.environ[name]
    if default is None:
        LOGGER.warning(f"Environment variable ${name} is not set and has no default")
        return ""
    return default


def expand_env_vars(data: Any) -> Any:
    """Expand environment references in every string of a parsed document."""
    if isinstance(data, str):
        return _ENV_REFERENCE.sub(_resolve_env_reference, data)
    if isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    if isinstance(data, dict):
        return {key: expand_env_vars(value) for key, value in data.items()}
    return data


def merge_configs(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``base`` updated with ``overlay``; nested mappings merge key by key.

    Lists and scalars from the overlay replace the base value.
    """
    result = dict(base)
    for key, value in overlay.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = merge_configs(current, value)
        result[key] = value
    return result


def _typed(data: Dict[str, Any], key: str, expected: type, default: Any) -> Any:
    value = data.get(key, default)
    if isinstance(value, bool) and expected is not bool:
        return default
    if expected is float and isinstance(value, int):
        return float(value)
    return value if isinstance(value, expected) else default


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def dict_to_config(data: Dict[str, Any]) -> DeadscanConfig:
    """Convert a (validated) dict to a typed DeadscanConfig.

    Invalid values were already reported by validation and fall back to defaults.
    """
    defaults = DeadscanConfig()

    analyzer_data = _section(data, "analyzer")
    analyzer = AnalyzerConfig(
        scitools_dir=_typed(analyzer_data, "scitools_dir", str, AnalyzerConfig.scitools_dir),
        script=_typed(analyzer_data, "script", str, AnalyzerConfig.script),
        timeout=_typed(analyzer_data, "timeout", float, AnalyzerConfig.timeout),
    )

    git_data = _section(data, "git")
    git = GitConfig(
        binary=_typed(git_data, "binary", str, GitConfig.binary),
        timeout=_typed(git_data, "timeout", float, GitConfig.timeout),
        depth=_typed(git_data, "depth", int, GitConfig.depth),
    )

    queue = QueueConfig(
        max_pending=_typed(_section(data, "queue"), "max_pending", int, QueueConfig.max_pending),
    )
    scheduler = SchedulerConfig(
        max_workers=_typed(
            _section(data, "scheduler"), "max_workers", int, SchedulerConfig.max_workers
        ),
    )

    store = data.get("store", defaults.store)
    if store not in VALID_STORES:
        store = defaults.store

    ignore = data.get("ignore", [])
    if not isinstance(ignore, list):
        ignore = []

    return DeadscanConfig(
        data_dir=_typed(data, "data_dir", str, defaults.data_dir),
        store=store,
        ignore=[p for p in ignore if isinstance(p, str)],
        analyzer=analyzer,
        git=git,
        queue=queue,
        scheduler=scheduler,
    )
