"""Configuration validation for deadscan.

Warns on unknown keys and wrongly typed values. Never raises; problems are
logged and returned so the loader can fall back to defaults.
"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import get_close_matches
from typing import Any, Dict, List, Optional, Set, Tuple, Type, Union

from deadscan.config.models import VALID_STORES
from deadscan.core.logging import get_logger

LOGGER = get_logger(__name__)

VALID_TOP_LEVEL_KEYS: Set[str] = {
    "data_dir",
    "store",
    "ignore",
    "analyzer",
    "git",
    "queue",
    "scheduler",
}

_Number = (int, float)

# section -> key -> accepted types
SECTION_SCHEMAS: Dict[str, Dict[str, Union[Type, Tuple[Type, ...]]]] = {
    "analyzer": {"scitools_dir": str, "script": str, "timeout": _Number},
    "git": {"binary": str, "timeout": _Number, "depth": int},
    "queue": {"max_pending": int},
    "scheduler": {"max_workers": int},
}


@dataclass
class ConfigValidationWarning:
    """A validation warning for configuration."""

    message: str
    source: str
    key: Optional[str] = None
    suggestion: Optional[str] = None


def validate_config(data: Dict[str, Any], source: str) -> List[ConfigValidationWarning]:
    """Validate a configuration dictionary.

    Args:
        data: Config dictionary to validate.
        source: Source file path for warning messages.

    Returns:
        List of validation warnings.
    """
    warnings: List[ConfigValidationWarning] = []

    if not isinstance(data, dict):
        warning = ConfigValidationWarning(
            message=f"Config must be a mapping, got {type(data).__name__}",
            source=source,
        )
        _log_warning(warning)
        return [warning]

    for key, value in data.items():
        if key not in VALID_TOP_LEVEL_KEYS:
            _add(warnings, f"Unknown top-level key '{key}'", source, key,
                 _suggest_key(key, VALID_TOP_LEVEL_KEYS))
            continue

        if key == "data_dir" and not isinstance(value, str):
            _add(warnings, f"'data_dir' must be a string, got {type(value).__name__}",
                 source, key)
        elif key == "store":
            if not isinstance(value, str) or value not in VALID_STORES:
                _add(warnings, f"Invalid store '{value}', expected one of "
                     f"{sorted(VALID_STORES)}", source, key,
                     _suggest_key(str(value), VALID_STORES))
        elif key == "ignore":
            if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
                _add(warnings, "'ignore' must be a list of patterns", source, key)
        elif key in SECTION_SCHEMAS:
            warnings.extend(_validate_section(key, value, source))

    return warnings


def _validate_section(section: str, value: Any, source: str) -> List[ConfigValidationWarning]:
    warnings: List[ConfigValidationWarning] = []
    if not isinstance(value, dict):
        _add(warnings, f"'{section}' must be a mapping, got {type(value).__name__}",
             source, section)
        return warnings

    schema = SECTION_SCHEMAS[section]
    for key, item in value.items():
        qualified = f"{section}.{key}"
        if key not in schema:
            suggestion = _suggest_key(key, set(schema))
            _add(warnings, f"Unknown key '{qualified}'", source, qualified,
                 f"{section}.{suggestion}" if suggestion else None)
            continue
        expected = schema[key]
        # bool is an int subclass but never a valid number here
        if isinstance(item, bool) or not isinstance(item, expected):
            _add(warnings, f"'{qualified}' has invalid type {type(item).__name__}",
                 source, qualified)
    return warnings


def _add(
    warnings: List[ConfigValidationWarning],
    message: str,
    source: str,
    key: Optional[str] = None,
    suggestion: Optional[str] = None,
) -> None:
    warning = ConfigValidationWarning(
        message=message, source=source, key=key, suggestion=suggestion
    )
    warnings.append(warning)
    _log_warning(warning)


def _suggest_key(key: str, valid: Set[str]) -> Optional[str]:
    matches = get_close_matches(key, sorted(valid), n=1, cutoff=0.6)
    return matches[0] if matches else None


def _log_warning(warning: ConfigValidationWarning) -> None:
    message = f"{warning.source}: {warning.message}"
    if warning.suggestion:
        message += f" (did you mean '{warning.suggestion}'?)"
    LOGGER.warning(message)
