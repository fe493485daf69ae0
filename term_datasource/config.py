"""Configuration loading for the term datasource tools.

The YAML file has three top-level sections: ``term_store`` (which backend
serves terms and how to reach it), ``datasource`` (the option knobs of
:class:`term_datasource.options.DatasourceOptions`) and ``logging``.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded or is invalid."""


PACKAGE_ROOT = Path(__file__).resolve().parents[1]

# Consulted before the default locations when no explicit path is given.
CONFIG_ENV_VAR = "TERM_DATASOURCE_CONFIG"

DEFAULT_CONFIG_LOCATIONS = (
    PACKAGE_ROOT / "config" / "config.yaml",
    PACKAGE_ROOT / "config" / "config.yml",
    Path("./config/config.yaml"),
    Path("./config/config.yml"),
    Path.home() / ".term_datasource" / "config.yaml",
)


def resolve_path(path_str: str | None, *, base: Path | None = None) -> Path:
    """Resolve a path string that may be relative to an optional base directory."""
    base_path = base or Path.cwd()
    if not path_str:
        return base_path
    path = Path(path_str)
    if not path.is_absolute():
        path = base_path / path
    return path


def load_yaml(path: Path) -> Any:
    """Parse a single YAML document (config or term fixture)."""
    with path.open("r", encoding="utf-8") as handle:
        try:
            return yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Unable to parse YAML file {path}") from exc


def config_section(config: Mapping[str, Any], name: str) -> Dict[str, Any]:
    """Return a copy of section ``name``; a missing or empty section is ``{}``."""
    section = config.get(name)
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ConfigError(f"Configuration section '{name}' must be a mapping")
    return dict(section)


def load_config(path: str | os.PathLike[str] | None = None) -> Dict[str, Any]:
    """Load the term datasource configuration.

    Parameters
    ----------
    path: Optional path to a configuration file. Without one, the file named
        by ``$TERM_DATASOURCE_CONFIG`` is used, then the default locations
        are searched.
    """
    if path:
        candidate_paths = [Path(path)]
    elif os.environ.get(CONFIG_ENV_VAR):
        candidate_paths = [Path(os.environ[CONFIG_ENV_VAR])]
    else:
        candidate_paths = list(DEFAULT_CONFIG_LOCATIONS)

    for candidate in candidate_paths:
        if candidate.exists():
            data = load_yaml(candidate) or {}
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration file {candidate} must contain a mapping")
            return data
    raise ConfigError(
        "No term datasource configuration found. Pass --config, set "
        f"{CONFIG_ENV_VAR} or create config/config.yaml."
    )
