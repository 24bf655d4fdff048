"""
Optional project configuration (iacforge.yaml).
"""
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from iacforge.errors import ConfigurationError

DEFAULT_CONFIG_FILE = "iacforge.yaml"


@dataclass
class Config:
    provider: Optional[str] = None
    formats: List[str] = field(default_factory=list)
    parallel: bool = False
    mappings: Dict[str, Any] = field(default_factory=dict)


def load_config(path: Optional[str] = None) -> Config:
    """
    Load settings from `path`, or from iacforge.yaml in the working directory
    when no path is given. A missing default file yields defaults; an explicit
    path must exist and parse.
    """
    if path is None:
        path = DEFAULT_CONFIG_FILE
        if not os.path.exists(path):
            return Config()

    try:
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Config file {path} is not valid YAML: {exc}") from exc

    if data is None:
        return Config()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    provider = data.get("provider")
    if provider is not None and not isinstance(provider, str):
        raise ConfigurationError("Config 'provider' must be a string")
    formats = data.get("formats") or []
    if isinstance(formats, str):
        formats = [formats]
    if not isinstance(formats, list) or not all(isinstance(f, str) for f in formats):
        raise ConfigurationError("Config 'formats' must be a list of format names")
    parallel = data.get("parallel", False)
    if not isinstance(parallel, bool):
        raise ConfigurationError("Config 'parallel' must be true or false")
    mappings = data.get("mappings") or {}
    if not isinstance(mappings, dict):
        raise ConfigurationError("Config 'mappings' must be a mapping of provider -> table")

    return Config(provider=provider, formats=formats, parallel=parallel, mappings=mappings)
