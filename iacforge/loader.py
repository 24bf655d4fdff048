"""
Reading analysis documents from disk.
"""
import json
import os
from typing import Any

import yaml

from iacforge.errors import ConfigurationError


def detect_format(filepath: str) -> str:
    """
    Return 'json', 'yaml' or 'unknown'.
    """
    _, ext = os.path.splitext(filepath.lower())
    if ext == ".json":
        return "json"
    if ext in (".yaml", ".yml"):
        return "yaml"

    # No telling extension: sniff the first non-blank character
    try:
        with open(filepath, encoding="utf-8") as fh:
            head = fh.read(4096).lstrip()
    except (OSError, UnicodeDecodeError):
        return "unknown"
    if head.startswith(("{", "[")):
        return "json"
    if head and ":" in head.splitlines()[0]:
        return "yaml"
    return "unknown"


def load_document(filepath: str) -> Any:
    fmt = detect_format(filepath)
    if fmt == "unknown":
        raise ConfigurationError(f"Cannot tell whether {filepath} is JSON or YAML")
    try:
        with open(filepath, encoding="utf-8") as fh:
            if fmt == "json":
                return json.load(fh)
            return yaml.safe_load(fh)
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Cannot read {filepath}: {exc}") from exc
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"{filepath} is not valid {fmt.upper()}: {exc}") from exc
