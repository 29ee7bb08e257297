"""
Loading exported platform documents (YAML or JSON) for the file-backed readers.
"""

import json
from pathlib import Path
from typing import Any, Dict

import yaml


class PlatformReadError(Exception):
    """A platform listing (inventory, tasks, event log) could not be read."""


def load_document(path: Path, error_cls=PlatformReadError) -> Dict[str, Any]:
    """
    Parse `path` as JSON (".json") or YAML (anything else).

    An empty document is returned as {}.

    Raises:
        error_cls: unreadable file, malformed content, or a non-mapping root
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise error_cls(f"Cannot read {path}: {e}") from e

    try:
        if path.suffix.lower() == ".json":
            document = json.loads(content)
        else:
            document = yaml.safe_load(content)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise error_cls(f"Malformed document {path}: {e}") from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise error_cls(f"{path} must contain a mapping")
    return document
