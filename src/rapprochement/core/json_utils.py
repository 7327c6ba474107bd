#!/usr/bin/env python3
"""
JSON Utilities Module

Every JSON document the engine reads or writes (tenant store files, CLI
result files, CLI JSON output) goes through these helpers: UTF-8, two-space
indent, accents kept as-is ("Écart TVA" rather than "\\u00c9cart TVA").
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

_DUMP_OPTIONS: dict[str, Any] = {"indent": 2, "ensure_ascii": False}


def format_json(data: Any) -> str:
    """Render data as pretty-printed JSON text."""
    return json.dumps(data, **_DUMP_OPTIONS)


def write_json(filepath: str | Path, data: Any) -> None:
    """Write data to a JSON file, creating parent directories."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    filepath.write_text(format_json(data), encoding="utf-8")


def write_json_atomic(filepath: str | Path, data: Any) -> None:
    """
    Replace a JSON file in one step.

    The document is written to a temporary file next to the target and then
    renamed over it, so a reader sees either the old or the new snapshot.

    Args:
        filepath: Target JSON file
        data: JSON-serializable data
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{filepath.name}.", suffix=".tmp", dir=filepath.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, **_DUMP_OPTIONS)
        os.replace(tmp_name, filepath)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_json(filepath: str | Path) -> Any:
    """Parse a UTF-8 JSON file."""
    with open(filepath, encoding="utf-8") as f:
        return json.load(f)
