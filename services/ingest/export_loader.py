"""
Export File Loader
Reads CSV/TSV and JSON ticket exports into flat row dictionaries
"""

import csv
import json
from pathlib import Path
from typing import Any, Union

import structlog

from shared.errors import UnsupportedFormatError

logger = structlog.get_logger()

TABULAR_EXTENSIONS = {".csv": ",", ".tsv": "\t"}
JSON_EXTENSIONS = {".json"}

# Keys a JSON export may wrap its record array under
CONTAINER_KEYS = ("result", "records", "tickets", "issues", "data", "items")


def _flatten_value(value: Any) -> Any:
    """Collapse reference objects to their display text"""
    if isinstance(value, dict):
        for key in ("display_value", "displayName", "name", "value"):
            if value.get(key) not in (None, ""):
                return value[key]
        return json.dumps(value)
    if isinstance(value, list):
        return ", ".join(str(_flatten_value(v)) for v in value)
    return value


def _unwrap(data: Any) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in CONTAINER_KEYS:
            if isinstance(data.get(key), list):
                return data[key]
        # A single record
        return [data]
    return []


def load_json_rows(path: Path) -> list[dict]:
    with open(path, "r", encoding="utf-8-sig") as f:
        data = json.load(f)
    rows = []
    for record in _unwrap(data):
        if isinstance(record, dict):
            rows.append({str(k): _flatten_value(v) for k, v in record.items()})
    return rows


def load_tabular_rows(path: Path, delimiter: str = ",") -> list[dict]:
    # utf-8-sig strips the BOM spreadsheet tools prepend to the header row
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f, delimiter=delimiter)
        # Surplus cells land under a None key; drop them
        return [{k: v for k, v in row.items() if k is not None} for row in reader]


def load_export(path: Union[str, Path]) -> list[dict]:
    """
    Load an export file into flat rows.

    Raises:
        FileNotFoundError: path does not resolve
        UnsupportedFormatError: extension is neither tabular nor JSON
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Export file not found: {path}")

    suffix = path.suffix.lower()
    if suffix in TABULAR_EXTENSIONS:
        rows = load_tabular_rows(path, TABULAR_EXTENSIONS[suffix])
    elif suffix in JSON_EXTENSIONS:
        rows = load_json_rows(path)
    else:
        raise UnsupportedFormatError(
            f"Unsupported export format '{suffix or path.name}' "
            f"(expected one of {sorted(set(TABULAR_EXTENSIONS) | JSON_EXTENSIONS)})"
        )

    logger.info("Loaded export file", file=str(path), rows=len(rows))
    return rows
