"""Load collection definition files and normalize them for the Postman API.

Files may contain either a raw v2.1 collection or an export wrapped as
``{"collection": {...}}``. Normalization never touches the file on disk.
"""

import copy
import json
from pathlib import Path

from postman_sync.errors import ParseError

DEFAULT_SCHEMA = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"

PRIVATE_INFO_PREFIX = "_"


def load_collection(file_path: Path) -> dict:
    """Read and parse a collection file. Raises ParseError on bad content."""
    try:
        text = Path(file_path).read_text(encoding="utf-8")
        data = json.loads(text)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(file_path, str(e)) from e

    if not isinstance(data, dict):
        raise ParseError(file_path, f"expected a JSON object, got {type(data).__name__}")
    return data


def normalize_collection(doc: dict) -> dict:
    """Return the canonical collection shape expected by the Postman API.

    Unwraps an optional ``collection`` envelope, stamps the default schema
    when none is set, and drops ``info`` keys starting with an underscore
    (``_postman_id``, ``_exporter_id``...). The input is left untouched and
    normalizing an already normalized document is a no-op.
    """
    col = doc["collection"] if doc.get("collection") else doc
    if not isinstance(col, dict):
        raise ValueError("collection envelope must be a JSON object")
    col = copy.deepcopy(col)

    if not col.get("schema"):
        col["schema"] = DEFAULT_SCHEMA

    info = col.get("info")
    if isinstance(info, dict):
        col["info"] = {
            k: v for k, v in info.items()
            if not k.startswith(PRIVATE_INFO_PREFIX)
        }

    return col
