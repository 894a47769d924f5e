"""
Jupyter notebook cleaning.

The transform is pure (bytes in, bytes out) and idempotent. Callers
write the result only when it returns, so a notebook that fails to
parse is never touched.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict

from .config import NOTEBOOK_METADATA_TEMPLATE
from .errors import NotebookError


def clean_notebook(notebook: Dict[str, Any]) -> Dict[str, Any]:
    """Return a cleaned deep copy of a parsed notebook."""

    cleaned = copy.deepcopy(notebook)
    cleaned["metadata"] = copy.deepcopy(NOTEBOOK_METADATA_TEMPLATE)

    cells = cleaned.get("cells", [])
    if not isinstance(cells, list):
        raise NotebookError("'cells' is not a list")

    for cell in cells:
        if not isinstance(cell, dict):
            raise NotebookError("cell is not an object")
        if "execution_count" in cell:
            cell["execution_count"] = None
        if "metadata" in cell:
            cell["metadata"] = {}
        if cell.get("cell_type") == "code" and "outputs" in cell:
            cell["outputs"] = []

    return cleaned


def clean_notebook_bytes(data: bytes) -> bytes:
    """
    Parse, clean and re-serialize a notebook.

    Raises:
        NotebookError: if the content is not a JSON object notebook
    """

    try:
        notebook = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise NotebookError(f"not valid JSON: {e}") from e

    if not isinstance(notebook, dict):
        raise NotebookError("top level is not an object")

    cleaned = clean_notebook(notebook)
    return (json.dumps(cleaned, indent=1, ensure_ascii=False) + "\n").encode("utf-8")
