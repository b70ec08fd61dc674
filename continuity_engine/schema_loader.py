"""Bundled JSON Schema contracts for artifacts the engine emits."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

CONTRACTS_DIR = Path(__file__).resolve().parent / "contracts"


def load_schema(name: str) -> Dict[str, Any]:
    """Return the contract ``contracts/<name>`` (e.g. ``ShotExport.v1.json``).

    Raises:
        FileNotFoundError: no contract of that name ships with the package.
    """
    path = CONTRACTS_DIR / name
    if not path.is_file():
        raise FileNotFoundError(f"No bundled contract named {name!r} in {CONTRACTS_DIR}")
    with path.open(encoding="utf-8") as fh:
        return json.load(fh)
