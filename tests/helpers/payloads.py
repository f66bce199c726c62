"""Payload fixtures loaded from tests/fixtures/payloads.yaml."""

import copy
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml

FIXTURE_PATH = Path(__file__).parent.parent / "fixtures" / "payloads.yaml"


@lru_cache(maxsize=1)
def _load_fixtures() -> Dict[str, Dict[str, Any]]:
    with open(FIXTURE_PATH, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def minimal_payload(kind: str) -> Dict[str, Any]:
    """Payload holding only the kind's required paths (a fresh copy)."""
    return copy.deepcopy(_load_fixtures()["minimal"][kind])


def full_payload(kind: str) -> Dict[str, Any]:
    """Fully populated payload for a kind (a fresh copy)."""
    return copy.deepcopy(_load_fixtures()["full"][kind])


def without_path(payload: Dict[str, Any], path: str) -> Dict[str, Any]:
    """Return a copy of payload with the dotted path removed."""
    result = copy.deepcopy(payload)
    *parents, leaf = path.split(".")
    current = result
    for segment in parents:
        current = current.get(segment)
        if not isinstance(current, dict):
            return result
    current.pop(leaf, None)
    return result
