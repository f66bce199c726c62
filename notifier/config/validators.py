"""Additional validation utilities for the kind registry."""

import warnings
from typing import Any, Dict, List


def check_for_warnings(registry_dict: Dict[str, Any]) -> List[str]:
    """
    Check a raw registry for entries that are valid but probably unintended.

    Args:
        registry_dict: Raw registry dictionary (kind name -> entry)

    Returns:
        List of warning messages
    """
    warning_messages = []

    for kind, entry in registry_dict.items():
        if not isinstance(entry, dict):
            continue

        # A field with neither sources nor default always renders empty
        fields = entry.get("fields", {})
        if isinstance(fields, dict):
            for name, field in fields.items():
                if not isinstance(field, dict):
                    continue
                if not field.get("from") and not field.get("default"):
                    warning_messages.append(
                        f"Field '{name}' of kind '{kind}' has no sources and no default"
                    )

        required = entry.get("required", [])
        if isinstance(required, list):
            normalized = [path.strip() for path in required if isinstance(path, str)]
            if len(normalized) != len(set(normalized)):
                duplicates = set(path for path in normalized if normalized.count(path) > 1)
                warning_messages.append(
                    f"Duplicate required paths for kind '{kind}': {', '.join(sorted(duplicates))}"
                )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """
    Emit warning messages using Python's warnings module.

    Args:
        warning_messages: List of warning messages to emit
    """
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
