"""Loader for the notification kind registry."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from .exceptions import ConfigurationError
from .models import KindRegistry
from .validators import check_for_warnings, emit_warnings

DEFAULT_REGISTRY_PATH = Path(__file__).parent / "kinds.yaml"


def load_kind_registry(registry_path: Optional[Path] = None) -> KindRegistry:
    """
    Load and validate the notification kind registry from YAML.

    New notification kinds are added by registering data in this file, not by
    copying control flow.

    Args:
        registry_path: Optional path to a registry file (defaults to the
            packaged kinds.yaml)

    Returns:
        Validated KindRegistry

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    registry_file = registry_path or DEFAULT_REGISTRY_PATH

    try:
        with open(registry_file, "r", encoding="utf-8") as f:
            registry_dict = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(
            f"Kind registry not found: {registry_file}",
            suggestions=[f"Ensure {registry_file} exists and is readable"],
        )
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse kind registry: {e}",
            suggestions=[
                "Check YAML syntax in the registry file",
                "Ensure proper indentation (use spaces, not tabs)",
            ],
        )

    if not registry_dict:
        raise ConfigurationError(
            "Kind registry is empty",
            suggestions=["Register at least the built-in notification kinds"],
        )

    warnings = check_for_warnings(registry_dict)
    if warnings:
        emit_warnings(warnings)

    try:
        return KindRegistry.model_validate({"kinds": registry_dict})
    except ValidationError as e:
        errors = []
        for error in e.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"])
            if error["type"] == "missing":
                errors.append(f"Missing required field: {field_path}")
            else:
                errors.append(f"{field_path}: {error['msg']}")

        raise ConfigurationError(
            "Kind registry validation failed",
            errors=errors,
            suggestions=[
                "Check that every kind declares route, scheme, requirement, required and recipients",
                "Verify scheme is 'hosted-mailbox' or 'generic-smtp'",
            ],
        )


@lru_cache(maxsize=1)
def default_kind_registry() -> KindRegistry:
    """Return the packaged registry, parsed once per process."""
    return load_kind_registry()
