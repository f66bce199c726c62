"""Custom exceptions for configuration management."""

from typing import List, Optional, Sequence


class ConfigurationError(Exception):
    """
    Deployment configuration (environment or kind registry) is missing or invalid.

    ``message`` is the one-line summary shown to HTTP callers. ``str()`` adds
    the numbered problems and suggestions for operators reading the CLI or
    logs. ``missing_keys`` names the absent environment variables in
    declaration order.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        suggestions: Optional[List[str]] = None,
        missing_keys: Optional[List[str]] = None,
    ):
        self.message = message
        self.errors = list(errors or [])
        self.suggestions = list(suggestions or [])
        self.missing_keys = list(missing_keys or [])
        super().__init__(message)

    @classmethod
    def missing(
        cls, keys: Sequence[str], suggestions: Optional[List[str]] = None
    ) -> "ConfigurationError":
        """Build the error for absent environment variables, one problem per key."""
        return cls(
            f"Missing environment variables: {', '.join(keys)}",
            errors=[f"Missing required environment variable: {key}" for key in keys],
            suggestions=suggestions,
            missing_keys=list(keys),
        )

    def __str__(self) -> str:
        lines = [self.message]
        if self.errors:
            lines.append("\nValidation Errors:")
            lines.extend(f"  {i}. {error}" for i, error in enumerate(self.errors, 1))
        if self.suggestions:
            lines.append("\nSuggestions:")
            lines.extend(f"  - {suggestion}" for suggestion in self.suggestions)
        return "\n".join(lines)
