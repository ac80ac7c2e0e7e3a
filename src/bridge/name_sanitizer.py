"""
Tool name sanitization for the MCP catalogue.

MCP tool names must be 1-64 characters of ASCII letters, digits or underscores.
Action names coming from the broker are dot-delimited, may be camelCase and may start
with a sentinel such as "$", so every name goes through a two stage transform:
camel-aware separation first, then a generic strip of forbidden characters.
"""

import re
from typing import AbstractSet


class NamingError(ValueError):
    """Raised when a tool name cannot be made legal or unique."""


class NameSanitizer:
    """Pure string transforms producing protocol-legal tool names."""

    VALID_NAME_PATTERN = re.compile(r"[A-Za-z0-9_]{1,64}")
    MAX_NAME_LENGTH = 64
    FALLBACK_NAME = "action"
    MAX_UNIQUE_ATTEMPTS = 1000

    _CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
    _FORBIDDEN_CHARS = re.compile(r"[^A-Za-z0-9_]")
    _UNDERSCORE_RUNS = re.compile(r"_+")

    @classmethod
    def camel_to_separated(cls, value: str) -> str:
        """Convert camelCase (and any punctuation) to lower snake_case.

        May return an empty string.
        """
        separated = cls._CAMEL_BOUNDARY.sub(r"\1_\2", value)
        separated = cls._FORBIDDEN_CHARS.sub("_", separated).lower()
        separated = cls._UNDERSCORE_RUNS.sub("_", separated)
        return separated.strip("_")

    @classmethod
    def strip_forbidden(cls, value: str) -> str:
        """Reduce any string to a legal tool name, keeping its case."""
        cleaned = cls._FORBIDDEN_CHARS.sub("_", value)
        cleaned = cls._UNDERSCORE_RUNS.sub("_", cleaned)
        cleaned = cleaned.strip("_")

        if not cleaned:
            cleaned = cls.FALLBACK_NAME

        # Truncation happens after the trim; a trailing underscore inside the window stays
        return cleaned[: cls.MAX_NAME_LENGTH]

    @classmethod
    def is_valid(cls, name: str) -> bool:
        """Check a name against the MCP tool name pattern."""
        return cls.VALID_NAME_PATTERN.fullmatch(name) is not None

    @classmethod
    def sanitize_action_name(cls, action_name: str) -> str:
        """
        Convert a raw broker action name into a tool name.

        Args:
            action_name: Raw action name, e.g. "users.getById" or "$node.health"

        Returns:
            Legal tool name, e.g. "users_get_by_id" or "node_health"

        Raises:
            NamingError: If the sanitized result does not match the legal pattern
        """
        sanitized = cls.strip_forbidden(cls.camel_to_separated(action_name))

        if not cls.is_valid(sanitized):
            raise NamingError(f"Failed to sanitize action name: {action_name} -> {sanitized}")

        return sanitized

    @classmethod
    def ensure_unique(cls, base_name: str, used_names: AbstractSet[str]) -> str:
        """
        Resolve a name collision by appending a numeric suffix.

        Args:
            base_name: Candidate tool name
            used_names: Names already assigned in the current build pass

        Returns:
            base_name if unused, otherwise base_name_1, base_name_2, ...

        Raises:
            NamingError: If no free name is found within MAX_UNIQUE_ATTEMPTS tries
        """
        candidate = base_name
        counter = 1

        while candidate in used_names:
            candidate = f"{base_name}_{counter}"
            counter += 1

            if counter > cls.MAX_UNIQUE_ATTEMPTS:
                raise NamingError(f"Failed to generate unique name for: {base_name}")

        return candidate
