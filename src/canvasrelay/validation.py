"""Lightweight pre-enqueue check of drawing command text.

This is not the drawing grammar. It only confirms that each line looks
like ``name(args)`` with a known command name, so that obviously broken
submissions are rejected before they reach the ledger. Argument parsing
happens in the renderer.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

KNOWN_COMMANDS = frozenset({"s", "l", "r", "fr", "c", "fc", "t", "p", "clear", "action"})

_COMMAND_PATTERN = re.compile(r"^(\w+)\([^)]*\)$")


class ValidationResult(BaseModel):
    valid: bool = Field(description="True if every line passed")
    errors: list[str] = Field(default_factory=list)


class CommandValidationError(ValueError):
    """Raised when submitted command text fails validation."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors) or "Invalid commands")
        self.errors = list(errors)


def validate_commands(payload: str) -> ValidationResult:
    """Check each non-blank, non-comment line of ``payload``.

    Line numbers in error messages count only the checked lines.
    """
    errors: list[str] = []
    lines = [
        line.strip() for line in payload.split("\n")
        if line.strip() and not line.strip().startswith("//")
    ]

    for number, line in enumerate(lines, start=1):
        match = _COMMAND_PATTERN.match(line)
        if match is None:
            errors.append(f'Line {number}: Invalid command syntax "{line}"')
            continue
        name = match.group(1)
        if name not in KNOWN_COMMANDS:
            errors.append(f'Line {number}: Unknown command "{name}"')

    return ValidationResult(valid=not errors, errors=errors)
