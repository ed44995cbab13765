"""Environment variable substitution for commands and wrapper templates.

Supported syntax:

- ``${NAME}``: required variable
- ``${NAME:-default}``: optional variable with a fallback
- ``$${...}``: escaped, emitted literally as ``${...}``

Lookup order for each placeholder is the process environment, then the
variables loaded from env files, then the inline default. In strict mode a
placeholder found nowhere is an error; otherwise it becomes an empty
string.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Mapping

from .exceptions import SubstitutionError

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")
NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ESCAPE_SEQUENCE = "$${"
_ESCAPE_MARKER = "\x00ESC\x00"


def _escape_marker(text: str) -> str:
    """Return a marker string that does not occur in text."""
    marker = _ESCAPE_MARKER
    while marker in text:
        marker = f"\x00{marker}\x00"
    return marker


@dataclass(frozen=True)
class SubstitutionContext:
    """Layered variable lookup used to resolve placeholders.

    Attributes:
        file_vars: Variables loaded from .env files
        environ: Process environment; ``None`` means ``os.environ``

    Example:
        >>> ctx = SubstitutionContext({"USER": "file"}, environ={})
        >>> ctx.substitute("hi ${USER}")
        'hi file'
    """

    file_vars: Mapping[str, str] = field(default_factory=dict)
    environ: Mapping[str, str] | None = None

    def lookup(self, name: str, default: str | None = None) -> str | None:
        """Resolve one variable, returning None if it is missing everywhere."""
        environ = os.environ if self.environ is None else self.environ
        if name in environ:
            return environ[name]
        if name in self.file_vars:
            return self.file_vars[name]
        return default

    def substitute(self, text: str, strict: bool = True) -> str:
        """Replace all placeholders in text.

        Raises:
            SubstitutionError: If strict and any variable is unresolved
        """
        marker = _escape_marker(text)
        escaped = text.replace(ESCAPE_SEQUENCE, marker)
        missing: list[str] = []

        def replace(match: re.Match) -> str:
            name, default = match.group(1), match.group(2)
            value = self.lookup(name, default)
            if value is not None:
                return value
            if strict:
                if name not in missing:
                    missing.append(name)
                return match.group(0)
            logger.debug(f"Variable {name} is not set, substituting empty string")
            return ""

        result = PLACEHOLDER_RE.sub(replace, escaped)

        if missing:
            raise SubstitutionError(missing)

        return result.replace(marker, "${")


def substitute(
    text: str,
    strict: bool,
    file_vars: Mapping[str, str],
    environ: Mapping[str, str] | None = None,
) -> str:
    """Substitute ``${VAR}`` placeholders in text.

    Args:
        text: String containing placeholders
        strict: Raise on variables that cannot be resolved
        file_vars: Variables loaded from env files
        environ: Environment to consult first (defaults to os.environ)

    Returns:
        The text with all placeholders resolved and escapes restored

    Raises:
        SubstitutionError: If strict and variables are missing; the error
            names every missing variable
    """
    return SubstitutionContext(file_vars, environ).substitute(text, strict)


def is_valid_name(name: str) -> bool:
    """Check whether name is a valid variable name."""
    return bool(NAME_RE.match(name))
