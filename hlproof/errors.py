"""Structured error objects for hlproof.

Every error is machine-readable. Parsing and translation failures carry the
offending source span and an expectation message, so callers building
exercises from source data can report exactly what went wrong and where.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    SYNTAX_ERROR = "syntax_error"
    TRANSLATION_ERROR = "translation_error"


@dataclass(frozen=True)
class SourceSpan:
    """Half-open range of character offsets into the (trimmed) source."""
    start: int
    end: int

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass
class HLError:
    kind: ErrorKind
    message: str
    span: Optional[SourceSpan] = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.span:
            d["span"] = {"start": self.span.start, "end": self.span.end}
        if self.details:
            d["details"] = self.details
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __str__(self) -> str:
        loc = f"{self.span}: " if self.span else ""
        found = self.details.get("found")
        if found is None:
            return f"{loc}{self.message}"
        return f"{loc}{self.message} `{found}`."


def syntax_error(
    message: str,
    span: Optional[SourceSpan] = None,
    found: Optional[str] = None,
) -> HLError:
    details: dict[str, Any] = {}
    if found is not None:
        details["found"] = found
    return HLError(kind=ErrorKind.SYNTAX_ERROR, message=message, span=span, details=details)


def translation_error(expectation: str, span: SourceSpan, found: str) -> HLError:
    return HLError(
        kind=ErrorKind.TRANSLATION_ERROR,
        message=expectation,
        span=span,
        details={"found": found},
    )


class ParseTranslationError(Exception):
    """Raised when source text cannot be turned into an Assertion or Command.

    Covers both malformed concrete syntax and sort mismatches found while
    translating the parse tree (e.g. a boolean used as a predicate argument).
    """

    def __init__(self, error: HLError):
        self.error = error
        super().__init__(str(error))

    @property
    def span(self) -> Optional[SourceSpan]:
        return self.error.span

    @property
    def expectation(self) -> str:
        return self.error.message

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    def to_json(self, indent: int = 2) -> str:
        return self.error.to_json(indent=indent)


class ProofLoadError(Exception):
    """Raised when a proof text file has a step that does not parse."""

    def __init__(self, line: int, cause: ParseTranslationError):
        self.line = line
        self.cause = cause
        super().__init__(f"line {line}: {cause}")

    def to_dict(self) -> dict[str, Any]:
        d = self.cause.error.to_dict()
        d["line"] = self.line
        return d
