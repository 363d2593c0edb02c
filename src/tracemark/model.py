# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Domain models shared by the instrumentation pipeline stages."""

from dataclasses import dataclass
from typing import Literal

Action = Literal["check", "fix", "strip"]
ACTIONS: tuple[Action, ...] = ("check", "fix", "strip")

MismatchKind = Literal["missing", "unwanted"]
DiagnosticKind = Literal[
    "malformed_input",
    "ambiguous_signature",
    "unplaceable_marker",
    "overlapping_signature",
]


@dataclass(frozen=True)
class SourceSpan:
    """Identify a contiguous region of the original text.

    Attributes:
        start_line: First line of the region (1-based).
        end_line: Line after the last line of the region (half-open).
        start_column: Optional 0-based column on ``start_line``.
        end_column: Optional 0-based exclusive column on the last line.
    """

    start_line: int
    end_line: int
    start_column: int | None = None
    end_column: int | None = None

    @property
    def last_line(self) -> int:
        """Return the last line covered by the span."""
        return max(self.start_line, self.end_line - 1)

    @property
    def is_empty(self) -> bool:
        """Return whether the span covers no line at all."""
        return self.end_line <= self.start_line


@dataclass(frozen=True)
class Diagnostic:
    """Represent a recoverable anomaly found while processing one document."""

    kind: DiagnosticKind
    line: int
    message: str


@dataclass(frozen=True)
class FunctionRecord:
    """Represent one classified function definition.

    Attributes:
        name: Best-effort qualified name, e.g. ``tests::sub``.
        parameters: Nameable parameter names in declaration order.
        signature_span: From the first qualifier to the body's opening brace.
        body_span: From the opening brace to the matching closing brace.
        existing_marker_span: First marker attribute on the function, if any.
        marker_spans: Every marker attribute on the function.
        in_test_module: Whether an enclosing scope is gated on ``cfg(test)``.
        is_test_function: Whether the function is a test case.
        is_opted_out: Whether the function carries the opt-out attribute.
        is_const: Whether the function is a ``const fn``.
        is_ignored: Whether an ``ignore`` pattern excludes the function.
        depth: Number of enclosing brace scopes.
        indent: Leading whitespace of the signature's first line.
        line_aligned: Whether a line can be inserted above the signature.
    """

    name: str
    parameters: tuple[str, ...]
    signature_span: SourceSpan
    body_span: SourceSpan
    existing_marker_span: SourceSpan | None
    marker_spans: tuple[SourceSpan, ...]
    in_test_module: bool
    is_test_function: bool
    is_opted_out: bool
    is_const: bool
    is_ignored: bool
    depth: int
    indent: str
    line_aligned: bool

    @property
    def is_exempt(self) -> bool:
        """Return whether policy forbids a marker on this function."""
        return (
            self.in_test_module
            or self.is_test_function
            or self.is_opted_out
            or self.is_const
        )

    @property
    def is_eligible(self) -> bool:
        """Return whether the function should carry a marker."""
        return not self.is_ignored and not self.is_exempt


@dataclass(frozen=True)
class Edit:
    """Replace a line range of the original text.

    An empty span ``[L, L)`` inserts ``replacement`` before line ``L``.
    """

    span: SourceSpan
    replacement: tuple[str, ...]


@dataclass(frozen=True)
class Mismatch:
    """Represent a function whose marker state disagrees with policy."""

    kind: MismatchKind
    line: int
    column: int
    name: str
    path: str | None = None
