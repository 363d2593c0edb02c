# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Aggregate pipeline results into per-document reports."""

from collections.abc import Iterable
from dataclasses import dataclass

from tracemark.model import Diagnostic, Mismatch, MismatchKind
from tracemark.synthesizer import Decision


@dataclass(frozen=True)
class CheckReport:
    """Result of the ``check`` action for one document.

    Attributes:
        mismatches: Missing and unwanted markers ordered by position.
        warnings: Recoverable anomalies found while processing.
        path: Document path, if the text came from a file.
    """

    mismatches: tuple[Mismatch, ...]
    warnings: tuple[Diagnostic, ...]
    path: str | None = None

    @property
    def ok(self) -> bool:
        """Return whether every function agrees with policy."""
        return not self.mismatches


@dataclass(frozen=True)
class RewriteReport:
    """Result of the ``fix`` or ``strip`` action for one document."""

    text: str
    changed: bool
    warnings: tuple[Diagnostic, ...]
    path: str | None = None

    @property
    def ok(self) -> bool:
        """Return True; a rewrite has no policy verdict, warnings aside."""
        return True


Outcome = CheckReport | RewriteReport


def report_check(
    decisions: Iterable[Decision],
    warnings: Iterable[Diagnostic],
    path: str | None = None,
) -> CheckReport:
    """Collect mismatches from check decisions.

    Args:
        decisions: Decisions computed for the ``check`` action.
        warnings: Diagnostics from every stage.
        path: Document path attached to each mismatch.

    Returns:
        Report with mismatches sorted by ``(line, column)``.
    """
    mismatches: list[Mismatch] = []
    for decision in decisions:
        if decision.kind not in ("missing", "unwanted"):
            continue
        kind: MismatchKind = "missing" if decision.kind == "missing" else "unwanted"
        span = decision.record.signature_span
        mismatches.append(
            Mismatch(
                kind=kind,
                line=span.start_line,
                column=span.start_column or 0,
                name=decision.record.name,
                path=path,
            )
        )
    mismatches.sort(key=lambda mismatch: (mismatch.line, mismatch.column))
    return CheckReport(
        mismatches=tuple(mismatches),
        warnings=_ordered(warnings),
        path=path,
    )


def report_rewrite(
    original: str,
    text: str,
    warnings: Iterable[Diagnostic],
    path: str | None = None,
) -> RewriteReport:
    """Wrap rewritten text, flagging whether it differs from the original."""
    return RewriteReport(
        text=text,
        changed=text != original,
        warnings=_ordered(warnings),
        path=path,
    )


def _ordered(warnings: Iterable[Diagnostic]) -> tuple[Diagnostic, ...]:
    return tuple(sorted(warnings, key=lambda diagnostic: diagnostic.line))
