# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Turn per-function decisions into line edits and apply them."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from tracemark.model import Diagnostic, Edit, SourceSpan
from tracemark.synthesizer import Decision

logger = logging.getLogger(__name__)


class EditPlanError(RuntimeError):
    """Represent overlapping edits, which the locator must never produce."""


@dataclass(frozen=True)
class EditPlan:
    """Store ordered edits and planning warnings for one document."""

    edits: tuple[Edit, ...]
    diagnostics: tuple[Diagnostic, ...]


def split_lines(text: str) -> list[str]:
    """Split text on ``\\n`` keeping line endings.

    Returns:
        Lines whose concatenation is exactly ``text``.
    """
    parts = text.split("\n")
    lines = [f"{part}\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def plan_edits(decisions: Iterable[Decision], lines: list[str]) -> EditPlan:
    """Build ordered, non-overlapping edits for insert and delete decisions.

    Args:
        decisions: Decisions for every function of the document.
        lines: Original document lines with endings.

    Returns:
        Edits sorted by span start and planning warnings.

    Raises:
        EditPlanError: If two edits overlap.
    """
    edits: list[Edit] = []
    diagnostics: list[Diagnostic] = []
    cuts: list[SourceSpan] = []
    for decision in decisions:
        record = decision.record
        if decision.kind == "insert" and decision.marker_line is not None:
            line = record.signature_span.start_line
            if not record.line_aligned:
                message = (
                    f"cannot place a marker above '{record.name}': its signature "
                    "shares a line with preceding code"
                )
                logger.warning("%s (line=%s)", message, line)
                diagnostics.append(
                    Diagnostic(kind="unplaceable_marker", line=line, message=message)
                )
                continue
            edits.append(
                Edit(
                    span=SourceSpan(start_line=line, end_line=line),
                    replacement=(decision.marker_line + _line_ending(lines, line),),
                )
            )
        elif decision.kind == "delete":
            cuts.extend(record.marker_spans)

    edits.extend(_cut_edits(cuts, lines))
    edits.sort(key=lambda edit: (edit.span.start_line, edit.span.end_line))
    _check_overlap(edits)
    return EditPlan(edits=tuple(edits), diagnostics=tuple(diagnostics))


def apply_edits(lines: list[str], edits: Iterable[Edit]) -> str:
    """Apply ordered edits to the original lines.

    Args:
        lines: Original document lines with endings.
        edits: Edits in ascending, non-overlapping span order.

    Returns:
        The rewritten text.
    """
    output: list[str] = []
    cursor = 1
    for edit in edits:
        output.extend(lines[cursor - 1 : edit.span.start_line - 1])
        output.extend(edit.replacement)
        cursor = max(cursor, edit.span.end_line)
    output.extend(lines[cursor - 1 :])
    return "".join(output)


def _check_overlap(edits: list[Edit]) -> None:
    for previous, current in zip(edits, edits[1:]):
        same_insertion = (
            previous.span.is_empty
            and current.span.is_empty
            and previous.span.start_line == current.span.start_line
        )
        if current.span.start_line < previous.span.end_line or same_insertion:
            raise EditPlanError(
                f"Overlapping edits at lines {previous.span.start_line} "
                f"and {current.span.start_line}"
            )


def _line_ending(lines: list[str], line: int) -> str:
    """Return the newline style to use for a line inserted before ``line``."""
    for index in (line - 1, line - 2):
        if 0 <= index < len(lines):
            text = lines[index]
            if text.endswith("\r\n"):
                return "\r\n"
            if text.endswith("\n"):
                return "\n"
    return "\n"


def _cut_edits(cuts: list[SourceSpan], lines: list[str]) -> list[Edit]:
    """Build edits that cut attribute spans out of their lines.

    Cuts touching the same lines are merged into one edit. A cut also takes
    the horizontal whitespace that follows it, and lines left blank by the
    cut are dropped together with their line ending.
    """
    clusters: list[list[SourceSpan]] = []
    ordered = sorted(cuts, key=lambda span: (span.start_line, span.start_column or 0))
    for cut in ordered:
        if clusters and cut.start_line <= max(s.last_line for s in clusters[-1]):
            clusters[-1].append(cut)
        else:
            clusters.append([cut])

    edits: list[Edit] = []
    for cluster in clusters:
        first = cluster[0].start_line
        last = max(span.last_line for span in cluster)
        block_lines = lines[first - 1 : last]
        block = "".join(block_lines)
        starts = [0]
        for text in block_lines:
            starts.append(starts[-1] + len(text))

        ranges: list[tuple[int, int]] = []
        for span in cluster:
            begin = starts[span.start_line - first] + (span.start_column or 0)
            end = (
                starts[span.last_line - first] + span.end_column
                if span.end_column is not None
                else starts[span.last_line - first + 1]
            )
            while end < len(block) and block[end] in " \t":
                end += 1
            ranges.append((begin, end))

        pieces: list[str] = []
        cursor = 0
        for begin, end in sorted(ranges):
            if begin > cursor:
                pieces.append(block[cursor:begin])
            cursor = max(cursor, end)
        pieces.append(block[cursor:])
        kept = tuple(text for text in split_lines("".join(pieces)) if text.strip())
        edits.append(
            Edit(span=SourceSpan(start_line=first, end_line=last + 1), replacement=kept)
        )
    return edits
