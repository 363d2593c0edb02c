# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Single-document entry point running the full pipeline."""

import logging

from tracemark.classifier import classify
from tracemark.config import Configuration
from tracemark.locator import locate_functions
from tracemark.model import ACTIONS, Action
from tracemark.planner import apply_edits, plan_edits, split_lines
from tracemark.reporter import Outcome, report_check, report_rewrite
from tracemark.scanner import scan_source
from tracemark.synthesizer import decide

logger = logging.getLogger(__name__)


def run(
    text: str,
    action: Action,
    config: Configuration | None = None,
    path: str | None = None,
) -> Outcome:
    """Check, fix or strip tracing markers in one Rust document.

    Args:
        text: Rust source text.
        action: ``check``, ``fix`` or ``strip``.
        config: Run configuration; defaults apply when omitted.
        path: Document path for reports and ``ignore`` matching.

    Returns:
        A ``CheckReport`` for ``check``, a ``RewriteReport`` otherwise.

    Raises:
        ValueError: If ``action`` is unknown.
    """
    if action not in ACTIONS:
        raise ValueError(f"Unsupported action: {action}")
    config = config or Configuration()

    scan = scan_source(text)
    located = locate_functions(scan)
    records = classify(located.functions, config, path=path)
    decisions = [decide(record, action, config) for record in records]
    warnings = [*scan.diagnostics, *located.diagnostics]
    logger.debug(
        "Processed document (path=%s functions=%d warnings=%d)",
        path,
        len(records),
        len(warnings),
    )

    if action == "check":
        return report_check(decisions, warnings, path=path)

    lines = split_lines(text)
    plan = plan_edits(decisions, lines)
    rewritten = apply_edits(lines, plan.edits) if plan.edits else text
    return report_rewrite(text, rewritten, [*warnings, *plan.diagnostics], path=path)
