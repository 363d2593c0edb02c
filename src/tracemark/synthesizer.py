# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Per-function decisions and marker attribute synthesis."""

import logging
from dataclasses import dataclass
from typing import Literal

from tracemark.config import Configuration
from tracemark.model import Action, FunctionRecord

logger = logging.getLogger(__name__)

DecisionKind = Literal["keep", "insert", "delete", "missing", "unwanted"]


@dataclass(frozen=True)
class Decision:
    """Describe what happens to one function under the requested action.

    Attributes:
        kind: ``insert``/``delete`` for rewrites, ``missing``/``unwanted``
            for check mismatches, ``keep`` when nothing happens.
        record: The classified function.
        marker_line: Synthesized marker line for ``insert``, without newline.
    """

    kind: DecisionKind
    record: FunctionRecord
    marker_line: str | None = None


def decide(record: FunctionRecord, action: Action, config: Configuration) -> Decision:
    """Decide the fate of one function.

    Args:
        record: Classified function.
        action: Requested action.
        config: Run configuration.

    Returns:
        The decision for this function.
    """
    if record.is_ignored:
        return Decision(kind="keep", record=record)
    has_marker = record.existing_marker_span is not None
    if action == "check":
        if record.is_eligible and not has_marker:
            return Decision(kind="missing", record=record)
        if record.is_exempt and has_marker:
            return Decision(kind="unwanted", record=record)
        return Decision(kind="keep", record=record)
    if action == "fix":
        if record.is_eligible and not has_marker:
            return Decision(
                kind="insert",
                record=record,
                marker_line=synthesize_marker(record, config),
            )
        return Decision(kind="keep", record=record)
    if action == "strip":
        if has_marker:
            return Decision(kind="delete", record=record)
        return Decision(kind="keep", record=record)
    raise ValueError(f"Unsupported action: {action}")


def synthesize_marker(record: FunctionRecord, config: Configuration) -> str:
    """Build the marker line for a function, indented like its signature.

    The tracing form is
    ``#[tracing::instrument(level = "trace", skip(a, b))]``; the log form is
    ``#[log_instrument::instrument]``. A configured suffix is appended inside
    the argument list.
    """
    path = f"{config.marker_path}instrument"
    if config.log_instrument:
        arguments = config.suffix
    else:
        names = ", ".join(skip_names(record.parameters, config.skip))
        arguments = f'level = "{config.marker_level}", skip({names})'
        if config.suffix:
            arguments = f"{arguments}, {config.suffix}"
    if arguments:
        return f"{record.indent}#[{path}({arguments})]"
    return f"{record.indent}#[{path}]"


def skip_names(parameters: tuple[str, ...], forced: tuple[str, ...]) -> list[str]:
    """Merge detected parameter names with configured skip names.

    Detected names keep their declaration order; configured names that are
    not parameters follow in configured order. A configured name that is also
    a parameter is not repeated.
    """
    names = list(parameters)
    names.extend(name for name in forced if name not in parameters)
    return names
