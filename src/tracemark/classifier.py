# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Eligibility and context classification of located functions."""

import logging
from collections.abc import Iterable

from tracemark.config import Configuration
from tracemark.locator import Attribute, LocatedFunction, Scope
from tracemark.model import FunctionRecord

logger = logging.getLogger(__name__)

MARKER_SEGMENT = "instrument"
OPT_OUT_SEGMENT = "clippy_tracing_skip"
TEST_FUNCTION_SEGMENTS: frozenset[str] = frozenset({"test", "bench", "proof"})


def classify(
    functions: Iterable[LocatedFunction],
    config: Configuration,
    path: str | None = None,
) -> list[FunctionRecord]:
    """Compute the policy flags of every located function.

    Args:
        functions: Functions in source order.
        config: Run configuration.
        path: Document path used for ``ignore`` matching, if any.

    Returns:
        One record per function, in the same order.
    """
    document_ignored = config.is_path_ignored(path)
    if document_ignored:
        logger.debug("Document matches an ignore pattern (path=%s)", path)
    records: list[FunctionRecord] = []
    for function in functions:
        markers = tuple(
            attribute.span
            for attribute in function.attributes
            if is_marker(attribute)
        )
        records.append(
            FunctionRecord(
                name=function.qualified_name,
                parameters=function.parameters,
                signature_span=function.signature_span,
                body_span=function.body_span,
                existing_marker_span=markers[0] if markers else None,
                marker_spans=markers,
                in_test_module=in_test_module(function.scopes)
                or any(
                    is_test_module_attribute(attribute)
                    for attribute in function.attributes
                ),
                is_test_function=any(
                    is_test_attribute(attribute) for attribute in function.attributes
                ),
                is_opted_out=any(
                    attribute.last_segment == OPT_OUT_SEGMENT
                    for attribute in function.attributes
                ),
                is_const="const" in function.qualifiers,
                is_ignored=document_ignored
                or config.is_function_ignored(function.qualified_name),
                depth=function.depth,
                indent=function.indent,
                line_aligned=function.line_aligned,
            )
        )
    return records


def is_marker(attribute: Attribute) -> bool:
    """Return whether an attribute is a marker in any accepted form.

    ``#[instrument]``, ``#[tracing::instrument(...)]`` and
    ``#[log_instrument::instrument]`` all qualify.
    """
    return not attribute.inner and attribute.last_segment == MARKER_SEGMENT


def is_test_attribute(attribute: Attribute) -> bool:
    """Return whether an attribute marks a test case (``#[test]``, ``#[kani::proof]``)."""
    return attribute.last_segment in TEST_FUNCTION_SEGMENTS


def is_test_module_attribute(attribute: Attribute) -> bool:
    """Return whether an attribute gates its item on ``cfg(test)``."""
    if attribute.path != "cfg":
        return False
    return "test" in attribute.arguments and "not" not in attribute.arguments


def in_test_module(scopes: tuple[Scope, ...]) -> bool:
    """Return whether any enclosing scope is gated on ``cfg(test)``.

    Scopes are scanned outward from the nearest one.
    """
    for scope in reversed(scopes):
        if any(is_test_module_attribute(attribute) for attribute in scope.attributes):
            return True
    return False
