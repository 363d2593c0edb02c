# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Unit tests for decisions and marker synthesis."""

import pytest

from tracemark.classifier import classify
from tracemark.config import Configuration
from tracemark.locator import locate_functions
from tracemark.model import FunctionRecord
from tracemark.scanner import scan_source
from tracemark.synthesizer import decide, skip_names, synthesize_marker


def _record(text: str, config: Configuration | None = None) -> FunctionRecord:
    functions = locate_functions(scan_source(text)).functions
    return classify(functions, config or Configuration())[0]


def test_ph2_syn_001_default_form_lists_parameters_in_order() -> None:
    record = _record("fn add(lhs: i32, rhs: i32) -> i32 { lhs + rhs }")

    assert (
        synthesize_marker(record, Configuration())
        == '#[tracing::instrument(level = "trace", skip(lhs, rhs))]'
    )


def test_ph2_syn_002_empty_parameter_list_yields_empty_skip() -> None:
    record = _record("impl A {\n    fn main() { }\n}")

    assert (
        synthesize_marker(record, Configuration())
        == '    #[tracing::instrument(level = "trace", skip())]'
    )


def test_ph2_syn_003_log_form_and_suffix() -> None:
    record = _record("fn run(ctx: Ctx) {}")

    assert (
        synthesize_marker(record, Configuration(log_instrument=True))
        == "#[log_instrument::instrument]"
    )
    assert (
        synthesize_marker(record, Configuration(suffix="ret"))
        == '#[tracing::instrument(level = "trace", skip(ctx), ret)]'
    )
    assert (
        synthesize_marker(record, Configuration(log_instrument=True, suffix="ret"))
        == "#[log_instrument::instrument(ret)]"
    )


def test_ph2_syn_004_macro_path_and_level_are_configurable() -> None:
    record = _record("fn run(ctx: Ctx) {}")

    assert (
        synthesize_marker(record, Configuration(macro_path="", level="debug"))
        == '#[instrument(level = "debug", skip(ctx))]'
    )
    assert (
        synthesize_marker(record, Configuration(macro_path="my::custom::suffix::"))
        == '#[my::custom::suffix::instrument(level = "trace", skip(ctx))]'
    )


def test_ph2_syn_005_configured_skip_names_are_additive() -> None:
    assert skip_names(("self", "value"), ("value", "ctx")) == ["self", "value", "ctx"]
    assert skip_names((), ("ctx",)) == ["ctx"]


def test_ph2_syn_006_check_decisions_follow_exemption() -> None:
    eligible = _record("fn work() {}")
    marked_test = _record("#[instrument]\n#[test]\nfn case() {}")
    ignored = _record("fn work() {}", Configuration(ignore=("work",)))

    assert decide(eligible, "check", Configuration()).kind == "missing"
    assert decide(marked_test, "check", Configuration()).kind == "unwanted"
    assert decide(ignored, "check", Configuration()).kind == "keep"


def test_ph2_syn_007_fix_and_strip_decisions() -> None:
    bare = _record("fn work() {}")
    marked = _record("#[instrument]\nfn work() {}")
    test_case = _record("#[test]\nfn case() {}")

    insert = decide(bare, "fix", Configuration())
    assert insert.kind == "insert"
    assert insert.marker_line == '#[tracing::instrument(level = "trace", skip())]'
    assert decide(marked, "fix", Configuration()).kind == "keep"
    assert decide(test_case, "fix", Configuration()).kind == "keep"
    assert decide(marked, "strip", Configuration()).kind == "delete"
    assert decide(bare, "strip", Configuration()).kind == "keep"


def test_ph2_syn_008_unknown_action_is_rejected() -> None:
    with pytest.raises(ValueError):
        decide(_record("fn work() {}"), "format", Configuration())  # type: ignore[arg-type]
