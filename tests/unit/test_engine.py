# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""End-to-end tests for the single-document pipeline."""

import pytest

from tracemark import CheckReport, Configuration, RewriteReport, engine

MAIN_ADD = "fn main() { }\nfn add(lhs: i32, rhs: i32) {\n    lhs + rhs\n}"

README = """fn main() {
    println!("Hello World!");
}
fn add(lhs: i32, rhs: i32) -> i32 {
    lhs + rhs
}
#[cfg(tests)]
mod tests {
    fn sub(lhs: i32, rhs: i32) -> i32 {
        lhs - rhs
    }
    #[test]
    fn test_one() {
        assert_eq!(add(1,1), sub(2, 1));
    }
}"""

README_FIXED = """#[tracing::instrument(level = "trace", skip())]
fn main() {
    println!("Hello World!");
}
#[tracing::instrument(level = "trace", skip(lhs, rhs))]
fn add(lhs: i32, rhs: i32) -> i32 {
    lhs + rhs
}
#[cfg(tests)]
mod tests {
    #[tracing::instrument(level = "trace", skip(lhs, rhs))]
    fn sub(lhs: i32, rhs: i32) -> i32 {
        lhs - rhs
    }
    #[test]
    fn test_one() {
        assert_eq!(add(1,1), sub(2, 1));
    }
}"""


def _fix(text: str, config: Configuration | None = None) -> str:
    report = engine.run(text, "fix", config)
    assert isinstance(report, RewriteReport)
    return report.text


def _strip(text: str, config: Configuration | None = None) -> str:
    report = engine.run(text, "strip", config)
    assert isinstance(report, RewriteReport)
    return report.text


def _check(text: str, config: Configuration | None = None) -> CheckReport:
    report = engine.run(text, "check", config)
    assert isinstance(report, CheckReport)
    return report


def test_ph3_eng_001_fix_inserts_markers_above_each_function() -> None:
    assert _fix(MAIN_ADD) == (
        '#[tracing::instrument(level = "trace", skip())]\n'
        "fn main() { }\n"
        '#[tracing::instrument(level = "trace", skip(lhs, rhs))]\n'
        "fn add(lhs: i32, rhs: i32) {\n"
        "    lhs + rhs\n"
        "}"
    )


def test_ph3_eng_002_fix_indents_marker_like_the_signature() -> None:
    assert _fix("impl Unit {\n    fn one() {}\n}") == (
        "impl Unit {\n"
        '    #[tracing::instrument(level = "trace", skip())]\n'
        "    fn one() {}\n"
        "}"
    )


def test_ph3_eng_003_check_reports_signature_start_positions() -> None:
    top = _check("fn main() { }")
    nested = _check("impl One {\n    fn one() { }\n}")

    assert not top.ok
    assert [(m.kind, m.line, m.column) for m in top.mismatches] == [("missing", 1, 0)]
    assert [(m.line, m.column, m.name) for m in nested.mismatches] == [
        (2, 4, "One::one")
    ]


def test_ph3_eng_004_check_accepts_marked_and_test_functions() -> None:
    report = _check(
        '#[tracing::instrument(level = "trace", skip())]\nfn main() { }\n'
        "#[test]\nfn my_test() { }"
    )

    assert report.ok
    assert report.mismatches == ()


def test_ph3_eng_005_readme_scenario_round_trips() -> None:
    report = _check(README)
    assert [(m.line, m.column) for m in report.mismatches] == [(1, 0), (4, 0), (9, 4)]

    fixed = _fix(README)
    assert fixed == README_FIXED
    assert _check(fixed).ok
    assert _strip(fixed) == README


def test_ph3_eng_006_fix_and_strip_are_idempotent() -> None:
    fixed = _fix(README)
    stripped = _strip(README_FIXED)

    assert _fix(fixed) == fixed
    assert _strip(stripped) == stripped
    fixed_report = engine.run(fixed, "fix")
    assert isinstance(fixed_report, RewriteReport)
    assert fixed_report.changed is False


def test_ph3_eng_007_strip_removes_multi_line_and_same_line_markers() -> None:
    multi = '#[tracing::instrument(    \nlevel = "trace",\n    skip()\n)]\nfn main() { }'
    same_line = "#[instrument] fn main() { }\n"

    assert _strip(multi) == "fn main() { }"
    assert _strip(same_line) == "fn main() { }\n"


def test_ph3_eng_008_exempt_functions_with_markers_are_unwanted() -> None:
    text = (
        "#[cfg(test)]\n"
        "mod tests {\n"
        "    #[instrument]\n"
        "    fn helper() {}\n"
        "}\n"
        "#[instrument]\n"
        "const fn fixed() -> u8 { 1 }\n"
    )

    report = _check(text)

    assert [(m.kind, m.line) for m in report.mismatches] == [
        ("unwanted", 4),
        ("unwanted", 7),
    ]
    assert _strip(text) == (
        "#[cfg(test)]\nmod tests {\n    fn helper() {}\n}\nconst fn fixed() -> u8 { 1 }\n"
    )


def test_ph3_eng_009_fix_never_touches_exempt_functions() -> None:
    text = (
        "#[test]\nfn case() {}\n"
        "#[clippy_tracing_skip]\nfn opted_out() {}\n"
        "const fn constant() {}\n"
        "#[cfg(test)]\nmod tests {\n    fn helper() {}\n}\n"
    )

    assert _fix(text) == text


def test_ph3_eng_010_skip_override_adds_configured_names() -> None:
    text = (
        "impl Server {\n"
        "    fn handle(&self, ctx: Context, n: u32) {}\n"
        "}\n"
        "fn other(value: u8) {}\n"
    )
    config = Configuration(skip=("ctx",))

    assert _fix(text, config) == (
        "impl Server {\n"
        '    #[tracing::instrument(level = "trace", skip(self, ctx, n))]\n'
        "    fn handle(&self, ctx: Context, n: u32) {}\n"
        "}\n"
        '#[tracing::instrument(level = "trace", skip(value, ctx))]\n'
        "fn other(value: u8) {}\n"
    )


def test_ph3_eng_011_multi_line_signature_gets_one_marker_above_first_line() -> None:
    text = (
        "pub fn connect(\n"
        "    host: &str,\n"
        "    port: u16,\n"
        ") -> Result<(), Error> {\n"
        "    Ok(())\n"
        "}\n"
    )

    assert _fix(text) == (
        '#[tracing::instrument(level = "trace", skip(host, port))]\n' + text
    )


def test_ph3_eng_012_strip_of_fix_restores_original_text() -> None:
    text = (
        "// leading comment\r\n"
        "/// Documented.\r\n"
        "#[inline]\r\n"
        "pub(crate) async fn run<'a, T>(input: &'a T) -> u8\r\n"
        "where\r\n"
        "    T: Send,\r\n"
        "{\r\n"
        '    let s = "fn fake() {}";\r\n'
        "    0\r\n"
        "}\r\n"
    )

    fixed = _fix(text)

    assert fixed == text.replace(
        "pub(crate)",
        '#[tracing::instrument(level = "trace", skip(input))]\r\npub(crate)',
    )
    assert _strip(fixed) == text


def test_ph3_eng_013_ignored_functions_are_left_alone() -> None:
    text = "fn keep() {}\nfn generated_code() {}\n"
    config = Configuration(ignore=("generated_*",))

    assert [m.name for m in _check(text, config).mismatches] == ["keep"]
    assert _fix(text, config) == (
        '#[tracing::instrument(level = "trace", skip())]\nfn keep() {}\n'
        "fn generated_code() {}\n"
    )


def test_ph3_eng_014_log_instrument_form() -> None:
    fixed = _fix(MAIN_ADD, Configuration(log_instrument=True))

    assert fixed == (
        "#[log_instrument::instrument]\nfn main() { }\n"
        "#[log_instrument::instrument]\nfn add(lhs: i32, rhs: i32) {\n    lhs + rhs\n}"
    )
    assert _check(fixed).ok


def test_ph3_eng_015_malformed_input_is_processed_best_effort() -> None:
    report = engine.run('fn a() {}\nfn b() { let s = "oops }\n', "fix")

    assert isinstance(report, RewriteReport)
    assert report.text.startswith(
        '#[tracing::instrument(level = "trace", skip())]\nfn a() {}\n'
    )
    assert report.warnings
    assert {warning.kind for warning in report.warnings} == {"malformed_input"}


def test_ph3_eng_016_unplaceable_function_is_warned_on_fix() -> None:
    report = engine.run("struct S; fn work() {}\n", "fix")

    assert isinstance(report, RewriteReport)
    assert report.changed is False
    assert [warning.kind for warning in report.warnings] == ["unplaceable_marker"]
    assert [m.line for m in _check("struct S; fn work() {}\n").mismatches] == [1]


def test_ph3_eng_017_unknown_action_raises_value_error() -> None:
    with pytest.raises(ValueError):
        engine.run("fn a() {}", "lint")  # type: ignore[arg-type]


def test_ph3_eng_018_fix_never_inserts_into_a_block_comment() -> None:
    text = "/* header\n */ fn foo() {}\n"
    report = engine.run(text, "fix")

    assert isinstance(report, RewriteReport)
    assert report.text == text
    assert report.changed is False
    assert report.ok
    assert [warning.kind for warning in report.warnings] == ["unplaceable_marker"]
    assert _fix(_fix(text)) == text


def test_ph3_eng_019_shift_in_array_length_parameter_is_checked() -> None:
    report = _check("fn f(x: [u8; 1 << 2]) {}\n")

    assert [(m.kind, m.line, m.column) for m in report.mismatches] == [
        ("missing", 1, 0)
    ]
    assert _fix("fn f(x: [u8; 1 << 2]) {}\n") == (
        '#[tracing::instrument(level = "trace", skip(x))]\n'
        "fn f(x: [u8; 1 << 2]) {}\n"
    )


def test_ph3_eng_020_function_gated_on_cfg_test_is_exempt() -> None:
    text = "#[cfg(test)]\nfn helper() {}\n"

    assert _check(text).mismatches == ()
    assert _fix(text) == text
