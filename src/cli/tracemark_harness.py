# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Command-line harness to check, fix or strip tracing markers."""

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import TextIO

import pathspec
from rich.console import Console
from rich.logging import RichHandler

from tracemark import (
    ACTIONS,
    BatchRunner,
    CheckReport,
    Configuration,
    ConfigurationError,
    Document,
    DocumentResult,
    Outcome,
    engine,
)
from tracemark.config import LEVELS

logger = logging.getLogger(__name__)

TEXT_LABEL = "<text>"


class ValidationError(RuntimeError):
    """Represent user input validation failure."""


class IgnoreMatcher:
    """Match project paths against .gitignore patterns."""

    def __init__(self, spec: pathspec.GitIgnoreSpec) -> None:
        self._spec = spec

    @classmethod
    def from_project_root(cls, input_root: Path) -> "IgnoreMatcher":
        """Build matcher from root and nested .gitignore files.

        Args:
            input_root: Project root.

        Returns:
            Configured ignore matcher.

        Raises:
            OSError: If .gitignore files cannot be read.
            UnicodeDecodeError: If .gitignore files contain invalid UTF-8.
        """
        patterns: list[str] = []
        for ignore_path in sorted(input_root.rglob(".gitignore")):
            if ".git" in ignore_path.relative_to(input_root).parts[:-1]:
                continue
            base = ignore_path.parent.relative_to(input_root).as_posix()
            if base == ".":
                base = ""
            for line in ignore_path.read_text(encoding="utf-8").splitlines():
                patterns.append(_translate_gitignore_line(line=line, base=base))
        return cls(spec=pathspec.GitIgnoreSpec.from_lines(patterns))

    def matches(self, relative_path: str, is_dir: bool) -> bool:
        """Check whether a project-relative path should be skipped."""
        normalized = relative_path.replace(os.sep, "/").strip("/")
        if not normalized:
            return False
        if self._spec.match_file(normalized):
            return True
        return is_dir and self._spec.match_file(f"{normalized}/")


def configure_logging(level: int = logging.WARNING) -> None:
    """Configure application logging with Rich handler on stderr.

    Args:
        level: Logging severity threshold.
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=Console(stderr=True), rich_tracebacks=True, show_path=False
            )
        ],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(
        prog="tracemark",
        description="Check, insert or remove tracing instrument attributes in Rust code.",
    )
    parser.add_argument("--action", required=True, choices=ACTIONS)
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--text", help="Rust source text to process.")
    source.add_argument(
        "--path", default=".", help="Rust file or directory to process."
    )
    parser.add_argument(
        "--ignore",
        action="append",
        default=[],
        help="Gitignore-style pattern for paths or qualified function names.",
    )
    parser.add_argument(
        "--skip",
        action="append",
        default=[],
        help="Comma-separated names always added to the skip list.",
    )
    parser.add_argument(
        "--suffix", default="", help="Text appended inside the marker arguments."
    )
    parser.add_argument(
        "--macro-path", help="Path written in front of 'instrument', e.g. 'tracing::'."
    )
    parser.add_argument("--level", choices=LEVELS, help="Marker verbosity level.")
    parser.add_argument(
        "--log-instrument",
        action="store_true",
        help="Use the #[log_instrument::instrument] marker form.",
    )
    parser.add_argument(
        "--workers", type=int, default=4, help="Number of worker threads."
    )
    parser.add_argument("--format", choices=("text", "json"), default="text")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logs.")
    return parser


def run(argv: list[str], stdout: TextIO, stderr: TextIO) -> int:
    """Run the tracemark command.

    Args:
        argv: CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code: 0 on success, 1 on usage or I/O errors, 2 when ``check``
        finds mismatches.
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit:
        logger.warning("Argument parsing failed (argv=%s)", argv)
        return 1
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = build_configuration(args)
        runner = BatchRunner(max_workers=args.workers)
    except (ConfigurationError, ValueError) as exc:
        logger.warning("Invalid configuration (error=%s)", exc)
        stderr.write(f"Invalid configuration: {exc}\n")
        return 1

    if args.text is not None:
        outcome = engine.run(args.text, args.action, config)
        return _emit(
            results=[
                DocumentResult(
                    document=Document(path=TEXT_LABEL, text=args.text),
                    outcome=outcome,
                )
            ],
            display={TEXT_LABEL: None},
            args=args,
            stdout=stdout,
            stderr=stderr,
        )

    try:
        root, documents, display = _load_documents(Path(args.path), config)
    except ValidationError as exc:
        logger.warning("Validation failed (error=%s)", exc)
        stderr.write(f"{exc}\n")
        return 1
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Failed reading input (path=%s error=%s)", args.path, exc)
        stderr.write(f"Failed reading input: {exc}\n")
        return 1

    results = runner.run(documents, args.action, config)
    if args.action != "check":
        try:
            written = _write_changes(root, results)
        except OSError as exc:
            logger.warning("Failed writing output (error=%s)", exc)
            stderr.write(f"Failed writing output: {exc}\n")
            return 1
        logger.info(
            "Rewrite completed (path=%s documents=%d written=%d)",
            root,
            len(results),
            written,
        )
    return _emit(
        results=results, display=display, args=args, stdout=stdout, stderr=stderr
    )


def build_configuration(args: argparse.Namespace) -> Configuration:
    """Create the run configuration from parsed arguments.

    Raises:
        ConfigurationError: If options are invalid or conflict.
    """
    return Configuration(
        skip=tuple(parse_names(args.skip)),
        suffix=args.suffix,
        ignore=tuple(args.ignore),
        log_instrument=args.log_instrument,
        level=args.level,
        macro_path=args.macro_path,
    )


def parse_names(values: list[str]) -> list[str]:
    """Flatten repeated comma-separated ``--skip`` values.

    Args:
        values: Raw option values.

    Returns:
        Names in the order given, blanks removed.
    """
    return [
        part.strip() for value in values for part in value.split(",") if part.strip()
    ]


def discover_sources(
    root: Path, matcher: IgnoreMatcher, config: Configuration
) -> list[str]:
    """List project-relative Rust files below ``root`` in sorted order.

    ``.git`` directories, ``build.rs`` files and paths matched by
    ``.gitignore`` or an ``ignore`` pattern are skipped.
    """
    sources: list[str] = []
    queue: list[Path] = [root]
    while queue:
        current = queue.pop(0)
        for child in sorted(current.iterdir(), key=lambda item: item.name):
            relative = child.relative_to(root).as_posix()
            if child.is_dir():
                if child.name == ".git":
                    continue
                if matcher.matches(relative_path=relative, is_dir=True):
                    logger.debug("Skipping ignored directory (path=%s)", relative)
                    continue
                queue.append(child)
                continue
            if child.suffix != ".rs" or child.name == "build.rs":
                continue
            if matcher.matches(relative_path=relative, is_dir=False):
                logger.debug("Skipping gitignored file (path=%s)", relative)
                continue
            if config.is_path_ignored(relative):
                logger.debug("Skipping ignored file (path=%s)", relative)
                continue
            sources.append(relative)
    return sorted(sources)


def _load_documents(
    path: Path, config: Configuration
) -> tuple[Path, list[Document], dict[str, str | None]]:
    """Read every Rust document under ``path``.

    Returns:
        Root directory, documents keyed by project-relative path and the
        display path of each document.

    Raises:
        ValidationError: If the path does not exist.
        OSError: If a file cannot be read.
        UnicodeDecodeError: If a file is not valid UTF-8.
    """
    if not path.exists():
        raise ValidationError(f"Path does not exist: {path}")
    if path.is_file():
        root = path.parent
        relatives = [path.name]
        display: dict[str, str | None] = {path.name: str(path)}
    else:
        root = path
        matcher = IgnoreMatcher.from_project_root(input_root=path)
        relatives = discover_sources(root, matcher, config)
        display = {relative: str(path / relative) for relative in relatives}
    documents = [
        Document(
            path=relative,
            text=_read_source(root / relative),
        )
        for relative in relatives
    ]
    logger.info("Loaded documents (path=%s count=%d)", path, len(documents))
    return root, documents, display


def _read_source(file_path: Path) -> str:
    # Keep \r\n endings intact.
    with file_path.open(encoding="utf-8", newline="") as handle:
        return handle.read()


def _write_changes(root: Path, results: list[DocumentResult]) -> int:
    """Write changed documents back atomically through a temporary file.

    Raises:
        OSError: If writing or replacing a file fails.
    """
    written = 0
    for result in results:
        outcome = result.outcome
        if isinstance(outcome, CheckReport) or not outcome.changed:
            continue
        file_path = root / result.document.path
        tmp_path = file_path.with_suffix(f"{file_path.suffix}.tmp")
        with tmp_path.open("w", encoding="utf-8", newline="") as handle:
            handle.write(outcome.text)
        tmp_path.replace(file_path)
        logger.debug("Wrote document (path=%s)", file_path)
        written += 1
    return written


def _emit(
    results: list[DocumentResult],
    display: dict[str, str | None],
    args: argparse.Namespace,
    stdout: TextIO,
    stderr: TextIO,
) -> int:
    """Write reports to the output streams and compute the exit code."""
    for result in results:
        label = display.get(result.document.path) or TEXT_LABEL
        for warning in result.outcome.warnings:
            stderr.write(f"warning: {label}:{warning.line}: {warning.message}\n")

    failed = any(not result.outcome.ok for result in results)
    if args.format == "json":
        _write_json(results=results, display=display, stdout=stdout)
    elif args.action == "check":
        console = Console(file=stdout, force_terminal=False, color_system="truecolor")
        for result in results:
            _write_mismatches(console, result.outcome, display[result.document.path])
    elif args.text is not None:
        outcome = results[0].outcome
        if not isinstance(outcome, CheckReport):
            stdout.write(outcome.text)
    return 2 if failed else 0


def _write_mismatches(console: Console, outcome: Outcome, label: str | None) -> None:
    if not isinstance(outcome, CheckReport):
        return
    for mismatch in outcome.mismatches:
        location = f"{mismatch.line}:{mismatch.column}"
        if label is not None:
            location = f"{label}:{location}"
        console.print(
            f"{mismatch.kind.capitalize()} instrumentation at {location}.",
            markup=False,
            highlight=False,
            emoji=False,
            soft_wrap=True,
        )


def _write_json(
    results: list[DocumentResult], display: dict[str, str | None], stdout: TextIO
) -> None:
    """Write per-document reports in JSON format."""
    documents = []
    for result in results:
        outcome = result.outcome
        entry: dict[str, object] = {
            "path": display[result.document.path],
            "warnings": [asdict(warning) for warning in outcome.warnings],
        }
        if isinstance(outcome, CheckReport):
            entry["mismatches"] = [asdict(mismatch) for mismatch in outcome.mismatches]
        else:
            entry["changed"] = outcome.changed
        documents.append(entry)
    payload = {
        "documents": documents,
        "ok": all(result.outcome.ok for result in results),
    }
    console = Console(file=stdout, force_terminal=False, color_system="truecolor")
    console.print(
        json.dumps(payload, indent=2, sort_keys=True),
        markup=False,
        highlight=False,
        emoji=False,
        soft_wrap=True,
    )


def _translate_gitignore_line(line: str, base: str) -> str:
    """Translate one .gitignore line to a root-relative pattern.

    Args:
        line: Original .gitignore line.
        base: Parent directory relative to project root.

    Returns:
        Root-relative pattern line.
    """
    if not base or not line or line.lstrip().startswith("#"):
        return line
    if line.startswith(r"\!") or line.startswith(r"\#"):
        return line
    is_negation = line.startswith("!")
    pattern = line[1:] if is_negation else line
    anchored = pattern.startswith("/")
    normalized_pattern = pattern[1:] if anchored else pattern
    prefixed = f"{base}/{normalized_pattern}" if normalized_pattern else base
    if anchored:
        prefixed = f"/{prefixed}"
    return f"!{prefixed}" if is_negation else prefixed


def main() -> None:
    """Run tracemark CLI."""
    configure_logging()
    exit_code = run(sys.argv[1:], stdout=sys.stdout, stderr=sys.stderr)
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
