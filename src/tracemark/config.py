# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Run configuration for the instrumentation pipeline."""

import logging
from dataclasses import dataclass, field

import pathspec

logger = logging.getLogger(__name__)

LEVELS: tuple[str, ...] = ("trace", "debug", "info", "warn", "error")
DEFAULT_LEVEL = "trace"
TRACING_MACRO_PATH = "tracing::"
LOG_MACRO_PATH = "log_instrument::"


class ConfigurationError(ValueError):
    """Represent invalid or conflicting run options."""


@dataclass(frozen=True)
class Configuration:
    """Immutable options shared by every document of one run.

    Attributes:
        skip: Names always added to a synthesized skip list.
        suffix: Literal text appended inside the marker's argument list.
        ignore: Gitignore-style patterns matched against document paths and
            qualified function names (``tests::helper`` is matched as
            ``tests/helper``).
        log_instrument: Select the ``log_instrument`` marker form.
        level: Verbosity level of the tracing form; ``None`` means ``trace``.
        macro_path: Path written in front of ``instrument``; ``None`` picks the
            default of the selected form.

    Raises:
        ConfigurationError: If an option is invalid or options conflict.
    """

    skip: tuple[str, ...] = ()
    suffix: str = ""
    ignore: tuple[str, ...] = ()
    log_instrument: bool = False
    level: str | None = None
    macro_path: str | None = None
    _ignore_spec: pathspec.GitIgnoreSpec = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "skip", _unique(self.skip))
        object.__setattr__(self, "ignore", tuple(self.ignore))
        self._validate()
        try:
            spec = pathspec.GitIgnoreSpec.from_lines(self.ignore)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid ignore pattern: {exc}") from exc
        object.__setattr__(self, "_ignore_spec", spec)

    def _validate(self) -> None:
        for name in self.skip:
            if not name.removeprefix("r#").isidentifier():
                raise ConfigurationError(f"Skip name is not an identifier: {name!r}")
        for pattern in self.ignore:
            if not pattern.strip():
                raise ConfigurationError("Ignore patterns must not be empty")
            if pattern.lstrip().startswith("#"):
                raise ConfigurationError(
                    f"Ignore pattern would be read as a comment: {pattern!r}"
                )
        if "\n" in self.suffix or "\r" in self.suffix:
            raise ConfigurationError("Suffix must fit on a single line")
        if self.level is not None:
            if self.log_instrument:
                raise ConfigurationError(
                    "A level cannot be combined with the log_instrument marker form"
                )
            if self.level not in LEVELS:
                raise ConfigurationError(
                    f"Unsupported level {self.level!r}; expected one of {', '.join(LEVELS)}"
                )
        if self.macro_path and not self.macro_path.endswith("::"):
            raise ConfigurationError(
                f"Macro path must end with '::': {self.macro_path!r}"
            )

    @property
    def marker_level(self) -> str:
        """Return the level written into the tracing marker form."""
        return self.level or DEFAULT_LEVEL

    @property
    def marker_path(self) -> str:
        """Return the path written in front of ``instrument``."""
        if self.macro_path is not None:
            return self.macro_path
        return LOG_MACRO_PATH if self.log_instrument else TRACING_MACRO_PATH

    def is_path_ignored(self, path: str | None) -> bool:
        """Check whether a document path matches an ignore pattern.

        Args:
            path: Project-relative POSIX path, or ``None`` for raw text.

        Returns:
            True when the document should not be processed.
        """
        if not path or not self.ignore:
            return False
        return self._ignore_spec.match_file(path.strip("/"))

    def is_function_ignored(self, qualified_name: str) -> bool:
        """Check whether a qualified function name matches an ignore pattern."""
        if not self.ignore:
            return False
        return self._ignore_spec.match_file(qualified_name.replace("::", "/"))


def _unique(names: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    seen: list[str] = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return tuple(seen)
