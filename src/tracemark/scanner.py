# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Lexical scanner for Rust source text.

The scanner only knows enough of the grammar to keep brace nesting, attribute
syntax and line positions honest: string, character and comment regions are
emitted as opaque tokens so that nothing inside them is mistaken for code.
"""

import logging
from dataclasses import dataclass
from typing import Literal

from tracemark.model import Diagnostic

logger = logging.getLogger(__name__)

TokenKind = Literal["ident", "lifetime", "literal", "punct", "open", "close", "comment"]

_OPEN = "{(["
_CLOSE = "})]"
_MULTI_PUNCT = ("::", "->", "=>")
_STRING_PREFIXES = {"b", "c"}
_RAW_STRING_PREFIXES = {"r", "br", "cr"}


@dataclass(frozen=True)
class Token:
    """Represent one lexical unit.

    Attributes:
        kind: Token category.
        text: Exact source text of the token.
        line: Start line (1-based).
        column: Start column (0-based).
        end_line: Line holding the token's last character.
        end_column: Column after the token's last character.
        offset: Start offset in the source text.
        end_offset: End offset (exclusive) in the source text.
    """

    kind: TokenKind
    text: str
    line: int
    column: int
    end_line: int
    end_column: int
    offset: int
    end_offset: int

    def is_punct(self, text: str) -> bool:
        """Return whether the token is the given punctuation."""
        return self.kind == "punct" and self.text == text

    def is_open(self, text: str) -> bool:
        """Return whether the token opens the given delimiter."""
        return self.kind == "open" and self.text == text

    def is_ident(self, text: str | None = None) -> bool:
        """Return whether the token is an identifier, optionally a given one."""
        return self.kind == "ident" and (text is None or self.text == text)


@dataclass(frozen=True)
class ScanResult:
    """Store the token stream and scanner warnings for one document."""

    text: str
    tokens: tuple[Token, ...]
    diagnostics: tuple[Diagnostic, ...]

    @property
    def code_tokens(self) -> tuple[Token, ...]:
        """Return the tokens that take part in syntax (comments removed)."""
        return tuple(token for token in self.tokens if token.kind != "comment")


def scan_source(text: str) -> ScanResult:
    """Tokenize Rust source text.

    Args:
        text: Raw source text.

    Returns:
        Tokens in source order and recoverable scanner warnings.
    """
    scanner = _Scanner(text)
    scanner.run()
    return ScanResult(
        text=text,
        tokens=tuple(scanner.tokens),
        diagnostics=tuple(scanner.diagnostics),
    )


def _is_ident_start(char: str) -> bool:
    return char == "_" or char.isalpha()


def _is_ident_char(char: str) -> bool:
    return char == "_" or char.isalnum()


class _Scanner:
    """Walk the source text once and collect tokens."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._length = len(text)
        self._pos = 0
        self._line = 1
        self._line_start = 0
        self.tokens: list[Token] = []
        self.diagnostics: list[Diagnostic] = []

    def run(self) -> None:
        text = self._text
        if text.startswith("#!") and not text[2:].lstrip(" \t").startswith("["):
            end = text.find("\n")
            self._emit("comment", self._length if end == -1 else end)

        while self._pos < self._length:
            char = text[self._pos]
            if char == "\n":
                self._pos += 1
                self._line += 1
                self._line_start = self._pos
                continue
            if char.isspace():
                self._pos += 1
                continue
            if text.startswith("//", self._pos):
                end = text.find("\n", self._pos)
                self._emit("comment", self._length if end == -1 else end)
                continue
            if text.startswith("/*", self._pos):
                self._scan_block_comment()
                continue
            if char == '"':
                self._scan_string(self._pos)
                continue
            if char == "'":
                self._scan_quote()
                continue
            if _is_ident_start(char):
                self._scan_word()
                continue
            if char.isdigit():
                end = self._pos + 1
                while end < self._length and _is_ident_char(text[end]):
                    end += 1
                self._emit("literal", end)
                continue
            if char in _OPEN:
                self._emit("open", self._pos + 1)
                continue
            if char in _CLOSE:
                self._emit("close", self._pos + 1)
                continue
            for punct in _MULTI_PUNCT:
                if text.startswith(punct, self._pos):
                    self._emit("punct", self._pos + len(punct))
                    break
            else:
                self._emit("punct", self._pos + 1)

    def _emit(self, kind: TokenKind, end: int) -> None:
        """Emit the token spanning ``[pos, end)`` and advance past it."""
        start = self._pos
        line = self._line
        column = start - self._line_start
        chunk = self._text[start:end]
        newlines = chunk.count("\n")
        if newlines:
            self._line += newlines
            self._line_start = start + chunk.rindex("\n") + 1
        self.tokens.append(
            Token(
                kind=kind,
                text=chunk,
                line=line,
                column=column,
                end_line=self._line,
                end_column=end - self._line_start,
                offset=start,
                end_offset=end,
            )
        )
        self._pos = end

    def _unterminated(self, kind: TokenKind, what: str) -> None:
        line = self._line
        logger.warning(
            "Unterminated %s; treating the rest of the input as opaque (line=%s)",
            what,
            line,
        )
        self.diagnostics.append(
            Diagnostic(
                kind="malformed_input",
                line=line,
                message=f"unterminated {what} starting at line {line}",
            )
        )
        self._emit(kind, self._length)

    def _scan_block_comment(self) -> None:
        text = self._text
        depth = 0
        index = self._pos
        while index < self._length:
            if text.startswith("/*", index):
                depth += 1
                index += 2
            elif text.startswith("*/", index):
                depth -= 1
                index += 2
                if depth == 0:
                    self._emit("comment", index)
                    return
            else:
                index += 1
        self._unterminated("comment", "block comment")

    def _scan_string(self, start: int) -> None:
        """Scan a quoted string whose opening quote is at ``start``."""
        text = self._text
        index = start + 1
        while index < self._length:
            char = text[index]
            if char == "\\":
                index += 2
                continue
            if char == '"':
                self._emit("literal", index + 1)
                return
            index += 1
        self._unterminated("literal", "string literal")

    def _scan_raw_string(self, quote_start: int, hashes: int) -> None:
        closing = '"' + "#" * hashes
        end = self._text.find(closing, quote_start + 1)
        if end == -1:
            self._unterminated("literal", "raw string literal")
            return
        self._emit("literal", end + len(closing))

    def _scan_quote(self) -> None:
        """Scan a character literal, a lifetime or a lone quote."""
        text = self._text
        start = self._pos
        next_char = text[start + 1] if start + 1 < self._length else ""
        if next_char == "\\":
            end = text.find("'", start + 3)
            newline = text.find("\n", start)
            if end == -1 or (newline != -1 and newline < end):
                self._unterminated("literal", "character literal")
                return
            self._emit("literal", end + 1)
            return
        if next_char and next_char != "\n" and text.startswith("'", start + 2):
            self._emit("literal", start + 3)
            return
        if next_char and _is_ident_start(next_char):
            end = start + 1
            while end < self._length and _is_ident_char(text[end]):
                end += 1
            self._emit("lifetime", end)
            return
        self._emit("punct", start + 1)

    def _scan_word(self) -> None:
        """Scan an identifier, handling literal prefixes and raw identifiers."""
        text = self._text
        start = self._pos
        end = start + 1
        while end < self._length and _is_ident_char(text[end]):
            end += 1
        word = text[start:end]
        follower = text[end] if end < self._length else ""

        if word in _RAW_STRING_PREFIXES and follower in {'"', "#"}:
            hashes = 0
            while end + hashes < self._length and text[end + hashes] == "#":
                hashes += 1
            quote = end + hashes
            if quote < self._length and text[quote] == '"':
                self._scan_raw_string(quote, hashes)
                return
            if word == "r" and hashes == 1 and quote < self._length:
                if _is_ident_start(text[quote]):
                    raw_end = quote + 1
                    while raw_end < self._length and _is_ident_char(text[raw_end]):
                        raw_end += 1
                    self._emit("ident", raw_end)
                    return
        if word in _STRING_PREFIXES and follower == '"':
            self._scan_string(end)
            return
        if word == "b" and follower == "'":
            self._scan_byte_char(end)
            return
        self._emit("ident", end)

    def _scan_byte_char(self, quote: int) -> None:
        text = self._text
        if text.startswith("\\", quote + 1):
            end = text.find("'", quote + 3)
        elif text.startswith("'", quote + 2):
            end = quote + 2
        else:
            end = -1
        if end == -1:
            self._unterminated("literal", "byte literal")
            return
        self._emit("literal", end + 1)
