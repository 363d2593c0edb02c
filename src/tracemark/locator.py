# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Locate function definitions in a Rust token stream."""

import logging
from dataclasses import dataclass, field
from typing import Literal

from tracemark.model import Diagnostic, DiagnosticKind, SourceSpan
from tracemark.scanner import ScanResult, Token

logger = logging.getLogger(__name__)

ScopeKind = Literal["file", "mod", "impl", "trait", "fn", "block", "macro", "group"]

QUALIFIERS: frozenset[str] = frozenset(
    {"pub", "const", "async", "unsafe", "extern", "default", "safe"}
)
_NAMED_SCOPES: frozenset[str] = frozenset({"mod", "impl", "trait", "fn"})
_MATCHING_OPEN: dict[str, str] = {"}": "{", ")": "(", "]": "["}
_ANGLE_CONTEXTS: frozenset[str] = frozenset({"(", "<"})
_ITEM_QUALIFIERS: frozenset[str] = QUALIFIERS | {"auto"}
_KEYWORDS: frozenset[str] = frozenset(
    "as break continue else for if in let loop match move return while yield".split()
)


@dataclass(frozen=True)
class Attribute:
    """Represent one ``#[...]`` or ``#![...]`` attribute.

    Attributes:
        path: Attribute path, e.g. ``tracing::instrument``.
        arguments: Token texts between the path and the closing bracket.
        inner: Whether this is an inner (``#!``) attribute.
        span: Location of the attribute from ``#`` to ``]``.
        text: Exact source text of the attribute.
    """

    path: str
    arguments: tuple[str, ...]
    inner: bool
    span: SourceSpan
    text: str

    @property
    def last_segment(self) -> str:
        """Return the final path segment, e.g. ``instrument``."""
        return self.path.rsplit("::", 1)[-1]


@dataclass(frozen=True)
class Scope:
    """Represent one enclosing block of a function."""

    kind: ScopeKind
    name: str | None
    attributes: tuple[Attribute, ...]
    line: int


@dataclass(frozen=True)
class LocatedFunction:
    """Represent one function definition with a body.

    Attributes:
        name: Function identifier.
        qualified_name: Name prefixed with enclosing mod/impl/trait/fn names.
        parameters: Nameable parameter names in declaration order.
        qualifiers: Qualifier keywords before ``fn`` (``pub``, ``const`` ...).
        attributes: Outer attributes directly attached to the function.
        scopes: Enclosing scopes, outermost first, starting with the file.
        signature_span: From the first qualifier to the opening brace.
        body_span: From the opening brace to the matching closing brace.
        depth: Number of enclosing brace scopes.
        indent: Leading whitespace of the signature's first line.
        line_aligned: Whether a line inserted above the signature's first line
            lands before the function and its attributes.
    """

    name: str
    qualified_name: str
    parameters: tuple[str, ...]
    qualifiers: tuple[str, ...]
    attributes: tuple[Attribute, ...]
    scopes: tuple[Scope, ...]
    signature_span: SourceSpan
    body_span: SourceSpan
    depth: int
    indent: str
    line_aligned: bool


@dataclass(frozen=True)
class LocateResult:
    """Store located functions and locator warnings."""

    functions: tuple[LocatedFunction, ...]
    diagnostics: tuple[Diagnostic, ...]


class SignatureError(ValueError):
    """Represent a signature whose boundaries cannot be determined."""


@dataclass(frozen=True)
class _Signature:
    parameters: tuple[str, ...]
    end_index: int
    body_open: int | None


@dataclass
class _PendingFunction:
    name: str
    qualified_name: str
    parameters: tuple[str, ...]
    qualifiers: tuple[str, ...]
    attributes: tuple[Attribute, ...]
    scopes: tuple[Scope, ...]
    signature_start: Token
    body_open: Token
    depth: int
    indent: str
    line_aligned: bool


@dataclass
class _Frame:
    delimiter: str
    kind: ScopeKind
    name: str | None
    line: int
    attributes: list[Attribute] = field(default_factory=list)
    function: _PendingFunction | None = None

    def to_scope(self) -> Scope:
        return Scope(
            kind=self.kind,
            name=self.name,
            attributes=tuple(self.attributes),
            line=self.line,
        )


def locate_functions(scan: ScanResult) -> LocateResult:
    """Find every function definition with a body.

    Args:
        scan: Scanner output for one document.

    Returns:
        Functions ordered by signature position and locator warnings.
    """
    locator = _Locator(scan)
    locator.run()
    functions = sorted(
        locator.functions,
        key=lambda item: (
            item.signature_span.start_line,
            item.signature_span.start_column or 0,
        ),
    )
    return LocateResult(
        functions=tuple(functions), diagnostics=tuple(locator.diagnostics)
    )


class _Locator:
    """Walk code tokens with a delimiter stack and an item state machine."""

    def __init__(self, scan: ScanResult) -> None:
        self._text = scan.text
        self._lines = scan.text.split("\n")
        self._tokens = scan.code_tokens
        self._first_on_line: dict[int, int] = {}
        for index, token in enumerate(self._tokens):
            self._first_on_line.setdefault(token.line, index)
        self._continued_lines = {
            token.end_line for token in scan.tokens if token.end_line > token.line
        }
        self._frames: list[_Frame] = [
            _Frame(delimiter="", kind="file", name=None, line=1)
        ]
        self._pending_attributes: list[Attribute] = []
        self._item_start: int | None = None
        self._item_first: int | None = None
        self._seen_signatures: set[tuple[int, int]] = set()
        self.functions: list[LocatedFunction] = []
        self.diagnostics: list[Diagnostic] = []

    def run(self) -> None:
        tokens = self._tokens
        index = 0
        while index < len(tokens):
            token = tokens[index]
            if token.is_punct("#"):
                attribute, end = self._parse_attribute(index)
                if attribute is not None:
                    if attribute.inner:
                        self._frames[-1].attributes.append(attribute)
                    else:
                        if self._item_first is None:
                            self._item_first = index
                        self._pending_attributes.append(attribute)
                    index = end
                    continue
            if token.kind == "open":
                self._open(index)
                index += 1
                continue
            if token.kind == "close":
                self._close(index)
                index += 1
                continue
            if token.is_punct(";"):
                self._reset_item()
                index += 1
                continue
            if (
                token.is_ident("fn")
                and index + 1 < len(tokens)
                and tokens[index + 1].kind == "ident"
            ):
                index = self._function(index)
                continue
            self._mark_item(index)
            index += 1
        self._finish()

    def _mark_item(self, index: int) -> None:
        if self._item_start is None:
            self._item_start = index
        if self._item_first is None:
            self._item_first = index

    def _reset_item(self) -> None:
        self._pending_attributes = []
        self._item_start = None
        self._item_first = None

    def _warn(self, kind: DiagnosticKind, line: int, message: str) -> None:
        logger.warning("%s (line=%s)", message, line)
        self.diagnostics.append(Diagnostic(kind=kind, line=line, message=message))

    def _parse_attribute(self, index: int) -> tuple[Attribute | None, int]:
        """Parse an attribute starting at the ``#`` token at ``index``."""
        tokens = self._tokens
        cursor = index + 1
        inner = cursor < len(tokens) and tokens[cursor].is_punct("!")
        if inner:
            cursor += 1
        if cursor >= len(tokens) or not tokens[cursor].is_open("["):
            return None, index
        close = _matching_close(tokens, cursor)
        if close is None:
            return None, index

        path_parts: list[str] = []
        body = cursor + 1
        while body < close and (
            tokens[body].is_ident() or tokens[body].is_punct("::")
        ):
            path_parts.append(tokens[body].text)
            body += 1
        start = tokens[index]
        end = tokens[close]
        attribute = Attribute(
            path="".join(path_parts),
            arguments=tuple(token.text for token in tokens[body:close]),
            inner=inner,
            span=SourceSpan(
                start_line=start.line,
                end_line=end.end_line + 1,
                start_column=start.column,
                end_column=end.end_column,
            ),
            text=self._text[start.offset : end.end_offset],
        )
        return attribute, close + 1

    def _open(self, index: int) -> None:
        tokens = self._tokens
        token = tokens[index]
        if self._is_macro_body(index):
            frame = _Frame(
                delimiter=token.text, kind="macro", name=None, line=token.line
            )
        elif token.text == "{":
            header = (
                tokens[self._item_start : index]
                if self._item_start is not None
                else ()
            )
            kind, name = _classify_header(header)
            frame = _Frame(
                delimiter="{",
                kind=kind,
                name=name,
                line=token.line,
                attributes=list(self._pending_attributes),
            )
        else:
            frame = _Frame(
                delimiter=token.text, kind="group", name=None, line=token.line
            )
        self._frames.append(frame)
        if token.text == "{":
            self._reset_item()
        else:
            self._mark_item(index)

    def _is_macro_body(self, index: int) -> bool:
        """Return whether the delimiter at ``index`` opens a macro token tree."""
        tokens = self._tokens
        if index >= 2 and tokens[index - 1].is_punct("!"):
            caller = tokens[index - 2]
            return caller.kind == "ident" and caller.text not in _KEYWORDS
        if (
            index >= 3
            and tokens[index - 1].is_ident()
            and tokens[index - 2].is_punct("!")
        ):
            return tokens[index - 3].is_ident("macro_rules")
        return False

    def _close(self, index: int) -> None:
        token = self._tokens[index]
        expected = _MATCHING_OPEN[token.text]
        position = None
        for candidate in range(len(self._frames) - 1, 0, -1):
            if self._frames[candidate].delimiter == expected:
                position = candidate
                break
        if position is None:
            self._warn(
                "malformed_input",
                token.line,
                f"unmatched closing '{token.text}' at line {token.line}",
            )
            if token.text == "}":
                self._reset_item()
            return
        while len(self._frames) - 1 > position:
            dangling = self._frames.pop()
            self._abandon(dangling, f"closed by '{token.text}' at line {token.line}")
        frame = self._frames.pop()
        if frame.function is not None:
            self._complete(frame.function, token)
        if token.text == "}":
            self._reset_item()

    def _abandon(self, frame: _Frame, reason: str) -> None:
        self._warn(
            "malformed_input",
            frame.line,
            f"unclosed '{frame.delimiter}' opened at line {frame.line} ({reason})",
        )
        if frame.function is not None:
            self._warn(
                "malformed_input",
                frame.function.signature_start.line,
                f"body of function '{frame.function.qualified_name}' is never closed; skipping it",
            )

    def _finish(self) -> None:
        while len(self._frames) > 1:
            self._abandon(self._frames.pop(), "end of input")

    def _function(self, index: int) -> int:
        """Handle a ``fn NAME`` pair at ``index`` and return the next index."""
        tokens = self._tokens
        name_token = tokens[index + 1]
        if any(frame.kind == "macro" for frame in self._frames):
            logger.debug(
                "Skipping function inside a macro body (name=%s line=%s)",
                name_token.text,
                name_token.line,
            )
            self._mark_item(index)
            return index + 1
        try:
            signature = self._parse_signature(index + 2)
        except SignatureError as exc:
            self._warn(
                "ambiguous_signature",
                name_token.line,
                f"cannot determine the signature of '{name_token.text}': {exc}",
            )
            self._reset_item()
            return index + 2

        if signature.body_open is None:
            self._reset_item()
            return signature.end_index + 1

        body_open = tokens[signature.body_open]
        start, qualifiers, attributes, first = self._signature_head(index)
        signature_start = tokens[start]
        scopes = tuple(
            frame.to_scope() for frame in self._frames if frame.delimiter in {"", "{"}
        )
        qualified = [
            scope.name
            for scope in scopes
            if scope.name is not None and scope.kind in _NAMED_SCOPES
        ]
        qualified.append(name_token.text)
        line_text = self._lines[signature_start.line - 1]
        pending = _PendingFunction(
            name=name_token.text,
            qualified_name="::".join(qualified),
            parameters=signature.parameters,
            qualifiers=qualifiers,
            attributes=attributes,
            scopes=scopes,
            signature_start=signature_start,
            body_open=body_open,
            depth=len(scopes) - 1,
            indent=line_text[: len(line_text) - len(line_text.lstrip(" \t"))],
            line_aligned=self._line_aligned(signature_start.line, start, first),
        )
        self._frames.append(
            _Frame(
                delimiter="{",
                kind="fn",
                name=name_token.text,
                line=body_open.line,
                attributes=list(attributes),
                function=pending,
            )
        )
        self._reset_item()
        return signature.body_open + 1

    def _signature_head(
        self, fn_index: int
    ) -> tuple[int, tuple[str, ...], tuple[Attribute, ...], int]:
        """Return signature start, qualifiers, attributes and first item index."""
        start = self._item_start if self._item_start is not None else fn_index
        head = self._tokens[start:fn_index]
        if not _is_qualifier_run(head):
            logger.debug(
                "Tokens before 'fn' are not qualifiers; starting signature at 'fn' (line=%s)",
                self._tokens[fn_index].line,
            )
            return fn_index, (), (), fn_index
        qualifiers = tuple(
            token.text
            for token in head
            if token.is_ident() and token.text in QUALIFIERS
        )
        attributes = tuple(self._pending_attributes)
        first = self._item_first if self._item_first is not None else start
        return start, qualifiers, attributes, min(first, start)

    def _line_aligned(self, line: int, start: int, first: int) -> bool:
        """Return whether a new line above ``line`` lands before the whole item.

        The line must open with the signature or one of its own attributes,
        and no comment or literal may run into it from an earlier line.
        """
        if line in self._continued_lines:
            return False
        opening = self._first_on_line[line]
        if opening < first:
            return False
        return opening == start or self._tokens[opening].is_punct("#")

    def _complete(self, pending: _PendingFunction, close: Token) -> None:
        start = pending.signature_start
        key = (start.line, start.column)
        if key in self._seen_signatures:
            self._warn(
                "overlapping_signature",
                start.line,
                f"signature of '{pending.qualified_name}' overlaps an earlier one; keeping the first",
            )
            return
        self._seen_signatures.add(key)
        self.functions.append(
            LocatedFunction(
                name=pending.name,
                qualified_name=pending.qualified_name,
                parameters=pending.parameters,
                qualifiers=pending.qualifiers,
                attributes=pending.attributes,
                scopes=pending.scopes,
                signature_span=SourceSpan(
                    start_line=start.line,
                    end_line=pending.body_open.line + 1,
                    start_column=start.column,
                    end_column=pending.body_open.column,
                ),
                body_span=SourceSpan(
                    start_line=pending.body_open.line,
                    end_line=close.end_line + 1,
                    start_column=pending.body_open.column,
                    end_column=close.end_column,
                ),
                depth=pending.depth,
                indent=pending.indent,
                line_aligned=pending.line_aligned,
            )
        )

    def _parse_signature(self, index: int) -> _Signature:
        """Parse generics, parameters and the tail of a signature.

        Raises:
            SignatureError: If the signature boundaries cannot be determined.
        """
        tokens = self._tokens
        if index < len(tokens) and tokens[index].is_punct("<"):
            index = _skip_balanced(tokens, index, ["<"]) + 1
        if index >= len(tokens) or not tokens[index].is_open("("):
            raise SignatureError("missing parameter list")
        close, groups = _split_parameters(tokens, index)
        parameters = tuple(
            name
            for name in (_parameter_name(group) for group in groups)
            if name is not None
        )

        stack: list[str] = []
        cursor = close + 1
        while cursor < len(tokens):
            token = tokens[cursor]
            if token.kind == "open":
                if token.text == "{" and not stack:
                    return _Signature(
                        parameters=parameters, end_index=cursor, body_open=cursor
                    )
                stack.append(token.text)
            elif token.kind == "close":
                _pop_close(stack, token)
            elif token.is_punct("<") and (not stack or stack[-1] in _ANGLE_CONTEXTS):
                stack.append("<")
            elif token.is_punct(">") and (not stack or stack[-1] in _ANGLE_CONTEXTS):
                if not stack or stack[-1] != "<":
                    raise SignatureError(f"unbalanced '>' at line {token.line}")
                stack.pop()
            elif token.is_punct(";") and not stack:
                return _Signature(
                    parameters=parameters, end_index=cursor, body_open=None
                )
            cursor += 1
        raise SignatureError("signature runs to the end of the input")


def _matching_close(tokens: tuple[Token, ...], open_index: int) -> int | None:
    depth = 0
    for index in range(open_index, len(tokens)):
        token = tokens[index]
        if token.kind == "open":
            depth += 1
        elif token.kind == "close":
            depth -= 1
            if depth == 0:
                return index
    return None


def _pop_close(stack: list[str], token: Token) -> None:
    expected = _MATCHING_OPEN[token.text]
    if not stack or stack[-1] != expected:
        raise SignatureError(f"unbalanced '{token.text}' at line {token.line}")
    stack.pop()


def _skip_balanced(tokens: tuple[Token, ...], index: int, stack: list[str]) -> int:
    """Skip a generic parameter list and return the index of its closing ``>``."""
    cursor = index + 1
    while cursor < len(tokens):
        token = tokens[cursor]
        if token.kind == "open":
            stack.append(token.text)
        elif token.kind == "close":
            _pop_close(stack, token)
        elif token.is_punct("<") and stack[-1] in _ANGLE_CONTEXTS:
            stack.append("<")
        elif token.is_punct(">") and stack[-1] in _ANGLE_CONTEXTS:
            if stack[-1] != "<":
                raise SignatureError(f"unbalanced '>' at line {token.line}")
            stack.pop()
            if not stack:
                return cursor
        cursor += 1
    raise SignatureError("generic parameters run to the end of the input")


def _split_parameters(
    tokens: tuple[Token, ...], open_index: int
) -> tuple[int, list[list[Token]]]:
    """Split a parameter list into per-parameter token groups.

    Returns:
        Index of the closing parenthesis and the token groups.
    """
    stack = ["("]
    groups: list[list[Token]] = [[]]
    cursor = open_index + 1
    while cursor < len(tokens):
        token = tokens[cursor]
        if token.kind == "open":
            stack.append(token.text)
        elif token.kind == "close":
            _pop_close(stack, token)
            if not stack:
                return cursor, [group for group in groups if group]
        elif token.is_punct("<") and stack[-1] in _ANGLE_CONTEXTS:
            stack.append("<")
        elif token.is_punct(">") and stack[-1] in _ANGLE_CONTEXTS:
            if stack[-1] != "<":
                raise SignatureError(f"unbalanced '>' at line {token.line}")
            stack.pop()
        elif token.is_punct(",") and len(stack) == 1:
            groups.append([])
            cursor += 1
            continue
        groups[-1].append(token)
        cursor += 1
    raise SignatureError("parameter list runs to the end of the input")


def _parameter_name(group: list[Token]) -> str | None:
    """Return the bound name of a simple parameter pattern."""
    index = 0
    while (
        index + 1 < len(group)
        and group[index].is_punct("#")
        and group[index + 1].is_open("[")
    ):
        close = _matching_close(tuple(group), index + 1)
        if close is None:
            return None
        index = close + 1
    pattern: list[Token] = []
    depth = 0
    for token in group[index:]:
        if token.kind == "open":
            depth += 1
        elif token.kind == "close":
            depth -= 1
        elif token.is_punct(":") and depth == 0:
            break
        pattern.append(token)
    while pattern and (
        pattern[0].is_punct("&")
        or pattern[0].kind == "lifetime"
        or pattern[0].is_ident("mut")
        or pattern[0].is_ident("ref")
    ):
        pattern = pattern[1:]
    if len(pattern) == 1 and pattern[0].kind == "ident" and pattern[0].text != "_":
        return pattern[0].text
    return None


def _is_qualifier_run(head: tuple[Token, ...]) -> bool:
    depth = 0
    for token in head:
        if token.kind == "open" and token.text == "(":
            depth += 1
        elif token.kind == "close" and token.text == ")":
            depth -= 1
        elif depth > 0:
            continue
        elif token.kind == "literal":
            continue
        elif not (token.is_ident() and token.text in QUALIFIERS):
            return False
    return depth == 0


def _classify_header(header: tuple[Token, ...]) -> tuple[ScopeKind, str | None]:
    """Classify the item header that precedes an opening brace."""
    index = 0
    depth = 0
    while index < len(header):
        token = header[index]
        if token.kind == "open":
            depth += 1
        elif token.kind == "close":
            depth -= 1
        elif depth == 0 and not (token.is_ident() and token.text in _ITEM_QUALIFIERS):
            break
        index += 1
    if index >= len(header):
        return "block", None
    keyword = header[index]
    rest = header[index + 1 :]
    if keyword.is_ident("mod") or keyword.is_ident("trait"):
        name = rest[0].text if rest and rest[0].kind == "ident" else None
        return ("mod" if keyword.text == "mod" else "trait"), name
    if keyword.is_ident("impl"):
        return "impl", _impl_target(rest)
    return "block", None


def _impl_target(rest: tuple[Token, ...]) -> str | None:
    """Return the best-effort self type name of an ``impl`` header."""
    tokens = list(rest)
    if tokens and tokens[0].is_punct("<"):
        depth = 0
        for index, token in enumerate(tokens):
            if token.is_punct("<"):
                depth += 1
            elif token.is_punct(">"):
                depth -= 1
                if depth == 0:
                    tokens = tokens[index + 1 :]
                    break
    depth = 0
    for index, token in enumerate(tokens):
        if token.is_punct("<"):
            depth += 1
        elif token.is_punct(">"):
            depth -= 1
        elif depth == 0 and token.is_ident("for"):
            tokens = tokens[index + 1 :]
            break
    name = None
    for token in tokens:
        if token.is_punct("<") or token.is_ident("where"):
            break
        if token.kind == "ident" and token.text not in {"dyn", "mut", "const"}:
            name = token.text
        elif not (
            token.is_punct("::") or token.is_punct("&") or token.kind == "lifetime"
        ):
            break
    return name
