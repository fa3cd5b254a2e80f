"""Parser for the nested ``OBJECT = ...; END_OBJECT = ...;`` manifest format.

The format is a small subset of PVL as used by Product Delivery Records::

    ORIGINATING_SYSTEM = LPDAAC;
    OBJECT = FILE_GROUP;
      DATA_TYPE = AST_L1A;
      OBJECT = FILE_SPEC;
        DIRECTORY_ID = /data/ast;
        FILE_ID = AST_L1A_003.hdf;
      END_OBJECT = FILE_SPEC;
    END_OBJECT = FILE_GROUP;

Statements end at ``;`` or at the end of the line. Quoted strings and
parenthesised sequences may span lines. ``/* */`` comments are ignored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from logging import getLogger
from typing import Final, Literal

from pdrflow.domain.errors import MissingAttributeError, ParseError

log = getLogger(__name__)

type Scalar = str | int | float
type Value = Scalar | tuple[Value, ...]
type NodeKind = Literal["root", "object", "group"]

_OPEN_KEYWORDS: Final[dict[str, NodeKind]] = {
    "OBJECT": "object",
    "BEGIN_OBJECT": "object",
    "GROUP": "group",
    "BEGIN_GROUP": "group",
}
_CLOSE_KEYWORDS: Final[dict[str, NodeKind]] = {
    "END_OBJECT": "object",
    "END_GROUP": "group",
}
_INTEGER = re.compile(r"[+-]?\d+")
_FLOAT = re.compile(r"[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?")
_IDENTIFIER_STOP = frozenset(" \t\r\n=;")


@dataclass(slots=True, frozen=True)
class Attribute:
    name: str
    value: Value
    text: str
    line: int


@dataclass(slots=True)
class ManifestNode:
    kind: NodeKind
    name: str
    line: int = 0
    attributes: list[Attribute] = field(default_factory=list["Attribute"])
    children: list[ManifestNode] = field(default_factory=list["ManifestNode"])

    def objects(self, name: str) -> list[ManifestNode]:
        """Return direct child objects tagged ``name``, in document order."""

        tag = name.upper()
        return [
            child for child in self.children if child.kind == "object" and child.name.upper() == tag
        ]

    def groups(self) -> list[ManifestNode]:
        return [child for child in self.children if child.kind == "group"]

    def find(self, name: str) -> Attribute | None:
        wanted = name.upper()
        for attribute in self.attributes:
            if attribute.name.upper() == wanted:
                return attribute
        return None

    def get(self, name: str) -> Attribute:
        attribute = self.find(name)
        if attribute is None:
            raise MissingAttributeError(name, node=self.describe())
        return attribute

    def describe(self) -> str:
        if self.kind == "root":
            return "manifest"
        return f"{self.kind.upper()} {self.name} (line {self.line})"


@dataclass(slots=True)
class ManifestTree(ManifestNode):
    kind: NodeKind = "root"
    name: str = ""

    def body(self) -> ManifestNode:
        """Return the node holding the manifest content.

        Content may be wrapped in a top-level group; only the first such group is
        interpreted.
        """

        groups = self.groups()
        if not groups:
            return self
        if len(groups) > 1:
            ignored = ", ".join(group.name for group in groups[1:])
            log.warning(
                "Manifest has %d top-level groups; only %s is read, ignoring %s",
                len(groups),
                groups[0].name,
                ignored,
            )
        return groups[0]


@dataclass(slots=True, frozen=True)
class _Statement:
    name: str
    value: Value | None
    text: str | None
    line: int


class _Scanner:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.line = 1

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        return self.text[index] if index < len(self.text) else ""

    def advance(self) -> str:
        char = self.text[self.pos]
        self.pos += 1
        if char == "\n":
            self.line += 1
        return char

    def skip_comment(self) -> bool:
        if self.peek() == "/" and self.peek(1) == "*":
            start = self.line
            end = self.text.find("*/", self.pos + 2)
            if end < 0:
                raise ParseError("unterminated comment", line=start)
            while self.pos < end + 2:
                self.advance()
            return True
        if self.peek() == "#":
            while not self.at_end() and self.peek() != "\n":
                self.advance()
            return True
        return False

    def skip_space(self, *, newlines: bool) -> None:
        while not self.at_end():
            char = self.peek()
            if char in " \t\r" or (newlines and char in "\n;"):
                self.advance()
            elif not self.skip_comment():
                return

    def identifier(self) -> str:
        start = self.pos
        while not self.at_end() and self.peek() not in _IDENTIFIER_STOP:
            if self.peek() == "/" and self.peek(1) == "*":
                break
            self.advance()
        return self.text[start : self.pos]

    def value(self) -> tuple[Value, str]:
        char = self.peek()
        if char in "\"'":
            text = self.quoted()
            return text, text
        if char in "({":
            start = self.pos
            parsed = self.sequence()
            return parsed, self.text[start : self.pos]
        return self.bare()

    def quoted(self) -> str:
        quote = self.advance()
        start_line = self.line
        chars: list[str] = []
        while True:
            if self.at_end():
                raise ParseError("unterminated quoted string", line=start_line)
            char = self.advance()
            if char == quote:
                return "".join(chars)
            chars.append(char)

    def sequence(self) -> tuple[Value, ...]:
        opener = self.advance()
        closer = ")" if opener == "(" else "}"
        start_line = self.line
        items: list[Value] = []
        while True:
            self.skip_space(newlines=True)
            if self.at_end():
                raise ParseError(f"unterminated sequence, expected {closer!r}", line=start_line)
            char = self.peek()
            if char == closer:
                self.advance()
                return tuple(items)
            if char == ",":
                self.advance()
                continue
            if char in "\"'":
                items.append(self.quoted())
            elif char in "({":
                items.append(self.sequence())
            else:
                start = self.pos
                while not self.at_end() and self.peek() not in f",{closer}\n":
                    self.advance()
                items.append(_scalar(self.text[start : self.pos].strip()))

    def bare(self) -> tuple[Value, str]:
        start = self.pos
        while not self.at_end() and self.peek() not in ";\n":
            if self.peek() == "/" and self.peek(1) == "*":
                break
            self.advance()
        text = self.text[start : self.pos].strip()
        return _scalar(text), text


def _scalar(text: str) -> Scalar:
    if _INTEGER.fullmatch(text):
        return int(text)
    if _FLOAT.fullmatch(text):
        return float(text)
    return text


def _statements(text: str) -> list[_Statement]:
    scanner = _Scanner(text)
    statements: list[_Statement] = []
    while True:
        scanner.skip_space(newlines=True)
        if scanner.at_end():
            return statements
        line = scanner.line
        name = scanner.identifier()
        if not name:
            raise ParseError(f"unexpected character {scanner.peek()!r}", line=line)
        scanner.skip_space(newlines=False)
        if scanner.peek() != "=":
            statements.append(_Statement(name=name, value=None, text=None, line=line))
            continue
        scanner.advance()
        scanner.skip_space(newlines=False)
        if scanner.at_end() or scanner.peek() in ";\n":
            raise ParseError(f"{name} has no value", line=line)
        value, raw = scanner.value()
        statements.append(_Statement(name=name, value=value, text=raw, line=line))


def parse(raw_text: str) -> ManifestTree:
    """Parse manifest text into a tree, raising ``ParseError`` on malformed nesting."""

    tree = ManifestTree()
    stack: list[ManifestNode] = [tree]

    for statement in _statements(raw_text):
        keyword = statement.name.upper()

        if keyword in _OPEN_KEYWORDS:
            if statement.value is None or isinstance(statement.value, tuple):
                raise ParseError(f"{keyword} requires a name", line=statement.line)
            node = ManifestNode(
                kind=_OPEN_KEYWORDS[keyword], name=str(statement.value), line=statement.line
            )
            stack[-1].children.append(node)
            stack.append(node)
            continue

        if keyword in _CLOSE_KEYWORDS:
            expected = _CLOSE_KEYWORDS[keyword]
            if len(stack) == 1:
                raise ParseError(f"{keyword} without an open {expected}", line=statement.line)
            current = stack[-1]
            if current.kind != expected:
                raise ParseError(
                    f"{keyword} closes {current.describe()}",
                    line=statement.line,
                )
            if statement.value is not None and str(statement.value).upper() != current.name.upper():
                raise ParseError(
                    f"{keyword} = {statement.value} does not match {current.describe()}",
                    line=statement.line,
                )
            stack.pop()
            continue

        if keyword == "END" and statement.value is None:
            break

        if statement.value is None or statement.text is None:
            raise ParseError(f"{statement.name} is not an assignment", line=statement.line)
        stack[-1].attributes.append(
            Attribute(
                name=statement.name,
                value=statement.value,
                text=statement.text,
                line=statement.line,
            )
        )

    if len(stack) > 1:
        unclosed = stack[-1]
        raise ParseError(f"{unclosed.describe()} is never closed", line=unclosed.line)

    return tree
