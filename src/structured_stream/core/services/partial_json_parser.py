"""
Best-effort parsing of a JSON document that is still streaming in.

The buffer handed to :class:`PartialJsonParser` is almost never valid JSON:
it stops mid-string, mid-number, after a key, or after a comma that
introduces an element which has not started yet. The parser scans the text
once, tracking the open containers and where the cut happened, and builds
the smallest completion that turns the prefix into a loadable document:

- a value string cut off is closed at the cut (a dangling escape is dropped)
  and surfaces as :class:`PartialString`;
- a key without a value (cut inside the key, before the colon, or after it)
  is dropped together with its separator;
- a number is reduced to its longest valid prefix, a literal prefix such as
  ``tr`` is completed to ``true``;
- trailing commas are removed and open containers closed innermost first.

Text that is not a prefix of well-formed JSON (single quotes, stray
characters, unescaped quotes) is handed to ``json_repair`` instead.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from json_repair import repair_json

from structured_stream.core.domain.partial_json import ParseResult, PartialString
from structured_stream.core.interfaces.partial_json_parser_interface import (
    IPartialJsonParser,
)

logger = logging.getLogger(__name__)

_NUMBER_PREFIX = re.compile(r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")
_LITERALS = ("true", "false", "null")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_SIMPLE_ESCAPES = frozenset('"\\/bfnrt')
_WHITESPACE = frozenset(" \t\r\n")
_TOKEN_START = frozenset("-0123456789tfn")

# Container phases: what the scanner expects next inside the innermost frame.
_KEY = "key"
_COLON = "colon"
_VALUE = "value"
_AFTER = "after"


@dataclass
class _Frame:
    kind: str
    phase: str
    key_start: int = -1
    # Latest key of an object; number of values started in an array.
    key: str | None = None
    count: int = 0


def _complete_token(token: str) -> str | None:
    """Complete a bare token cut off at the end of the buffer."""
    for literal in _LITERALS:
        if literal.startswith(token):
            return literal
    match = _NUMBER_PREFIX.match(token)
    if match:
        return match.group(0)
    return None


def _mark_partial_at(value: Any, path: list[str | int]) -> Any:
    """Wrap the string at ``path`` as a PartialString."""
    if not path:
        return PartialString(value) if isinstance(value, str) else value
    container = value
    for step in path[:-1]:
        container = container[step]
    last = path[-1]
    if isinstance(container[last], str):
        container[last] = PartialString(container[last])
    return value


class _JsonPrefixCompleter:
    """Single-pass scanner that closes a truncated JSON document."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._stack: list[_Frame] = []
        self._in_string = False
        self._string_is_key = False
        self._pending_escape = False
        self._escape_start = -1
        self._unicode_left = 0
        self._token_start = -1
        self._root_closed = False
        self.partial_string = False
        self.partial_path: list[str | int] = []
        self.truncated = False

    def complete(self) -> str | None:
        """Return loadable JSON text, or None if the text is not a JSON prefix."""
        for i, ch in enumerate(self._text):
            if not self._feed(i, ch):
                return None
        return self._finish()

    def _feed(self, i: int, ch: str) -> bool:
        if self._in_string:
            return self._feed_string(ch, i)

        if self._token_start >= 0:
            if ch.isalnum() or ch in "+-.":
                return True
            self._token_start = -1
            self._stack[-1].phase = _AFTER

        if ch in _WHITESPACE:
            return True
        if self._root_closed:
            return False
        if not self._stack:
            if ch in "{[":
                self._stack.append(_Frame(ch, _KEY if ch == "{" else _VALUE))
                return True
            return False

        top = self._stack[-1]
        if ch == '"':
            if top.kind == "{" and top.phase == _KEY:
                self._string_is_key = True
                top.key_start = i
            elif top.phase == _VALUE:
                self._string_is_key = False
                self._start_value(top)
            else:
                return False
            self._in_string = True
            return True
        if ch in "{[":
            if top.phase != _VALUE:
                return False
            self._start_value(top)
            top.phase = _AFTER
            self._stack.append(_Frame(ch, _KEY if ch == "{" else _VALUE))
            return True
        if ch in "}]":
            if top.kind != ("{" if ch == "}" else "["):
                return False
            if top.kind == "{" and top.phase in (_COLON, _VALUE):
                return False
            self._stack.pop()
            if not self._stack:
                self._root_closed = True
            return True
        if ch == ",":
            if top.phase != _AFTER:
                return False
            top.phase = _KEY if top.kind == "{" else _VALUE
            return True
        if ch == ":":
            if top.kind != "{" or top.phase != _COLON:
                return False
            top.phase = _VALUE
            return True
        if top.phase == _VALUE and ch in _TOKEN_START:
            self._start_value(top)
            self._token_start = i
            return True
        return False

    def _feed_string(self, ch: str, i: int) -> bool:
        if self._unicode_left:
            if ch not in _HEX_DIGITS:
                return False
            self._unicode_left -= 1
            return True
        if self._pending_escape:
            self._pending_escape = False
            if ch == "u":
                self._unicode_left = 4
                return True
            return ch in _SIMPLE_ESCAPES
        if ch == "\\":
            self._pending_escape = True
            self._escape_start = i
        elif ch == '"':
            self._in_string = False
            top = self._stack[-1]
            if self._string_is_key:
                top.key = json.loads(self._text[top.key_start : i + 1], strict=False)
                top.phase = _COLON
            else:
                top.phase = _AFTER
        return True

    @staticmethod
    def _start_value(frame: _Frame) -> None:
        if frame.kind == "[":
            frame.count += 1

    def _finish(self) -> str | None:
        text = self._text
        if self._root_closed:
            return text
        if not self._stack:
            return None

        self.truncated = True
        top = self._stack[-1]
        head = text

        if self._in_string:
            if self._string_is_key:
                head = text[: top.key_start]
                top.phase = _KEY
            else:
                if self._pending_escape or self._unicode_left:
                    head = text[: self._escape_start]
                head += '"'
                top.phase = _AFTER
                self.partial_string = True
                self.partial_path = [
                    f.key if f.kind == "{" else f.count - 1 for f in self._stack
                ]
        elif self._token_start >= 0:
            completed = _complete_token(text[self._token_start :])
            head = text[: self._token_start]
            if completed is not None:
                head += completed
                top.phase = _AFTER

        if top.kind == "{" and top.phase in (_COLON, _VALUE):
            # Dangling key: drop it along with whatever preceded its value.
            head = text[: top.key_start]

        if not self.partial_string:
            head = head.rstrip()
            if head.endswith(","):
                head = head[:-1].rstrip()

        closers = "".join("}" if f.kind == "{" else "]" for f in reversed(self._stack))
        return head + closers


class PartialJsonParser(IPartialJsonParser):
    """Recover the best available value from possibly-truncated JSON text.

    Never raises. The same input always yields the same value.
    """

    def try_parse(self, text: str) -> ParseResult:
        stripped = text.lstrip()
        if not stripped or stripped[0] not in "{[":
            return ParseResult.failed()

        completer = _JsonPrefixCompleter(stripped)
        completed = completer.complete()
        if completed is not None:
            try:
                value = json.loads(completed, strict=False)
            except (ValueError, RecursionError) as e:
                logger.debug("Completed prefix did not load, falling back to repair: %s", e)
            else:
                if completer.partial_string:
                    value = _mark_partial_at(value, completer.partial_path)
                return ParseResult(
                    value=value, succeeded=True, truncated=completer.truncated
                )

        return self._repair(stripped)

    def _repair(self, text: str) -> ParseResult:
        try:
            value = repair_json(text, return_objects=True)
        except Exception as e:  # repair_json has no failure contract for arbitrary text
            logger.debug("Tolerant JSON repair failed: %s", e)
            return ParseResult.failed()

        if not isinstance(value, (dict, list)):
            return ParseResult.failed()
        return ParseResult(value=value, succeeded=True, repaired=True)
