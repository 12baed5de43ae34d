"""
Object-literal tokenizer and parser.

Model-generated options are written as JavaScript-style object literals
(``{where: {name: 'jack'}, limit: 10}``) rather than strict JSON. This module
turns such text into Python data with a small recursive-descent parser. It
only ever builds the literal's own data graph: identifiers other than
``true``/``false``/``null``/``undefined`` are rejected, nothing is evaluated.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

PUNCTUATION = set("{}[]():,.;")

_NUMBER = re.compile(r"-?(?:0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")
_IDENT = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}
_KEYWORDS = {"true": True, "false": False, "null": None, "undefined": None}


class OptionsDecodeError(ValueError):
    """Raised when text is not a well-formed object literal."""


@dataclass
class Token:
    kind: str  # "punct" | "string" | "number" | "ident" | "other"
    value: Any
    start: int
    end: int


def _read_string(text: str, pos: int) -> tuple:
    quote = text[pos]
    i = pos + 1
    chars: List[str] = []
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            if i + 1 >= len(text):
                break
            nxt = text[i + 1]
            if nxt == "u" and re.match(r"[0-9a-fA-F]{4}", text[i + 2:i + 6]):
                chars.append(chr(int(text[i + 2:i + 6], 16)))
                i += 6
                continue
            chars.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if ch == quote:
            return "".join(chars), i + 1
        chars.append(ch)
        i += 1
    raise OptionsDecodeError(f"Unterminated string starting at {pos}")


def tokenize(text: str, lenient: bool = False) -> List[Token]:
    """
    Split ``text`` into tokens. Unknown characters become ``other`` tokens.

    With ``lenient`` an unterminated quote is kept as an ``other`` token
    instead of raising, which lets callers scan free prose.
    """
    tokens: List[Token] = []
    pos = 0
    while pos < len(text):
        ch = text[pos]
        if ch.isspace():
            pos += 1
            continue
        if ch in "\"'`":
            try:
                value, end = _read_string(text, pos)
            except OptionsDecodeError:
                if not lenient:
                    raise
                tokens.append(Token("other", ch, pos, pos + 1))
                pos += 1
                continue
            tokens.append(Token("string", value, pos, end))
            pos = end
            continue
        if ch in PUNCTUATION and not (ch == "." and pos + 1 < len(text) and text[pos + 1].isdigit()):
            tokens.append(Token("punct", ch, pos, pos + 1))
            pos += 1
            continue
        number = _NUMBER.match(text, pos)
        if number and (ch.isdigit() or ch in "-."):
            raw = number.group(0)
            tokens.append(Token("number", _to_number(raw), pos, number.end()))
            pos = number.end()
            continue
        ident = _IDENT.match(text, pos)
        if ident:
            tokens.append(Token("ident", ident.group(0), pos, ident.end()))
            pos = ident.end()
            continue
        tokens.append(Token("other", ch, pos, pos + 1))
        pos += 1
    return tokens


def _to_number(raw: str):
    if re.fullmatch(r"-?0[xX][0-9a-fA-F]+", raw):
        return int(raw, 16)
    if re.fullmatch(r"-?\d+", raw):
        return int(raw)
    return float(raw)


class LiteralParser:
    """Recursive-descent parser over a token list."""

    def __init__(self, tokens: List[Token], pos: int = 0):
        self.tokens = tokens
        self.pos = pos

    def peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def next(self) -> Token:
        token = self.peek()
        if token is None:
            raise OptionsDecodeError("Unexpected end of input")
        self.pos += 1
        return token

    def expect(self, punct: str) -> Token:
        token = self.next()
        if token.kind != "punct" or token.value != punct:
            raise OptionsDecodeError(f"Expected '{punct}' at {token.start}, found {token.value!r}")
        return token

    def at(self, punct: str) -> bool:
        token = self.peek()
        return token is not None and token.kind == "punct" and token.value == punct

    def parse_value(self) -> Any:
        token = self.peek()
        if token is None:
            raise OptionsDecodeError("Expected a value")
        if token.kind == "punct" and token.value == "{":
            return self.parse_object()
        if token.kind == "punct" and token.value == "[":
            return self.parse_array()
        self.pos += 1
        if token.kind in ("string", "number"):
            return token.value
        if token.kind == "ident" and token.value in _KEYWORDS:
            return _KEYWORDS[token.value]
        raise OptionsDecodeError(f"Unexpected token {token.value!r} at {token.start}")

    def parse_object(self) -> Dict[str, Any]:
        self.expect("{")
        result: Dict[str, Any] = {}
        while not self.at("}"):
            key_token = self.next()
            if key_token.kind not in ("ident", "string", "number"):
                raise OptionsDecodeError(f"Invalid key {key_token.value!r} at {key_token.start}")
            key = key_token.value
            if isinstance(key, float) and key.is_integer():
                key = int(key)
            self.expect(":")
            result[str(key)] = self.parse_value()
            if not self.at("}"):
                self.expect(",")
        self.expect("}")
        return result

    def parse_array(self) -> List[Any]:
        self.expect("[")
        items: List[Any] = []
        while not self.at("]"):
            items.append(self.parse_value())
            if not self.at("]"):
                self.expect(",")
        self.expect("]")
        return items


def parse_literal(text: str) -> Any:
    """Parse a complete object/array/scalar literal from ``text``."""
    tokens = tokenize(text)
    if not tokens:
        raise OptionsDecodeError("Empty literal")
    parser = LiteralParser(tokens)
    value = parser.parse_value()
    if parser.peek() is not None:
        raise OptionsDecodeError(f"Trailing content at {parser.peek().start}")
    return value
