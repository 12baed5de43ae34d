"""
Pseudo-Code Decoder Module

Turns one pseudo-code string of the shape

    repo({entity: "<name>", source: "<name>"}).<operation>(<options-literal>)

into a :class:`DecodedCall`. Decoding is deterministic and side-effect free.

The call is first read with a small grammar over the token stream; when the
model produced something that does not fit the grammar, a lenient
pattern-based extraction takes over. Options always go through the same
chain: strict JSON, then the object-literal parser (unless the text contains a
deny-listed token), then a flat ``key: value`` reader as the last resort.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from .config import DENY_LIST_PATTERNS, FALLBACK_SOURCE, OPERATIONS
from .literal import LiteralParser, OptionsDecodeError, Token, parse_literal, tokenize
from .schemas import DecodedCall

logger = logging.getLogger(__name__)

_DENY_LIST = [re.compile(p) for p in DENY_LIST_PATTERNS]
_ENTITY_RE = re.compile(r"entity\s*:\s*[\"']([^\"']+)[\"']")
_SOURCE_RE = re.compile(r"source\s*:\s*[\"']([^\"']+)[\"']")
_METHOD_CALL_RE = re.compile(r"\)\s*\.\s*(\w+)\s*\((.*)\)\s*;?\s*$", re.S)
_NUMERIC_RE = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?$")


# ----------------------------------------------------------------------
# Options decoding
# ----------------------------------------------------------------------
def is_deny_listed(text: str) -> bool:
    return any(pattern.search(text) for pattern in _DENY_LIST)


def parse_flat_options(text: str) -> Dict[str, Any]:
    """
    Read ``text`` as a single-level ``key: value, key: value`` list.

    Nested objects are not representable here: ``{where: {id: 1}}`` yields
    ``{"where": "{id"}``. Only used when every structured path failed.
    """
    body = re.sub(r"^\s*\{|\}\s*$", "", text.strip())
    result: Dict[str, Any] = {}
    for pair in body.split(","):
        parts = [p.strip() for p in pair.split(":")]
        if len(parts) < 2 or not parts[0] or not parts[1]:
            continue
        key = re.sub(r"['\"`]", "", parts[0])
        raw = re.sub(r"['\"`]", "", parts[1])
        if raw == "true":
            value: Any = True
        elif raw == "false":
            value = False
        elif _NUMERIC_RE.match(raw):
            value = float(raw) if any(c in raw for c in ".eE") else int(raw)
        else:
            value = raw
        result[key] = value
    return result


def decode_options(text: Optional[str], debug: bool = False) -> Any:
    """Decode the text between the method-call parentheses."""
    text = (text or "").strip()
    if not text:
        return {}

    try:
        return json.loads(text)
    except ValueError:
        if debug:
            logger.debug(f"JSON parsing failed, trying literal parsing: {text}")

    if is_deny_listed(text):
        logger.warning("Options contain a disallowed token, using flat parsing")
        return parse_flat_options(text)

    try:
        return parse_literal(text)
    except OptionsDecodeError as e:
        logger.warning(f"Literal parsing failed ({e}), using flat parsing")
        return parse_flat_options(text)


# ----------------------------------------------------------------------
# Call grammar
# ----------------------------------------------------------------------
def _is(token: Optional[Token], kind: str, value: Any = None) -> bool:
    return token is not None and token.kind == kind and (value is None or token.value == value)


def _skip_balanced(tokens: List[Token], pos: int) -> int:
    """Given ``tokens[pos]`` is '(', return the index of its matching ')'."""
    depth = 0
    for i in range(pos, len(tokens)):
        token = tokens[i]
        if token.kind == "punct" and token.value in "([{":
            depth += 1
        elif token.kind == "punct" and token.value in ")]}":
            depth -= 1
            if depth == 0:
                if token.value != ")":
                    raise OptionsDecodeError("Mismatched brackets in call")
                return i
    raise OptionsDecodeError("Unbalanced parentheses in call")


def parse_call(code: str) -> Tuple[Dict[str, Any], str, str]:
    """
    Read ``repo(<target>).<method>(<args>)`` strictly.

    Returns the target object, the final method name and the raw argument
    text. Raises ``OptionsDecodeError`` when ``code`` does not fit the shape.
    """
    tokens = tokenize(code)
    if not (_is(tokens[0] if tokens else None, "ident", "repo") and len(tokens) > 1 and _is(tokens[1], "punct", "(")):
        raise OptionsDecodeError("Call must start with repo(")

    parser = LiteralParser(tokens, pos=2)
    target = parser.parse_object()
    parser.expect(")")

    method: Optional[str] = None
    args = ""
    while parser.peek() is not None and not _is(parser.peek(), "punct", ";"):
        parser.expect(".")
        name = parser.next()
        if name.kind != "ident":
            raise OptionsDecodeError(f"Expected a method name at {name.start}")
        if not _is(parser.peek(), "punct", "("):
            raise OptionsDecodeError(f"Expected '(' after {name.value}")
        close = _skip_balanced(tokens, parser.pos)
        open_token = tokens[parser.pos]
        method = name.value
        args = code[open_token.end:tokens[close].start]
        parser.pos = close + 1

    if _is(parser.peek(), "punct", ";"):
        parser.pos += 1
    if parser.peek() is not None or method is None:
        raise OptionsDecodeError("Expected exactly one trailing method call")
    return target, method, args


def find_call_expression(text: str) -> Optional[str]:
    """Locate the first ``repo(...).method(...)`` expression in free text."""
    for match in re.finditer(r"\brepo\s*\(", text):
        start = match.start()
        try:
            tokens = tokenize(text[start:], lenient=True)
        except OptionsDecodeError:
            continue
        try:
            close = _skip_balanced(tokens, 1)
        except OptionsDecodeError:
            continue
        pos = close + 1
        end = None
        while (
            pos + 2 < len(tokens)
            and _is(tokens[pos], "punct", ".")
            and _is(tokens[pos + 1], "ident")
            and _is(tokens[pos + 2], "punct", "(")
        ):
            try:
                close = _skip_balanced(tokens, pos + 2)
            except OptionsDecodeError:
                break
            end = tokens[close].end
            pos = close + 1
        if end is not None:
            return text[start:start + end]
    return None


# ----------------------------------------------------------------------
# Public entry point
# ----------------------------------------------------------------------
def match_operation(text: str) -> str:
    """Substring match against the vocabulary, multi-record variants first."""
    for operation in OPERATIONS:
        if operation in text:
            return operation
    return "unknown"


def _lenient_decode(code: str, debug: bool) -> DecodedCall:
    entity = _ENTITY_RE.search(code)
    source = _SOURCE_RE.search(code)
    method_call = _METHOD_CALL_RE.search(code)
    method = method_call.group(1) if method_call else None
    if debug:
        logger.debug(f"[MethodName]: {method}")
    return DecodedCall(
        operation=match_operation(method or code),
        entity=entity.group(1) if entity else "unknown",
        source=source.group(1) if source else FALLBACK_SOURCE,
        options=decode_options(method_call.group(2) if method_call else "", debug),
        method=method,
    )


def decode_step(code: str, debug: bool = False) -> DecodedCall:
    """Decode one pseudo-code string into operation, entity, source and options."""
    try:
        target, method, args = parse_call(code or "")
    except OptionsDecodeError as e:
        if debug:
            logger.debug(f"Call grammar rejected code ({e}), using pattern extraction")
        return _lenient_decode(code or "", debug)

    if debug:
        logger.debug(f"[MethodName]: {method}")
    entity = target.get("entity")
    source = target.get("source")
    return DecodedCall(
        operation=method if method in OPERATIONS else "unknown",
        entity=entity if isinstance(entity, str) and entity else "unknown",
        source=source if isinstance(source, str) and source else FALLBACK_SOURCE,
        options=decode_options(args, debug),
        method=method,
    )
