from __future__ import annotations

import asyncio
import contextlib
import re
from typing import TYPE_CHECKING, Any, Iterator

import httpx
from loguru import logger

from opensearch_engine.events import Signal
from opensearch_engine.template import RequestMethod, UrlRequest
from opensearch_engine.transport import Transport

if TYPE_CHECKING:
    from opensearch_engine.engine import Engine

_WHITESPACE = " \t\n\r"
_NUMBER_PATTERN = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")
_LITERALS = ("true", "false", "null")
# Arrays and objects nested deeper than this are rejected.
_MAX_DEPTH = 32
_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}


class _MalformedResponse(ValueError):
    pass


class _Skipped:
    """Placeholder for values that are parsed only to be stepped over."""


_SKIPPED = _Skipped()


class _ResponseParser:
    """Reads the subset of JSON needed for ``[query, [suggestion, ...], ...]``.

    Strings and arrays are materialized. Numbers, literals and objects are
    consumed and replaced by a placeholder.
    """

    def __init__(self, text: str):
        self._text = text
        self._pos = 0
        self._depth = 0

    def parse(self) -> Any:
        value = self._value()
        self._skip_whitespace()
        if self._pos != len(self._text):
            raise _MalformedResponse(f"trailing data at offset {self._pos}")
        return value

    def _peek(self) -> str:
        if self._pos >= len(self._text):
            raise _MalformedResponse("unexpected end of response")
        return self._text[self._pos]

    def _expect(self, char: str) -> None:
        if self._peek() != char:
            raise _MalformedResponse(f"expected {char!r} at offset {self._pos}")
        self._pos += 1

    @contextlib.contextmanager
    def _nested(self) -> Iterator[None]:
        if self._depth >= _MAX_DEPTH:
            raise _MalformedResponse(f"nesting deeper than {_MAX_DEPTH} at offset {self._pos}")
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1

    def _skip_whitespace(self) -> None:
        while self._pos < len(self._text) and self._text[self._pos] in _WHITESPACE:
            self._pos += 1

    def _value(self) -> Any:
        self._skip_whitespace()
        char = self._peek()
        if char == "[":
            with self._nested():
                return self._array()
        if char == '"':
            return self._string()
        if char == "{":
            with self._nested():
                self._object()
            return _SKIPPED
        for literal in _LITERALS:
            if self._text.startswith(literal, self._pos):
                self._pos += len(literal)
                return _SKIPPED
        match = _NUMBER_PATTERN.match(self._text, self._pos)
        if match and match.end() > self._pos:
            self._pos = match.end()
            return _SKIPPED
        raise _MalformedResponse(f"unexpected {char!r} at offset {self._pos}")

    def _array(self) -> list[Any]:
        self._expect("[")
        items: list[Any] = []
        self._skip_whitespace()
        if self._peek() == "]":
            self._pos += 1
            return items
        while True:
            items.append(self._value())
            self._skip_whitespace()
            if self._peek() == ",":
                self._pos += 1
                continue
            self._expect("]")
            return items

    def _object(self) -> None:
        self._expect("{")
        self._skip_whitespace()
        if self._peek() == "}":
            self._pos += 1
            return
        while True:
            self._skip_whitespace()
            self._string()
            self._skip_whitespace()
            self._expect(":")
            self._value()
            self._skip_whitespace()
            if self._peek() == ",":
                self._pos += 1
                continue
            self._expect("}")
            return

    def _string(self) -> str:
        self._expect('"')
        chunks: list[str] = []
        while True:
            char = self._peek()
            self._pos += 1
            if char == '"':
                break
            if char != "\\":
                chunks.append(char)
                continue
            escape = self._peek()
            self._pos += 1
            if escape in _ESCAPES:
                chunks.append(_ESCAPES[escape])
            elif escape == "u":
                digits = self._text[self._pos:self._pos + 4]
                if len(digits) != 4 or not all(c in "0123456789abcdefABCDEF" for c in digits):
                    raise _MalformedResponse(f"bad unicode escape at offset {self._pos}")
                chunks.append(chr(int(digits, 16)))
                self._pos += 4
            else:
                raise _MalformedResponse(f"bad escape {escape!r} at offset {self._pos}")
        text = "".join(chunks)
        try:
            # Joins surrogate pairs written as two \u escapes.
            return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le")
        except UnicodeDecodeError as ex:
            raise _MalformedResponse("unpaired surrogate in string") from ex


def parse_suggestions(response: str | bytes) -> list[str] | None:
    """Extract the suggestion list from a response body.

    Returns ``None`` unless the body is an array whose second element is an
    array of strings.
    """
    if isinstance(response, bytes):
        response = response.decode("utf-8", errors="replace")
    response = response.strip()

    if not response:
        return None
    if not response.startswith("[") or not response.endswith("]"):
        return None

    try:
        parts = _ResponseParser(response).parse()
    except _MalformedResponse as ex:
        logger.debug(f"Ignoring malformed suggestions response: {ex}")
        return None

    if len(parts) < 2 or not isinstance(parts[1], list):
        return None
    if not all(isinstance(item, str) for item in parts[1]):
        return None
    return list(parts[1])


class SuggestionRequestManager:
    """Keeps at most one suggestions request in flight for an engine.

    A new request cancels the previous one. Results are delivered through the
    ``suggestions`` signal from an event loop callback, never from inside
    ``request_suggestions``.
    """

    def __init__(self, transport: Transport | None, suggestions: Signal):
        self._transport = transport
        self._suggestions = suggestions
        self._reply: asyncio.Task | None = None

    @property
    def transport(self) -> Transport | None:
        return self._transport

    @transport.setter
    def transport(self, transport: Transport | None) -> None:
        self.cancel()
        self._transport = transport

    @property
    def is_requesting(self) -> bool:
        return self._reply is not None

    @property
    def in_flight(self) -> asyncio.Task | None:
        return self._reply

    def request_suggestions(self, engine: Engine, term: str, timeout: float | None = None) -> None:
        if not term or not engine.provides_suggestions:
            return

        if self._transport is None:
            logger.debug(f"No transport configured, suggestions for {engine.name!r} disabled")
            return

        self.cancel()

        request = engine.suggestions_request(term)
        if request is None:
            return

        reply = asyncio.create_task(self._fetch(self._transport, request, timeout))
        reply.add_done_callback(self._suggestions_obtained)
        self._reply = reply

    def cancel(self) -> None:
        reply, self._reply = self._reply, None
        if reply is not None:
            reply.remove_done_callback(self._suggestions_obtained)
            reply.cancel()

    @staticmethod
    async def _fetch(transport: Transport, request: UrlRequest, timeout: float | None) -> bytes:
        if request.method is RequestMethod.POST:
            pending = transport.post(request.url, request.body or b"")
        else:
            pending = transport.get(request.url)
        if timeout is None:
            return await pending
        return await asyncio.wait_for(pending, timeout)

    def _suggestions_obtained(self, reply: asyncio.Task) -> None:
        superseded = reply is not self._reply
        if not superseded:
            self._reply = None

        if reply.cancelled():
            return

        error = reply.exception()
        if superseded:
            return
        if error is not None:
            if isinstance(error, (httpx.HTTPError, asyncio.TimeoutError, OSError)):
                logger.debug(f"Suggestions request failed: {type(error).__name__}: {error}")
            else:
                logger.opt(exception=error).debug("Suggestions request failed")
            return

        suggestions = parse_suggestions(reply.result())
        if suggestions is None:
            return

        self._suggestions.emit(suggestions)
