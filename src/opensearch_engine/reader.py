"""Reading OpenSearch 1.1 description documents.

See http://www.opensearch.org/Specifications/OpenSearch/1.1#OpenSearch_description_document
"""

from __future__ import annotations

import contextlib
import io
from pathlib import Path
from typing import IO, Any, Callable, Iterator, Union

from loguru import logger
from lxml import etree

from opensearch_engine.engine import Engine
from opensearch_engine.errors import DescriptionError
from opensearch_engine.template import Parameter

OPENSEARCH_NAMESPACE = "http://a9.com/-/spec/opensearch/1.1/"

SEARCH_TYPE = "text/html"
SUGGESTIONS_TYPE = "application/x-suggestions+json"
_XHTML_TYPE = "application/xhtml+xml"

Source = Union[bytes, bytearray, str, Path, IO[bytes]]


class _TokenStream:
    """Start/end element tokens pulled from lxml's incremental parser."""

    def __init__(self, stream: IO[bytes]):
        self._events: Iterator[tuple[str, Any]] = etree.iterparse(
            stream,
            events=("start", "end"),
            resolve_entities=False,
            load_dtd=False,
            no_network=True,
        )
        self.event: str | None = None
        self.element: Any = None

    def read_next(self) -> bool:
        """Advance to the next token. Returns False at the end of the document."""
        try:
            self.event, self.element = next(self._events)
        except StopIteration:
            self.event, self.element = None, None
            return False
        return True

    @property
    def is_start(self) -> bool:
        return self.event == "start"

    @property
    def is_end(self) -> bool:
        return self.event == "end"

    @property
    def name(self) -> str:
        if self.element is None or not isinstance(self.element.tag, str):
            return ""
        return etree.QName(self.element).localname

    @property
    def namespace(self) -> str:
        if self.element is None or not isinstance(self.element.tag, str):
            return ""
        return etree.QName(self.element).namespace or ""

    def attribute(self, name: str) -> str:
        return self.element.get(name, "")


@contextlib.contextmanager
def _open_source(source: Source) -> Iterator[IO[bytes]]:
    if isinstance(source, Path):
        try:
            stream = source.open("rb")
        except OSError as ex:
            raise DescriptionError(f"Could not open {source}: {ex.strerror or ex}") from ex
        with stream:
            yield stream
        return
    if isinstance(source, str):
        source = source.encode("utf-8")
    if isinstance(source, (bytes, bytearray)):
        yield io.BytesIO(bytes(source))
        return
    yield source


class DescriptionReader:
    """Builds an ``Engine`` from an OpenSearch description document.

    ``read`` always returns an engine, even when the document is broken. Check
    ``has_error`` (and ``Engine.is_valid``) before using it. One reader can
    be used to read any number of documents, one at a time.
    """

    def __init__(self, engine_factory: Callable[[], Engine] = Engine):
        self._engine_factory = engine_factory
        self._error: DescriptionError | None = None
        self._tokens: _TokenStream | None = None
        self._engine: Engine | None = None

    @property
    def has_error(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> DescriptionError | None:
        return self._error

    @property
    def error_string(self) -> str:
        return str(self._error) if self._error is not None else ""

    def read(self, source: Source) -> Engine:
        self._error = None
        engine = self._engine_factory()
        self._engine = engine

        try:
            with _open_source(source) as stream:
                self._tokens = _TokenStream(stream)
                self._read_document()
        except DescriptionError as ex:
            self._error = ex
        except etree.XMLSyntaxError as ex:
            self._error = DescriptionError(str(ex))
        finally:
            self._tokens = None
            self._engine = None

        if self._error is not None:
            logger.debug(f"OpenSearch description rejected: {self._error}")
        return engine

    # -- document structure --

    def _read_document(self) -> None:
        tokens = self._tokens
        while not tokens.is_start and tokens.read_next():
            pass

        if tokens.name != "OpenSearchDescription" or tokens.namespace != OPENSEARCH_NAMESPACE:
            raise DescriptionError("The file is not an OpenSearch 1.1 file.")

        while tokens.read_next():
            if tokens.is_end:
                break
            if not tokens.is_start:
                continue

            name = tokens.name
            if name == "ShortName":
                self._engine.name = self._read_element_text()
            elif name == "Description":
                self._engine.description = self._read_element_text()
            elif name == "Url":
                self._read_url()
            elif name == "Image":
                self._engine.image_url = self._read_element_text()
            elif name == "Tags":
                self._engine.tags = [tag for tag in self._read_element_text().split(" ") if tag]
            else:
                logger.debug(f"Skipping unknown element <{name}>")
                self._skip_subtree()

    def _read_url(self) -> None:
        tokens = self._tokens
        engine = self._engine

        url_type = tokens.attribute("type")
        template = tokens.attribute("template")
        method = tokens.attribute("method")

        if not url_type or url_type == _XHTML_TYPE:
            url_type = SEARCH_TYPE

        if not template:
            self._skip_subtree()
            return

        if url_type == SUGGESTIONS_TYPE and engine.suggestions_url_template:
            self._skip_subtree()
            return

        if url_type == SEARCH_TYPE and engine.search_url_template:
            self._skip_subtree()
            return

        parameters: list[Parameter] = []
        while tokens.read_next():
            if tokens.is_end:
                break
            if not tokens.is_start:
                continue
            if tokens.name in ("Param", "Parameter"):
                self._read_parameter(parameters)
            else:
                self._skip_subtree()

        if url_type == SUGGESTIONS_TYPE:
            engine.suggestions_url_template = template
            engine.suggestions_parameters = parameters
            engine.suggestions_method = method
        elif url_type == SEARCH_TYPE:
            engine.search_url_template = template
            engine.search_parameters = parameters
            engine.search_method = method
        else:
            logger.debug(f"Ignoring <Url> of unsupported type {url_type!r}")

    def _read_parameter(self, parameters: list[Parameter]) -> None:
        key = self._tokens.attribute("name")
        value = self._tokens.attribute("value")
        self._skip_subtree()

        if key and value:
            parameters.append(Parameter(key, value))

    # -- helpers --

    def _read_element_text(self) -> str:
        element = self._tokens.element
        self._skip_subtree()
        return (element.text or "").strip()

    def _skip_subtree(self) -> None:
        """Consume tokens up to and including the end of the current element."""
        depth = 1
        while depth and self._tokens.read_next():
            if self._tokens.is_start:
                depth += 1
            elif self._tokens.is_end:
                depth -= 1


def load_engine(source: Source, **engine_kwargs) -> Engine:
    """Read a description, raising ``DescriptionError`` if it is unusable.

    Keyword arguments are passed to the ``Engine`` constructor.
    """
    reader = DescriptionReader(lambda: Engine(**engine_kwargs))
    engine = reader.read(source)
    if reader.error is not None:
        raise reader.error
    return engine
