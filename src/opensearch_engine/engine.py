from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable

from loguru import logger
from PIL import Image

from opensearch_engine.delegate import SearchDelegate
from opensearch_engine.events import Signal
from opensearch_engine.image_loader import ImageDecoder, ImageLoader, image_data_uri
from opensearch_engine.suggestions import SuggestionRequestManager
from opensearch_engine.template import Parameter, RequestMethod, TemplateEngine, UrlRequest
from opensearch_engine.transport import Transport


def _to_parameters(parameters: Iterable[tuple[str, str]]) -> list[Parameter]:
    return [Parameter(key, value) for key, value in parameters]


class Engine:
    """A single search engine described in the OpenSearch format.

    An engine holds the description metadata (name, description, image, tags)
    and two URL templates: one for search results and an optional one for
    contextual suggestions. ``search_url`` and ``suggestions_url`` turn the
    templates into concrete URLs for a search term.

    Searches are never performed here. ``request_search_results`` hands the
    request to a ``SearchDelegate`` if one is set. Suggestions are fetched by
    ``request_suggestions`` and delivered to ``on_suggestions`` listeners; the
    engine image is fetched lazily the first time ``image()`` is called. Both
    need a transport, without one they are disabled.
    """

    def __init__(
        self,
        *,
        name: str = "",
        description: str = "",
        image_url: str = "",
        tags: Iterable[str] = (),
        search_url_template: str = "",
        search_parameters: Iterable[tuple[str, str]] = (),
        search_method: RequestMethod | str = RequestMethod.GET,
        suggestions_url_template: str = "",
        suggestions_parameters: Iterable[tuple[str, str]] = (),
        suggestions_method: RequestMethod | str = RequestMethod.GET,
        transport: Transport | None = None,
        template_engine: TemplateEngine | None = None,
        delegate: SearchDelegate | None = None,
        image_decoder: ImageDecoder | None = None,
        image_retry_attempts: int = 3,
        image_retry_wait_seconds: float = 1.0,
    ) -> None:
        self._image_changed = Signal("image_changed")
        self._suggestions = Signal("suggestions")
        self._template_engine = template_engine or TemplateEngine()
        self._delegate = delegate
        self._suggestion_requests = SuggestionRequestManager(transport, self._suggestions)
        self._images = ImageLoader(
            transport,
            self._image_changed,
            decoder=image_decoder,
            retry_attempts=image_retry_attempts,
            retry_wait_seconds=image_retry_wait_seconds,
        )

        self._name = name
        self._description = description
        self._image_url = image_url
        self._tags = set(tags)
        self._search_url_template = search_url_template
        self._search_parameters = _to_parameters(search_parameters)
        self._search_method = RequestMethod.GET
        self._suggestions_url_template = suggestions_url_template
        self._suggestions_parameters = _to_parameters(suggestions_parameters)
        self._suggestions_method = RequestMethod.GET
        self.search_method = search_method
        self.suggestions_method = suggestions_method

    # -- metadata --

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, name: str) -> None:
        self._name = name

    @property
    def description(self) -> str:
        return self._description

    @description.setter
    def description(self, description: str) -> None:
        self._description = description

    @property
    def tags(self) -> set[str]:
        """Keywords that identify and categorize the search content."""
        return set(self._tags)

    @tags.setter
    def tags(self, tags: Iterable[str]) -> None:
        self._tags = set(tags)

    @property
    def is_valid(self) -> bool:
        return bool(self._name) and bool(self._search_url_template)

    # -- search --

    @property
    def search_url_template(self) -> str:
        return self._search_url_template

    @search_url_template.setter
    def search_url_template(self, template: str) -> None:
        self._search_url_template = template

    @property
    def search_parameters(self) -> list[Parameter]:
        return list(self._search_parameters)

    @search_parameters.setter
    def search_parameters(self, parameters: Iterable[tuple[str, str]]) -> None:
        self._search_parameters = _to_parameters(parameters)

    @property
    def search_method(self) -> RequestMethod:
        return self._search_method

    @search_method.setter
    def search_method(self, method: RequestMethod | str) -> None:
        parsed = RequestMethod.parse(method)
        if parsed is None:
            logger.debug(f"Ignoring unsupported search method {method!r}")
            return
        self._search_method = parsed

    def search_url(self, term: str) -> str | None:
        return self._template_engine.build_url(
            term, self._search_url_template, self._search_parameters, self._search_method
        )

    def search_request(self, term: str) -> UrlRequest | None:
        return self._template_engine.build_request(
            term, self._search_url_template, self._search_parameters, self._search_method
        )

    # -- suggestions --

    @property
    def suggestions_url_template(self) -> str:
        return self._suggestions_url_template

    @suggestions_url_template.setter
    def suggestions_url_template(self, template: str) -> None:
        self._suggestions_url_template = template

    @property
    def suggestions_parameters(self) -> list[Parameter]:
        return list(self._suggestions_parameters)

    @suggestions_parameters.setter
    def suggestions_parameters(self, parameters: Iterable[tuple[str, str]]) -> None:
        self._suggestions_parameters = _to_parameters(parameters)

    @property
    def suggestions_method(self) -> RequestMethod:
        return self._suggestions_method

    @suggestions_method.setter
    def suggestions_method(self, method: RequestMethod | str) -> None:
        parsed = RequestMethod.parse(method)
        if parsed is None:
            logger.debug(f"Ignoring unsupported suggestions method {method!r}")
            return
        self._suggestions_method = parsed

    @property
    def provides_suggestions(self) -> bool:
        return bool(self._suggestions_url_template)

    def suggestions_url(self, term: str) -> str | None:
        return self._template_engine.build_url(
            term, self._suggestions_url_template, self._suggestions_parameters, self._suggestions_method
        )

    def suggestions_request(self, term: str) -> UrlRequest | None:
        return self._template_engine.build_request(
            term, self._suggestions_url_template, self._suggestions_parameters, self._suggestions_method
        )

    # -- image --

    @property
    def image_url(self) -> str:
        return self._image_url

    @image_url.setter
    def image_url(self, url: str) -> None:
        if url != self._image_url:
            self._images.invalidate()
        self._image_url = url

    def image(self) -> Image.Image | None:
        """The engine image, or ``None`` while it is unknown or being fetched.

        A remote image is requested the first time this is called;
        ``on_image_changed`` listeners are notified once it has arrived.
        """
        return self._images.image(self._image_url)

    def set_image(self, image: Image.Image) -> None:
        if not self._image_url:
            self._image_url = image_data_uri(image) or ""
        self._images.set_image(image)

    # -- collaborators --

    @property
    def template_engine(self) -> TemplateEngine:
        return self._template_engine

    @property
    def transport(self) -> Transport | None:
        return self._suggestion_requests.transport

    @transport.setter
    def transport(self, transport: Transport | None) -> None:
        self._suggestion_requests.transport = transport
        self._images.transport = transport

    @property
    def delegate(self) -> SearchDelegate | None:
        return self._delegate

    @delegate.setter
    def delegate(self, delegate: SearchDelegate | None) -> None:
        self._delegate = delegate

    # -- requests and events --

    @property
    def is_requesting_suggestions(self) -> bool:
        return self._suggestion_requests.is_requesting

    @property
    def pending_suggestions(self) -> asyncio.Task | None:
        """The in-flight suggestions task, if any."""
        return self._suggestion_requests.in_flight

    @property
    def pending_image(self) -> asyncio.Task | None:
        return self._images.in_flight

    def request_suggestions(self, term: str, timeout: float | None = None) -> None:
        self._suggestion_requests.request_suggestions(self, term, timeout=timeout)

    def cancel_suggestions(self) -> None:
        self._suggestion_requests.cancel()

    def request_search_results(self, term: str) -> None:
        if self._delegate is None or not term:
            return
        request = self.search_request(term)
        if request is None:
            return
        self._delegate.perform_search_request(request)

    def on_image_changed(self, callback: Callable[[], Any]) -> Callable[[], None]:
        return self._image_changed.connect(callback)

    def on_suggestions(self, callback: Callable[[list[str]], Any]) -> Callable[[], None]:
        return self._suggestions.connect(callback)

    def close(self) -> None:
        """Abort pending network activity."""
        self._suggestion_requests.cancel()
        self._images.cancel()

    # -- comparison --

    def _key(self) -> tuple:
        return (
            self._name,
            self._description,
            self._image_url,
            self._search_url_template,
            self._suggestions_url_template,
            self._search_parameters,
            self._suggestions_parameters,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Engine):
            return NotImplemented
        return self._key() == other._key()

    __hash__ = None  # type: ignore[assignment]

    def __lt__(self, other: Engine) -> bool:
        if not isinstance(other, Engine):
            return NotImplemented
        return self._name < other._name

    def __repr__(self) -> str:
        return f"Engine(name={self._name!r}, search_url_template={self._search_url_template!r})"
