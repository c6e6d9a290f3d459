from typing import Protocol, runtime_checkable

from opensearch_engine.template import UrlRequest

SearchRequest = UrlRequest


@runtime_checkable
class SearchDelegate(Protocol):
    def perform_search_request(self, request: SearchRequest) -> None:
        """Carry out a search request built by ``Engine.request_search_results``."""
        ...
