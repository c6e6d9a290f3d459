from opensearch_engine.delegate import SearchDelegate, SearchRequest
from opensearch_engine.engine import Engine
from opensearch_engine.errors import DescriptionError, OpenSearchError
from opensearch_engine.events import Signal
from opensearch_engine.image_loader import ImageDecoder, ImageLoader, PillowImageDecoder
from opensearch_engine.reader import OPENSEARCH_NAMESPACE, DescriptionReader, load_engine
from opensearch_engine.suggestions import SuggestionRequestManager, parse_suggestions
from opensearch_engine.template import Parameter, RequestMethod, TemplateEngine, UrlRequest
from opensearch_engine.transport import HttpxTransport, Transport

__all__ = [
    "DescriptionError",
    "DescriptionReader",
    "Engine",
    "HttpxTransport",
    "ImageDecoder",
    "ImageLoader",
    "OPENSEARCH_NAMESPACE",
    "OpenSearchError",
    "Parameter",
    "PillowImageDecoder",
    "RequestMethod",
    "SearchDelegate",
    "SearchRequest",
    "Signal",
    "SuggestionRequestManager",
    "TemplateEngine",
    "Transport",
    "UrlRequest",
    "load_engine",
    "parse_suggestions",
]
