class OpenSearchError(Exception):
    """Base class for errors raised by this package."""


class DescriptionError(OpenSearchError):
    """The document is not a readable OpenSearch 1.1 description."""
