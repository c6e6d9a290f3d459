"""OpenSearch URL template expansion.

Supported template parameters and their replacements:

    {count}                 "20"
    {startIndex}            "0"
    {startPage}             "0"
    {language}              locale name in RFC 3066 form ("en_US" -> "en-US")
    {inputEncoding}         "UTF-8"
    {outputEncoding}        "UTF-8"
    {source}, {*:source?}   the application name
    {searchTerms}           the percent-encoded search term

Anything else in braces is left untouched.
"""

from __future__ import annotations

import locale
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, NamedTuple
from urllib.parse import quote

DEFAULT_APPLICATION_NAME = "opensearch-engine"
DEFAULT_LANGUAGE = "en_US"

# Replaced in a single pass, so substituted text is never matched again.
_TOKEN_PATTERN = re.compile(
    r"\{(count|startIndex|startPage|language|inputEncoding|outputEncoding"
    r"|(?:[^}]*:)?source\??|searchTerms)\}"
)

# Characters left alone when appending query pairs; "%" keeps escapes
# produced by {searchTerms} intact.
_QUERY_SAFE = "%/:@!$'()*,;"


class Parameter(NamedTuple):
    key: str
    value: str


class RequestMethod(str, Enum):
    GET = "get"
    POST = "post"

    @classmethod
    def parse(cls, value: str | RequestMethod | None) -> RequestMethod | None:
        """Case-insensitive lookup; ``None`` for anything but get/post."""
        if isinstance(value, RequestMethod):
            return value
        if not value:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class UrlRequest:
    url: str
    method: RequestMethod
    body: bytes | None = None


def system_language() -> str:
    try:
        name, _ = locale.getlocale()
    except ValueError:
        name = None
    if not name or name in ("C", "POSIX"):
        return DEFAULT_LANGUAGE
    return name


def build_body(parameters: Iterable[tuple[str, str]]) -> bytes:
    """Serialize parameters as a POST body.

    Values are used as written in the description, without template expansion.
    """
    return "&".join(f"{key}={value}" for key, value in parameters).encode("utf-8")


# A "%" that does not start an escape sequence.
_STRAY_PERCENT = re.compile(r"%(?![0-9A-Fa-f]{2})")


def _quote_query(text: str) -> str:
    return quote(_STRAY_PERCENT.sub("%25", text), safe=_QUERY_SAFE)


def _append_query(url: str, pairs: list[str]) -> str:
    if not pairs:
        return url
    base, hash_mark, fragment = url.partition("#")
    if base.endswith(("?", "&")):
        separator = ""
    elif "?" in base:
        separator = "&"
    else:
        separator = "?"
    return f"{base}{separator}{'&'.join(pairs)}{hash_mark}{fragment}"


class TemplateEngine:
    def __init__(
        self,
        application_name: str | Callable[[], str] = DEFAULT_APPLICATION_NAME,
        language: str | Callable[[], str] = system_language,
    ) -> None:
        self._application_name = application_name
        self._language = language

    @property
    def application_name(self) -> str:
        if callable(self._application_name):
            return self._application_name()
        return self._application_name

    @property
    def language(self) -> str:
        """The current language in RFC 3066 form."""
        name = self._language() if callable(self._language) else self._language
        return name.replace("_", "-")

    def expand(self, term: str, template: str) -> str:
        replacements = {
            "count": "20",
            "startIndex": "0",
            "startPage": "0",
            "language": self.language,
            "inputEncoding": "UTF-8",
            "outputEncoding": "UTF-8",
            "searchTerms": quote(term, safe=""),
        }
        application_name = self.application_name

        def _replace(match: re.Match) -> str:
            token = match.group(1)
            if token in replacements:
                return replacements[token]
            return application_name

        return _TOKEN_PATTERN.sub(_replace, template)

    def build_url(
        self,
        term: str,
        template: str,
        parameters: Iterable[tuple[str, str]] = (),
        method: RequestMethod | str = RequestMethod.GET,
    ) -> str | None:
        """Expand ``template`` into a URL, or ``None`` when no template is set.

        For GET the parameters are appended as query pairs with their values
        expanded. For POST the URL is returned as is; see ``build_body``.
        """
        if not template:
            return None

        url = self.expand(term, template)
        if RequestMethod.parse(method) is RequestMethod.POST:
            return url

        pairs = [
            f"{_quote_query(key)}={_quote_query(self.expand(term, value))}"
            for key, value in parameters
        ]
        return _append_query(url, pairs)

    def build_request(
        self,
        term: str,
        template: str,
        parameters: Iterable[tuple[str, str]] = (),
        method: RequestMethod | str = RequestMethod.GET,
    ) -> UrlRequest | None:
        parameters = list(parameters)
        request_method = RequestMethod.parse(method) or RequestMethod.GET
        url = self.build_url(term, template, parameters, request_method)
        if url is None:
            return None
        body = build_body(parameters) if request_method is RequestMethod.POST else None
        return UrlRequest(url=url, method=request_method, body=body)
