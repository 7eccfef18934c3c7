"""Base source definitions and registry."""

import html
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import requests

from storyscout.config.settings import Settings
from storyscout.core.exceptions import SourceFetchError
from storyscout.core.models import EnrichmentFields
from storyscout.utils.text import is_pdf_url

logger = logging.getLogger(__name__)


class BaseSource(ABC):
    """Abstract base class for metadata sources.

    A source answers one question: given an identifier (a bare DOI, or a URL
    for the PDF source), what can it add to a publication record?
    """

    def __init__(self, settings: Settings, session: requests.Session | None = None):
        self.settings = settings
        self.timeout = settings.sources.timeout
        if session is None:
            session = requests.Session()
            session.headers["User-Agent"] = settings.sources.user_agent
        self.session = session

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique source identifier."""
        ...

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """Whether this source is enabled in config."""
        ...

    @abstractmethod
    def fetch(self, identifier: str) -> EnrichmentFields | None:
        """Return the fields this source knows, or None when it has nothing usable.

        Raises:
            SourceFetchError: On transport failure, non-2xx (other than 404)
                or a malformed body.
        """
        ...

    def _get_json(self, url: str, **kwargs: Any) -> dict[str, Any] | None:
        """GET ``url`` and decode JSON. Returns None on 404."""
        kwargs.setdefault("timeout", self.timeout)
        try:
            resp = self.session.get(url, **kwargs)
        except requests.RequestException as exc:
            raise SourceFetchError(self.name, f"request failed: {exc}") from exc

        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise SourceFetchError(self.name, f"HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise SourceFetchError(self.name, f"malformed JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise SourceFetchError(self.name, "unexpected response shape")
        return data


class SourceRegistry:
    """Registry mapping source names to implementations."""

    _sources: dict[str, type[BaseSource]] = {}

    @classmethod
    def register(cls, name: str) -> Callable[[type[BaseSource]], type[BaseSource]]:
        """Decorator to register a source under ``name``."""

        def decorator(source_class: type[BaseSource]) -> type[BaseSource]:
            cls._sources[name] = source_class
            return source_class

        return decorator

    @classmethod
    def create_all(cls, settings: Settings, session: requests.Session | None = None) -> dict[str, BaseSource]:
        """Instantiate every registered source, enabled or not."""
        return {name: source_class(settings, session=session) for name, source_class in cls._sources.items()}

    @classmethod
    def all_sources(cls) -> dict[str, type[BaseSource]]:
        """Get all registered sources."""
        return cls._sources.copy()


def create_sources(settings: Settings, session: requests.Session | None = None) -> dict[str, BaseSource]:
    """Convenience function to build the name -> source map."""
    return SourceRegistry.create_all(settings, session=session)


# Helper functions for parsing

_DOI_URL_PREFIX = re.compile(r"^https?://(?:dx\.)?doi\.org/", re.IGNORECASE)
_DOI_SCHEME = re.compile(r"^doi:", re.IGNORECASE)


def clean_doi(raw: str | None) -> str | None:
    """Reduce any stored DOI form to the bare ``10.xxxx/...`` identifier.

    Accepts ``http(s)://(dx.)doi.org/`` URLs, ``doi:`` prefixes and bare
    DOIs. Returns None when the result does not start with ``10.``.
    """
    if not raw:
        return None
    doi = _DOI_URL_PREFIX.sub("", raw.strip())
    doi = _DOI_SCHEME.sub("", doi).strip()
    if not doi.startswith("10."):
        return None
    return doi


def doi_to_url(raw: str | None) -> str | None:
    """Canonical ``https://doi.org/`` URL for a DOI in any stored form."""
    doi = clean_doi(raw)
    return f"https://doi.org/{doi}" if doi else None


def clean_html(value: str | None) -> str | None:
    """Clean HTML/JATS tags from string."""
    if not value:
        return None
    text = re.sub(r"<[^>]+>", " ", value)
    text = html.unescape(text)
    text = re.sub(r"\s+", " ", text).strip()
    return text or None


__all__ = [
    "BaseSource",
    "SourceRegistry",
    "create_sources",
    "clean_doi",
    "doi_to_url",
    "is_pdf_url",
    "clean_html",
]
