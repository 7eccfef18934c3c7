"""Metadata sources."""

from .base import BaseSource, SourceRegistry, clean_doi, clean_html, create_sources, doi_to_url, is_pdf_url
from .crossref import CrossRefSource
from .openalex import OpenAlexSource
from .pdf import PdfSource
from .semantic_scholar import SemanticScholarSource
from .unpaywall import UnpaywallSource

__all__ = [
    "BaseSource",
    "SourceRegistry",
    "create_sources",
    "clean_doi",
    "clean_html",
    "doi_to_url",
    "is_pdf_url",
    "CrossRefSource",
    "OpenAlexSource",
    "UnpaywallSource",
    "SemanticScholarSource",
    "PdfSource",
]
