"""Enrichment helpers that work on downloaded content."""

from .abstract_locator import find_last_affiliation_end, locate_abstract

__all__ = ["locate_abstract", "find_last_affiliation_end"]
