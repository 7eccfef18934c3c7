"""Output formatters."""

from .export import CSV_COLUMNS, load_for_export, render_csv, render_json, write_csv, write_json
from .html import render_html

__all__ = ["CSV_COLUMNS", "load_for_export", "render_csv", "render_json", "write_csv", "write_json", "render_html"]
