"""CSV and JSON export of scored publications."""

import csv
import io
import json
import logging
from collections.abc import Iterable
from pathlib import Path

from storyscout.core.models import AnalysisStatus, Publication
from storyscout.core.protocols import PublicationFilter, PublicationStore

logger = logging.getLogger(__name__)

CSV_COLUMNS = (
    "title",
    "authors",
    "doi",
    "published_at",
    "publication_type",
    "institute",
    "press_score",
    "public_accessibility",
    "societal_relevance",
    "novelty_factor",
    "storytelling_potential",
    "media_timeliness",
    "pitch_suggestion",
    "target_audience",
    "suggested_angle",
    "reasoning",
    "llm_model",
    "enriched_journal",
    "open_access",
)


def load_for_export(storage: PublicationStore, analyzed_only: bool = True) -> list[Publication]:
    """Records to export, highest press score first."""
    criteria = PublicationFilter(analysis_statuses=(AnalysisStatus.ANALYZED,) if analyzed_only else None)
    return storage.query(criteria, order="press_score")


def _csv_value(value: object) -> object:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def render_csv(publications: Iterable[Publication]) -> str:
    """CSV text with a fixed header; quoting follows RFC 4180."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for pub in publications:
        writer.writerow([_csv_value(getattr(pub, column)) for column in CSV_COLUMNS])
    return buffer.getvalue()


def render_json(publications: Iterable[Publication]) -> str:
    """JSON array of full records."""
    return json.dumps([pub.model_dump(mode="json") for pub in publications], ensure_ascii=False, indent=2)


def write_csv(publications: Iterable[Publication], output_path: Path | str) -> Path:
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    # newline="" keeps the csv module's CRLF record terminators intact
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(render_csv(publications))
    logger.info("Wrote CSV export to %s", path)
    return path


def write_json(publications: Iterable[Publication], output_path: Path | str) -> Path:
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_json(publications), encoding="utf-8")
    logger.info("Wrote JSON export to %s", path)
    return path


__all__ = ["CSV_COLUMNS", "load_for_export", "render_csv", "render_json", "write_csv", "write_json"]
