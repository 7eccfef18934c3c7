"""HTML press report generation."""

import logging
from importlib import resources
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from storyscout.core.constants import SCORE_DIMENSIONS
from storyscout.core.models import Publication
from storyscout.utils.datetime import utc_now
from storyscout.utils.text import decode_title

logger = logging.getLogger(__name__)


def _get_builtin_template_dir() -> Path:
    """Get path to built-in templates directory."""
    return Path(str(resources.files("storyscout.templates")))


def _percent(value: float | None) -> str:
    return "–" if value is None else f"{value * 100:.0f}%"


def render_html(
    publications: list[Publication],
    output_path: Path | str,
    *,
    template_dir: Path | str | None = None,
    template_name: str = "report.html",
    title: str = "StoryScout press report",
) -> Path:
    """Render a ranked press report.

    Args:
        publications: Records ordered as they should appear.
        output_path: Destination file.
        template_dir: Directory overriding the built-in templates.
        template_name: Template file to render.
        title: Report heading.

    Returns:
        Path of the written report.
    """
    search_path = Path(template_dir) if template_dir else _get_builtin_template_dir()
    env = Environment(
        loader=FileSystemLoader(str(search_path)),
        autoescape=select_autoescape(["html", "xml"]),
    )
    env.filters["percent"] = _percent
    env.filters["decode_title"] = decode_title
    template = env.get_template(template_name)

    rendered = template.render(
        title=title,
        publications=publications,
        dimensions=SCORE_DIMENSIONS,
        generated_at=utc_now(),
    )
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(rendered, encoding="utf-8")
    logger.info("Wrote HTML report with %d publications to %s", len(publications), path)
    return path


__all__ = ["render_html"]
