"""Main CLI entry point using Click."""

import logging
from pathlib import Path

import click
from dotenv import load_dotenv

from storyscout import __version__
from storyscout.config import Settings, load_settings
from storyscout.core.exceptions import ConfigurationError, StoryScoutError
from storyscout.core.models import AnalysisRequest, EnrichmentRequest
from storyscout.infrastructure.storage import PublicationStorage
from storyscout.llm import create_llm_client
from storyscout.output import load_for_export, render_html, write_csv, write_json
from storyscout.pipeline import events
from storyscout.pipeline.events import ProgressEvent
from storyscout.pipeline.jobs import JobHandle, start_analysis_job, start_enrichment_job
from storyscout.sources import clean_doi, create_sources
from storyscout.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def _get_base_dir() -> Path:
    """Get base directory from current working directory or its parents."""
    cwd = Path.cwd()
    if (cwd / "config" / "config.yaml").exists():
        return cwd
    for parent in cwd.parents:
        if (parent / "config" / "config.yaml").exists():
            return parent
    return cwd


@click.group()
@click.option("--base-dir", type=click.Path(exists=True), default=None, help="Repository base directory")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__, prog_name="storyscout")
@click.pass_context
def cli(ctx: click.Context, base_dir: str | None, verbose: bool) -> None:
    """StoryScout - Find the press-worthy stories in a publication list."""
    ctx.ensure_object(dict)

    base = Path(base_dir) if base_dir else _get_base_dir()
    load_dotenv(base / ".env")
    setup_logging(verbose=verbose)

    ctx.obj["base_dir"] = base
    ctx.obj["verbose"] = verbose
    ctx.obj["_settings"] = None


def _get_settings(ctx: click.Context) -> Settings:
    """Get or load settings."""
    if ctx.obj["_settings"] is None:
        try:
            ctx.obj["_settings"] = load_settings(ctx.obj["base_dir"])
        except ConfigurationError as exc:
            raise click.ClickException(str(exc)) from exc
    return ctx.obj["_settings"]


def _open_storage(ctx: click.Context) -> PublicationStorage:
    storage = PublicationStorage(_get_settings(ctx).storage_path(ctx.obj["base_dir"]))
    storage.initialize()
    return storage


def _render_event(event: ProgressEvent, verbose: bool) -> None:
    """Print one event as a human-readable line."""
    data = event.data
    if event.type == events.INIT:
        budget = data.get("budget") or {}
        effective = budget.get("effective_budget")
        click.echo(
            f"Scoring {data.get('total')} publications with {data.get('model')} "
            f"(key {data.get('credential_hint') or 'n/a'}, "
            f"budget {'unknown' if effective is None else f'${effective:.4f}'})"
        )
    elif event.type == events.PUB_START:
        click.echo(f"[{data['index'] + 1}/{data['total']}] {data.get('title', '')[:90]}")
    elif event.type == events.SOURCE_DONE:
        if data.get("status") != "skipped" or verbose:
            suffix = f" ({data['error']})" if data.get("error") else ""
            fallback = " [fallback]" if data.get("fallback") else ""
            click.echo(f"    {data['source']:<17}{data['status']}{fallback}{suffix}")
    elif event.type == events.PUB_DONE:
        sources = "+".join(data.get("sources_used") or []) or "-"
        click.echo(f"    => {data['final_status']} via {sources}")
    elif event.type == events.PROGRESS:
        click.echo(
            f"[{data['processed']}/{data['total']}] {data.get('current_title', '')[:80]} "
            f"(tokens {data['tokens_used']}, ${data['cost']:.4f})"
        )
    elif event.type == events.ERROR:
        prefix = "FATAL" if data.get("fatal") else "ERROR"
        click.secho(f"{prefix}: {data.get('message')}", fg="red", err=True)
    elif event.type == events.COMPLETE:
        click.echo("")
        click.echo("Done." if not data.get("cancelled") else "Cancelled.")
        for key, value in data.items():
            if key != "cancelled":
                click.echo(f"  {key}: {value}")


def _stream(handle: JobHandle, sse: bool, verbose: bool) -> None:
    """Print job events until the job closes its channel; Ctrl-C requests cancellation."""
    if not handle.started:
        click.echo(handle.message)
        return

    def drain() -> None:
        for event in handle.events():
            if sse:
                click.echo(event.to_sse(), nl=False)
            else:
                _render_event(event, verbose)

    try:
        drain()
    except KeyboardInterrupt:
        click.echo("Cancelling after the current item...", err=True)
        handle.cancel()
        try:
            drain()
        except KeyboardInterrupt:
            click.echo("Waiting for the current item to finish...", err=True)
    finally:
        # The worker shares the store connection; it must finish before the store closes.
        handle.join()


@cli.command()
@click.option("--limit", type=int, default=None, help="Maximum records to enrich (max 500)")
@click.option("--include-partial", is_flag=True, help="Retry records previously enriched partially")
@click.option("--include-no-doi", is_flag=True, help="Also process records without a DOI")
@click.option("--sse", is_flag=True, help="Print raw server-sent-event blocks")
@click.pass_context
def enrich(
    ctx: click.Context,
    limit: int | None,
    include_partial: bool,
    include_no_doi: bool,
    sse: bool,
) -> None:
    """Fill in abstracts, keywords and journals from open metadata sources."""
    settings = _get_settings(ctx)
    request = EnrichmentRequest.from_config(
        settings.enrichment,
        limit=limit,
        include_partial=include_partial or None,
        include_no_doi=include_no_doi or None,
    )
    with _open_storage(ctx) as storage:
        handle = start_enrichment_job(settings, storage, request)
        _stream(handle, sse, ctx.obj["verbose"])


@cli.command()
@click.option("--limit", type=int, default=None, help="Maximum records to score (max 100)")
@click.option("--batch-size", type=int, default=None, help="Publications per LLM call (1-5)")
@click.option("--min-words", type=int, default=None, help="Skip records with fewer content words")
@click.option("--force", is_flag=True, help="Re-score already analyzed records")
@click.option("--enriched-only", is_flag=True, help="Only records with an enriched abstract")
@click.option("--include-partial", is_flag=True, help="With --enriched-only, also partial records")
@click.option("--sse", is_flag=True, help="Print raw server-sent-event blocks")
@click.pass_context
def analyze(
    ctx: click.Context,
    limit: int | None,
    batch_size: int | None,
    min_words: int | None,
    force: bool,
    enriched_only: bool,
    include_partial: bool,
    sse: bool,
) -> None:
    """Score publications for press-worthiness with an LLM."""
    settings = _get_settings(ctx)
    request = AnalysisRequest.from_config(
        settings.analysis,
        limit=limit,
        sub_batch_size=batch_size,
        min_word_count=min_words,
        force_reanalyze=force or None,
        enriched_only=enriched_only or None,
        include_partial=include_partial or None,
    )
    with _open_storage(ctx) as storage:
        try:
            handle = start_analysis_job(settings, storage, request)
        except ConfigurationError as exc:
            raise click.ClickException(str(exc)) from exc
        _stream(handle, sse, ctx.obj["verbose"])


@cli.command()
@click.pass_context
def budget(ctx: click.Context) -> None:
    """Show remaining OpenRouter credit."""
    settings = _get_settings(ctx)
    try:
        llm = create_llm_client(settings.llm)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc

    snapshot = llm.check_budget()
    click.echo(f"Key: {llm.credential_hint()}")
    for key, value in snapshot.model_dump().items():
        click.echo(f"  {key}: {'unknown' if value is None else f'${value:.4f}'}")
    if snapshot.effective_budget is not None and snapshot.effective_budget < settings.analysis.min_budget:
        click.secho("Budget exhausted: scoring runs will abort.", fg="red")


@cli.command()
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["csv", "json", "html"]),
    default="csv",
    show_default=True,
    help="Export format",
)
@click.option("--output", "output_path", type=click.Path(), default=None, help="Output file path")
@click.option("--all", "include_all", is_flag=True, help="Include records that were not analyzed")
@click.pass_context
def export(ctx: click.Context, fmt: str, output_path: str | None, include_all: bool) -> None:
    """Export publications ranked by press score."""
    base_dir = ctx.obj["base_dir"]
    path = Path(output_path) if output_path else base_dir / "reports" / f"publications.{fmt}"

    with _open_storage(ctx) as storage:
        publications = load_for_export(storage, analyzed_only=not include_all)

    if fmt == "csv":
        write_csv(publications, path)
    elif fmt == "json":
        write_json(publications, path)
    else:
        render_html(publications, path)
    click.echo(f"Exported {len(publications)} publications to {path}")


@cli.command()
@click.argument("doi")
@click.pass_context
def probe(ctx: click.Context, doi: str) -> None:
    """Query every metadata source for one DOI and report what each returns."""
    settings = _get_settings(ctx)
    bare = clean_doi(doi)
    if bare is None:
        raise click.BadParameter(f"not a DOI: {doi}", param_hint="DOI")

    for name, source in create_sources(settings).items():
        if name == "pdf":
            continue
        if not source.enabled:
            click.echo(f"{name:<17}disabled")
            continue
        try:
            result = source.fetch(bare)
        except StoryScoutError as exc:
            click.secho(f"{name:<17}error: {exc}", fg="red")
            continue
        if result is None:
            click.echo(f"{name:<17}no data")
            continue
        click.secho(f"{name:<17}ok", fg="green")
        click.echo(f"    abstract: {(result.abstract or '-')[:100]}")
        click.echo(f"    journal:  {result.journal or '-'}")
        click.echo(f"    keywords: {', '.join(result.keywords[:5]) or '-'}")
        click.echo(f"    pdf_url:  {result.pdf_url or '-'}")


if __name__ == "__main__":
    cli()
