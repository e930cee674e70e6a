#!/usr/bin/env python3
"""
ITSM Intelligence CLI - normalize, patterns, gaps, ci, user, summarize
Every command reads tickets from one source, runs one analysis, and writes its
results under --output-dir.
"""

import functools
import json
import logging
from pathlib import Path
from typing import Optional

import click
import structlog

from services.analyze import TicketAnalyzer, create_completion_client
from services.ingest import ServiceNowClient
from services.pipeline.sources import TicketLoader
from services.report import (
    build_ci_report,
    build_user_report,
    gap_to_draft,
    merge_role_buckets,
    push_drafts,
    render_ci_report,
    render_user_report,
    sort_tickets,
    write_drafts,
    write_report,
)
from shared.config import Settings
from shared.errors import TicketIntelligenceError
from shared.schemas.ticket import TicketSource, UserRole

log = structlog.get_logger()

SOURCE_CHOICES = [s.value for s in TicketSource]


def configure_logging(verbose: bool):
    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


def common_options(func):
    """Source, window and output options shared by every command"""
    options = [
        click.option("--source", "-s", type=click.Choice(SOURCE_CHOICES), default="file",
                      show_default=True, help="Where tickets come from"),
        click.option("--file", "-f", "file_path", type=click.Path(), default=None,
                      help="Export file (.csv, .tsv or .json) when --source=file"),
        click.option("--months-back", "-m", type=int, default=None,
                      help="Age window in months (default: MONTHS_BACK or 6)"),
        click.option("--min-occurrences", type=int, default=None,
                      help="Minimum tickets per pattern (default: MIN_OCCURRENCES or 3)"),
        click.option("--skip-ai", is_flag=True, help="Use basic detection only"),
        click.option("--output-dir", "-o", default="./output", show_default=True,
                      help="Output directory for results"),
        click.option("--verbose", "-v", is_flag=True, help="Debug logging"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def handle_errors(func):
    """Turn domain errors and missing files into a non-zero exit"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (TicketIntelligenceError, FileNotFoundError) as e:
            log.error("Command failed", error=str(e), error_type=type(e).__name__)
            raise click.ClickException(str(e)) from e
    return wrapper


class RunContext:
    """Settings, loader and analyzer for one command invocation"""

    def __init__(self, source: str, file_path: Optional[str], months_back: Optional[int],
                 min_occurrences: Optional[int], skip_ai: bool, output_dir: str, verbose: bool):
        configure_logging(verbose)
        settings = Settings.from_env()
        updates = {}
        if months_back is not None:
            updates["months_back"] = months_back
        if min_occurrences is not None:
            updates["min_occurrences"] = min_occurrences
        self.settings = settings.model_copy(update=updates)

        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.loader = TicketLoader(self.settings, source=source, file_path=file_path)

        completion_client = None if skip_ai else create_completion_client(self.settings)
        self.analyzer = TicketAnalyzer(completion_client, min_occurrences=self.settings.min_occurrences)
        log.info("Run config", source=source, months_back=self.settings.months_back,
                 min_occurrences=self.settings.min_occurrences, ai=not skip_ai,
                 ai_provider=None if skip_ai else self.settings.ai_provider)

    def write_json(self, name: str, data) -> Path:
        path = self.output_dir / name
        with open(path, "w") as f:
            json.dump(data, f, indent=2, default=str)
        log.info("Wrote output", path=str(path))
        return path

    def close(self):
        self.loader.close()
        client = self.analyzer.completion_client
        if client is not None:
            client.close()


def _echo_warnings(warnings: list[str]):
    for warning in warnings:
        click.echo(f"⚠️  {warning}", err=True)


@click.group()
def cli():
    """ITSM ticket intelligence: recurring patterns, KB gaps, CI and user reports."""


@cli.command()
@common_options
@click.option("--ci", "ci_name", default=None, help="Keep tickets mentioning this configuration item")
@click.option("--user", default=None, help="Keep tickets involving this user")
@click.option("--role", type=click.Choice([r.value for r in UserRole]), default=UserRole.BOTH.value,
              show_default=True, help="Which people fields --user matches")
@handle_errors
def normalize(ci_name: Optional[str], user: Optional[str], role: str, **options):
    """Normalize tickets to the canonical format."""
    run = RunContext(**options)
    try:
        tickets = run.loader.fetch_all(ci_name=ci_name, user=user, role=UserRole(role))
        path = run.write_json("tickets_normalized.json", [t.model_dump() for t in tickets])
    finally:
        run.close()
    click.echo(f"\n✅ Normalized {len(tickets)} tickets -> {path}")


@cli.command()
@common_options
@handle_errors
def patterns(**options):
    """Find recurring issue patterns."""
    run = RunContext(**options)
    try:
        tickets = run.loader.fetch_all()
        result = run.analyzer.find_patterns(tickets)
        path = run.write_json("patterns.json", result.model_dump())
    finally:
        run.close()

    _echo_warnings(result.warnings)
    click.echo(f"\n✅ {len(result.patterns)} patterns from {len(tickets)} tickets -> {path}")
    for p in result.patterns:
        click.echo(f"   {p.occurrence_count:>4}  {p.pattern_label}")


@cli.command()
@common_options
@click.option("--push-drafts", "push", is_flag=True, help="Create the drafts in ServiceNow kb_knowledge")
@handle_errors
def gaps(push: bool, **options):
    """Find knowledge-base gaps and write article drafts."""
    run = RunContext(**options)
    try:
        tickets = run.loader.fetch_all()
        articles = run.loader.fetch_kb_articles()
        result = run.analyzer.find_gaps(tickets, articles)
        path = run.write_json("gaps.json", result.model_dump())

        drafts = [gap_to_draft(g) for g in result.gaps]
        draft_paths = write_drafts(drafts, run.output_dir / "kb_drafts")
        if push and drafts:
            _push(run, drafts)
    finally:
        run.close()

    _echo_warnings(result.warnings)
    click.echo(f"\n✅ {len(result.gaps)} knowledge gaps -> {path}")
    click.echo(f"   {len(draft_paths)} drafts in {run.output_dir / 'kb_drafts'}")


def _push(run: RunContext, drafts):
    if run.loader.source == TicketSource.SERVICENOW:
        push_drafts(drafts, run.loader.client)
        return
    run.settings.require_servicenow()
    with ServiceNowClient(
        run.settings.servicenow_instance,
        run.settings.servicenow_username,
        run.settings.servicenow_password,
        timeout=run.settings.request_timeout,
    ) as client:
        push_drafts(drafts, client)


@cli.command()
@click.option("--ci", "ci_name", required=True, help="Configuration item name")
@common_options
@handle_errors
def ci(ci_name: str, **options):
    """Report everything about one configuration item."""
    run = RunContext(**options)
    try:
        tickets = run.loader.fetch_for_ci(ci_name)
        analysis = run.analyzer.analyze(tickets, subject=f"configuration item {ci_name}")
        report = build_ci_report(ci_name, tickets, analysis)
        run.write_json("ci_report.json", report.model_dump())
        html_path = write_report(render_ci_report(report), run.output_dir / "ci_report.html")
    finally:
        run.close()

    _echo_warnings(report.analysis.warnings)
    click.echo(f"\n✅ CI report for {ci_name}: {report.stats.total} tickets, "
               f"{report.stats.open} open -> {html_path}")


@cli.command()
@click.option("--user", "user", required=True, help="User name to report on")
@common_options
@handle_errors
def user(user: str, **options):
    """Report tickets a user requested, worked on, or was mentioned in."""
    run = RunContext(**options)
    try:
        merged = merge_role_buckets(run.loader.fetch_for_user(user))
        all_tickets = sort_tickets(t for bucket in merged.values() for t in bucket)
        analysis = run.analyzer.analyze(all_tickets, subject=f"user {user}")
        report = build_user_report(user, merged, analysis)
        run.write_json("user_report.json", report.model_dump())
        html_path = write_report(render_user_report(report), run.output_dir / "user_report.html")
    finally:
        run.close()

    _echo_warnings(report.analysis.warnings)
    counts = ", ".join(f"{role}: {len(items)}" for role, items in report.buckets.items())
    click.echo(f"\n✅ User report for {user} ({counts}) -> {html_path}")


@cli.command()
@click.option("--ci", "ci_name", default=None, help="Limit to one configuration item")
@common_options
@handle_errors
def summarize(ci_name: Optional[str], **options):
    """Summarize a ticket set in plain text."""
    run = RunContext(**options)
    try:
        if ci_name:
            tickets = run.loader.fetch_for_ci(ci_name)
            subject = f"configuration item {ci_name}"
        else:
            tickets = run.loader.fetch_all()
            subject = "all tickets"
        result = run.analyzer.summarize(tickets, subject=subject)
        path = run.output_dir / "summary.md"
        path.write_text(result.summary + "\n", encoding="utf-8")
    finally:
        run.close()

    _echo_warnings(result.warnings)
    click.echo(result.summary)
    click.echo(f"\n✅ Summary -> {path}")


if __name__ == "__main__":
    cli()
