"""CLI entry point for route-doc-agent."""

import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from route_doc_agent.config import Settings
from route_doc_agent.errors import RouteDocError
from route_doc_agent.pipeline import document_handler, resolve_handler


class RunFailed(click.ClickException):
    """A route-doc error reported with its category's exit code."""

    def __init__(self, error: RouteDocError):
        super().__init__(error.message)
        self.exit_code = error.exit_code


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _read_inputs(stream) -> tuple[str, str]:
    """Read the handler identifier and target path as two lines from a stream."""
    lines = [line.strip() for line in stream.read().splitlines() if line.strip()]
    if len(lines) < 2:
        raise click.UsageError("Expected two lines on standard input: handler identifier, then target document path.")
    return lines[0], lines[1]


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def main(ctx: click.Context, verbose: bool):
    """Route Doc Agent — document HTTP handlers into a shared OpenAPI file."""
    try:
        settings = Settings()
    except ValidationError as e:
        problems = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        raise click.ClickException(f"Invalid ROUTE_DOC_* configuration: {problems}") from e
    _setup_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = settings


@main.command()
@click.argument("handler", required=False)
@click.argument("target", required=False)
@click.option("-s", "--source", type=click.Path(exists=True, path_type=Path), default=None, help="Handler source file or directory.")
@click.option("--model", default=None, help="LLM model used to word narratives for undocumented handlers.")
@click.option("--dry-run", is_flag=True, help="Print the merged document instead of writing it.")
@click.pass_obj
def document(settings: Settings, handler: str | None, target: str | None, source: Path | None, model: str | None, dry_run: bool):
    """Document HANDLER into the TARGET OpenAPI document.

    When HANDLER and TARGET are omitted they are read from standard input,
    one per line.
    """
    if handler is None or target is None:
        if handler is not None or target is not None:
            raise click.UsageError("Give both HANDLER and TARGET, or neither and pipe them on stdin.")
        handler, target = _read_inputs(click.get_text_stream("stdin"))
    if model:
        settings = settings.model_copy(update={"model": model})
    source = source or Path(settings.source_root)

    click.echo(f"Documenting {handler} into {target}...", err=True)
    try:
        result = document_handler(handler, target, source, settings=settings, dry_run=dry_run)
    except RouteDocError as e:
        raise RunFailed(e) from e

    if dry_run:
        click.echo(result.text, nl=False)
    click.echo(f"{result.binding.address}: {result.state.value}", err=True)
    if result.written:
        click.echo(f"Document saved to {result.target}", err=True)


@main.command()
@click.argument("handler")
@click.option("-s", "--source", type=click.Path(exists=True, path_type=Path), default=None, help="Handler source file or directory.")
@click.pass_obj
def resolve(settings: Settings, handler: str, source: Path | None):
    """Show the route registration that binds HANDLER."""
    source = source or Path(settings.source_root)
    try:
        found, _ = resolve_handler(handler, source)
    except RouteDocError as e:
        raise RunFailed(e) from e

    binding = found.binding
    click.echo(binding.address)
    click.echo(f"  scope:      {binding.scope_name}")
    click.echo(f"  registered: {binding.http_verb.upper()} {binding.route_template!r} in {binding.class_name} ({binding.source_file}:{binding.line})")
    if binding.path_parameters:
        click.echo(f"  parameters: {', '.join(binding.path_parameters)}")
