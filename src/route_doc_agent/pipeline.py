"""One documentation run: resolve -> synthesize -> plan -> merge -> write."""

import logging
from dataclasses import dataclass
from pathlib import Path

from route_doc_agent.config import Settings
from route_doc_agent.document.merger import DocumentMerger, MergeState
from route_doc_agent.document.registry import ComponentRegistry
from route_doc_agent.document.store import detect_format, dump_document, load_document, resolve_target, write_document
from route_doc_agent.generator.narrative import NarrativeWriter, tag_name
from route_doc_agent.generator.operation import OperationSynthesizer
from route_doc_agent.generator.planner import SchemaPlanner
from route_doc_agent.parser.base import HandlerBinding
from route_doc_agent.parser.routes import resolve_route, require_binding
from route_doc_agent.parser.source import find_model_classes, load_sources

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    binding: HandlerBinding
    target: Path
    state: MergeState
    text: str
    written: bool


def resolve_handler(handler: str, source: Path):
    """Resolve a handler against the sources; raises ResolutionError on failure."""
    modules = load_sources(source)
    return require_binding(resolve_route(handler, modules)), modules


def document_handler(
    handler: str,
    target: str | Path,
    source: Path,
    settings: Settings | None = None,
    dry_run: bool = False,
) -> RunResult:
    """Document one handler into the target document.

    Every failure is raised before the write, so the target is either fully
    replaced or left untouched.
    """
    settings = settings or Settings()
    target_path = resolve_target(target, settings)

    found, modules = resolve_handler(handler, source)
    binding = found.binding

    snapshot = load_document(target_path)
    merger = DocumentMerger(settings)
    document, created = merger.start(snapshot, tag_name(binding.scope_name))
    registry = ComponentRegistry(document)

    synthesizer = OperationSynthesizer(
        security_scheme=settings.security_scheme_name,
        narrative_writer=NarrativeWriter(model=settings.model),
    )
    operation = synthesizer.synthesize(
        binding,
        found.declaration,
        models=find_model_classes(modules),
        templates=registry.response_templates(),
    )
    planner = SchemaPlanner(settings.inline_leaf_limit, settings.nested_field_limit)
    operation = planner.plan(operation, registry)

    state = merger.merge(document, binding, operation, created=created)
    text = dump_document(document, detect_format(target_path))

    if state is MergeState.UNCHANGED:
        logger.info("%s already documented", binding.address)
    if not dry_run:
        write_document(target_path, text)
    return RunResult(binding=binding, target=target_path, state=state, text=text, written=not dry_run)
