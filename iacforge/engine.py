"""
Orchestrator: runs the requested emitters over one validated graph.

Generation is best-effort per format: a failing emitter costs only its own
artifact and leaves a warning; the graph itself was validated up front.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Tuple, Union

from rich.console import Console

from iacforge.emitters import get_emitter
from iacforge.errors import EmissionError
from iacforge.mappings import MappingTables, load_mapping_tables
from iacforge.models.artifact import GeneratedArtifact, GenerationWarning, IaCFormat, WarningKind
from iacforge.models.resource import ResourceGraph

console = Console(stderr=True)

_Outcome = Tuple[Optional[GeneratedArtifact], List[GenerationWarning]]


def _requested(formats: Iterable[Union[str, IaCFormat]]) -> List[IaCFormat]:
    """Requested formats in caller order, duplicates dropped."""
    return list(dict.fromkeys(IaCFormat(f) for f in formats))


def _unmapped_warnings(
    graph: ResourceGraph, tables: MappingTables, fmt: IaCFormat
) -> List[GenerationWarning]:
    warnings = []
    for r in graph.ordered():
        if tables.lookup(graph.provider, r.type, fmt) is None:
            warnings.append(GenerationWarning(
                kind=WarningKind.UNMAPPED_RESOURCE,
                format=fmt,
                resource=r.name,
                message=(
                    f"Resource '{r.name}' of type '{r.type}' has no {fmt.value} mapping "
                    f"for {graph.provider}; emitted as a generic unmanaged construct"
                ),
            ))
    return warnings


def _emit_one(graph: ResourceGraph, tables: MappingTables, fmt: IaCFormat) -> _Outcome:
    try:
        code, filename = get_emitter(fmt)(graph, tables)
    except EmissionError as exc:
        reason = str(exc)
        resource = exc.resource
    except Exception as exc:  # rendering defect: drop this format only
        reason = f"{type(exc).__name__}: {exc}"
        resource = None
    else:
        artifact = GeneratedArtifact(
            format=fmt, code=code, filename=filename, resources=list(graph.order)
        )
        return artifact, _unmapped_warnings(graph, tables, fmt)

    console.print(f"[yellow]Warning:[/yellow] {fmt.value} generation failed: {reason}")
    return None, [GenerationWarning(
        kind=WarningKind.EMISSION_FAILED,
        format=fmt,
        resource=resource,
        message=f"{fmt.value} output was not generated: {reason}",
    )]


def run(
    graph: ResourceGraph,
    formats: Iterable[Union[str, IaCFormat]],
    tables: Optional[MappingTables] = None,
    parallel: bool = False,
) -> Tuple[List[GeneratedArtifact], List[GenerationWarning]]:
    """
    Emit one artifact per requested format.

    Results follow the requested order regardless of completion order, so
    parallel and sequential runs return identical lists.
    """
    tables = tables or load_mapping_tables()
    requested = _requested(formats)

    outcomes: Dict[IaCFormat, _Outcome] = {}
    if parallel and len(requested) > 1:
        with ThreadPoolExecutor(max_workers=len(requested)) as pool:
            futures = {fmt: pool.submit(_emit_one, graph, tables, fmt) for fmt in requested}
            outcomes = {fmt: fut.result() for fmt, fut in futures.items()}
    else:
        for fmt in requested:
            outcomes[fmt] = _emit_one(graph, tables, fmt)

    artifacts: List[GeneratedArtifact] = []
    warnings: List[GenerationWarning] = [
        GenerationWarning(kind=WarningKind.NETWORK_MERGED, message=n) for n in graph.notices
    ]
    for fmt in requested:
        artifact, fmt_warnings = outcomes[fmt]
        if artifact is not None:
            artifacts.append(artifact)
        warnings.extend(fmt_warnings)

    return artifacts, warnings
