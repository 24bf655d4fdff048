"""
Invocation boundary: checks a conversion request, then builds the graph and
runs the engine.
"""
from typing import Any, Iterable, List, Optional, Union

from iacforge import engine
from iacforge.errors import ValidationError
from iacforge.graph.builder import build_graph, normalize_provider
from iacforge.mappings import MappingTables
from iacforge.models.artifact import ConversionResult, IaCFormat, Provider

FORMAT_CHOICES = [f.value for f in IaCFormat]


def parse_formats(formats: Iterable[Union[str, IaCFormat]]) -> List[IaCFormat]:
    parsed: List[IaCFormat] = []
    for f in formats:
        value = f.value if isinstance(f, IaCFormat) else str(f).strip().lower()
        try:
            fmt = IaCFormat(value)
        except ValueError:
            raise ValidationError(
                f"Unknown format '{f}'; expected one of {', '.join(FORMAT_CHOICES)}"
            ) from None
        if fmt not in parsed:
            parsed.append(fmt)
    if not parsed:
        raise ValidationError("At least one output format must be requested")
    return parsed


def convert(
    document: Any,
    formats: Iterable[Union[str, IaCFormat]],
    provider: Optional[str] = None,
    tables: Optional[MappingTables] = None,
    parallel: bool = False,
) -> ConversionResult:
    """
    Convert a parsed analysis document into IaC artifacts.

    `provider` defaults to the document's own provider tag. Raises
    ValidationError for malformed requests or graphs; per-format problems
    come back as warnings on the result.
    """
    requested = parse_formats(formats)
    if provider is None:
        provider = document.get("provider") if isinstance(document, dict) else None
    target = Provider(normalize_provider(provider))

    if IaCFormat.CLOUDFORMATION in requested and target is not Provider.AWS:
        raise ValidationError(
            f"CloudFormation output is only available for aws, not {target.value}"
        )

    graph = build_graph(document, target.value)
    artifacts, warnings = engine.run(graph, requested, tables=tables, parallel=parallel)
    return ConversionResult(provider=target, artifacts=artifacts, warnings=warnings)
