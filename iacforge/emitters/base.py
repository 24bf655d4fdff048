"""
Machinery shared by all emitters: identifier assignment, mapping lookup,
reference detection, string escaping and the jinja2 environment used for
file skeletons.
"""
import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from jinja2 import Environment

from iacforge import __version__, naming
from iacforge.errors import EmissionError
from iacforge.mappings import MappingTables, ResourceMapping
from iacforge.models.artifact import IaCFormat
from iacforge.models.resource import CanonicalResource, PropertyValue, ResourceGraph

_ENV = Environment(trim_blocks=True, lstrip_blocks=True, keep_trailing_newline=True)

_PROGRAM_FORMATS = (IaCFormat.PULUMI_PYTHON, IaCFormat.PULUMI_TYPESCRIPT)

_C_ESCAPES = {
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def render_template(source: str, **context) -> str:
    return _ENV.from_string(source).render(**context)


def quote_string(value: str, quote: str = '"') -> str:
    """Double-quoted literal with C-style escapes (valid HCL, Python and TypeScript)."""
    out = []
    for ch in value:
        if ch in _C_ESCAPES:
            out.append(_C_ESCAPES[ch])
        elif ch == quote:
            out.append("\\" + ch)
        elif ord(ch) < 0x20 or ch in ("\u2028", "\u2029"):
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    return quote + "".join(out) + quote


def comment_text(value: str) -> str:
    """Single-line text safe to place after a line-comment marker."""
    return " ".join(value.split())


def check_number(value: float, fmt: IaCFormat, resource: str) -> None:
    if not math.isfinite(value):
        raise EmissionError(
            f"Non-finite number in resource '{resource}' cannot be rendered as {fmt.value}",
            format=fmt.value,
            resource=resource,
        )


def unsupported_value(value: object, fmt: IaCFormat, resource: str) -> EmissionError:
    return EmissionError(
        f"Resource '{resource}' has a {type(value).__name__} property value "
        f"that {fmt.value} cannot render",
        format=fmt.value,
        resource=resource,
    )


def unmanaged_type_token(resource_type: str) -> str:
    return naming.pascal_case(resource_type)


def header_lines(graph: ResourceGraph) -> List[str]:
    lines = [f"Generated by iacforge {__version__} (provider: {graph.provider})"]
    if graph.security is not None:
        lines.extend(f"Security: {line}" for line in graph.security.describe())
    return lines


@dataclass
class EmitContext:
    graph: ResourceGraph
    tables: MappingTables
    format: IaCFormat
    identifiers: Dict[str, str]
    mappings: Dict[str, Optional[ResourceMapping]]

    @classmethod
    def create(
        cls,
        graph: ResourceGraph,
        tables: MappingTables,
        fmt: IaCFormat,
        sanitize: Callable[[str], str],
        separator: str = "_",
    ) -> "EmitContext":
        mappings = {r.name: tables.lookup(graph.provider, r.type, fmt) for r in graph.resources}
        reserved = set()
        if fmt in _PROGRAM_FORMATS:
            # Namespaces the program imports cannot double as variable names
            reserved.add(tables.pulumi_package(graph.provider).get("alias"))
            reserved.update(
                m.identifier(fmt).split(".", 1)[0] for m in mappings.values() if m is not None
            )
            reserved.discard(None)
        return cls(
            graph=graph,
            tables=tables,
            format=fmt,
            identifiers=naming.unique_identifiers(graph.names, sanitize, separator, reserved),
            mappings=mappings,
        )

    def ordered(self) -> List[CanonicalResource]:
        return self.graph.ordered()

    def ident(self, name: str) -> str:
        return self.identifiers[name]

    def mapping(self, name: str) -> Optional[ResourceMapping]:
        return self.mappings[name]

    def is_reference(self, resource: CanonicalResource, value: str) -> bool:
        """A string equal to a declared dependency's name renders as a reference."""
        return value in resource.dependencies


def check_unique_keys(
    keys: List[str], fmt: IaCFormat, resource: str, reserved: Iterable[str] = ()
) -> None:
    """
    Two canonical properties renamed onto the same target key cannot both
    render, and no property may take a key the emitter writes itself.
    """
    reserved = set(reserved)
    seen = set()
    for key in keys:
        if key in reserved:
            raise EmissionError(
                f"Resource '{resource}' has a property rendered as '{key}', "
                f"which {fmt.value} output reserves for its own use",
                format=fmt.value,
                resource=resource,
            )
        if key in seen:
            raise EmissionError(
                f"Resource '{resource}' maps more than one property onto '{key}' in {fmt.value}",
                format=fmt.value,
                resource=resource,
            )
        seen.add(key)


def rename_fields(
    mapping: ResourceMapping, prop: str, value: PropertyValue, fmt: IaCFormat, resource: str
) -> PropertyValue:
    """
    Apply the nested key renames of `prop` to a mapping value, or to each
    mapping inside a list value. Fields marked scalar for `fmt` unwrap a
    one-element list.
    """
    if isinstance(value, list):
        return [
            rename_fields(mapping, prop, v, fmt, resource) if isinstance(v, dict) else v
            for v in value
        ]
    if not isinstance(value, dict):
        return value
    renamed = {}
    for key, val in value.items():
        if isinstance(val, list) and mapping.is_scalar_field(prop, key, fmt):
            if len(val) != 1:
                raise EmissionError(
                    f"Resource '{resource}' property '{prop}.{key}' holds {len(val)} values; "
                    f"{fmt.value} takes exactly one",
                    format=fmt.value,
                    resource=resource,
                )
            val = val[0]
        renamed[mapping.field_key(prop, key, fmt)] = val
    return renamed
