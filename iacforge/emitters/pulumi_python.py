"""
Pulumi Python program emitter.
"""
import keyword
from typing import List, Tuple

from iacforge import naming
from iacforge.emitters.base import (
    EmitContext,
    check_number,
    check_unique_keys,
    comment_text,
    header_lines,
    quote_string,
    rename_fields,
    render_template,
    unmanaged_type_token,
    unsupported_value,
)
from iacforge.mappings import MappingTables
from iacforge.models.artifact import IaCFormat
from iacforge.models.resource import CanonicalResource, PropertyValue, ResourceGraph

FORMAT = IaCFormat.PULUMI_PYTHON
FILENAME = "__main__.py"

# Constructor parameters every resource class takes besides its args
RESERVED_KWARGS = ("resource_name", "opts")

_INDENT = "    "

_TEMPLATE = """\
{% for line in header %}
# {{ line }}
{% endfor %}
import pulumi
{% if package %}
import {{ package.python }} as {{ package.alias }}
{% endif %}
{% for statement in statements %}

{{ statement }}
{% endfor %}
"""


def _kwarg(key: str) -> str:
    if key.isidentifier() and not keyword.iskeyword(key):
        return key
    return naming.python_identifier(key)


def _reference(ctx: EmitContext, name: str) -> str:
    attr = "id" if ctx.mapping(name) else "urn"
    return f"{ctx.ident(name)}.{attr}"


def _render_value(
    ctx: EmitContext, resource: CanonicalResource, value: PropertyValue, indent: int, refs: bool
) -> str:
    pad = _INDENT * indent
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, str):
        if refs and ctx.is_reference(resource, value):
            return _reference(ctx, value)
        return quote_string(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        check_number(value, FORMAT, resource.name)
        return repr(value)
    if isinstance(value, list):
        if not value:
            return "[]"
        items = [_render_value(ctx, resource, v, indent + 1, refs) for v in value]
        if all(not isinstance(v, (list, dict)) for v in value):
            return "[" + ", ".join(items) + "]"
        return "[\n" + "".join(f"{pad}{_INDENT}{item},\n" for item in items) + f"{pad}]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        lines = [
            f"{pad}{_INDENT}{quote_string(k)}: {_render_value(ctx, resource, v, indent + 1, refs)},\n"
            for k, v in value.items()
        ]
        return "{\n" + "".join(lines) + f"{pad}}}"
    raise unsupported_value(value, FORMAT, resource.name)


def _arguments(ctx: EmitContext, resource: CanonicalResource) -> Tuple[str, List[str]]:
    """Constructor expression and its argument lines (without indentation)."""
    mapping = ctx.mapping(resource.name)
    if mapping is None:
        payload = {"type": resource.type, "properties": resource.properties}
        args = [
            quote_string(f"unmanaged:index:{unmanaged_type_token(resource.type)}"),
            quote_string(resource.name),
            f"props={_render_value(ctx, resource, payload, 1, False)}",
        ]
        return "pulumi.ComponentResource", args

    args = [quote_string(resource.name)]
    keys = []
    for prop, value in resource.properties.items():
        key = _kwarg(mapping.property_key(prop, FORMAT))
        keys.append(key)
        renamed = rename_fields(mapping, prop, value, FORMAT, resource.name)
        rendered = _render_value(ctx, resource, renamed, 1, True)
        args.append(f"{key}={rendered}")
    check_unique_keys(keys, FORMAT, resource.name, reserved=RESERVED_KWARGS)
    return mapping.identifier(FORMAT), args


def _render_statement(ctx: EmitContext, resource: CanonicalResource) -> str:
    constructor, args = _arguments(ctx, resource)
    if resource.dependencies:
        deps = ", ".join(ctx.ident(d) for d in resource.dependencies)
        args.append(f"opts=pulumi.ResourceOptions(depends_on=[{deps}])")

    lines = [f"# {comment_text(resource.name)} ({comment_text(resource.type)})"]
    target = ctx.ident(resource.name)
    if len(args) == 1:
        lines.append(f"{target} = {constructor}({args[0]})")
    else:
        lines.append(f"{target} = {constructor}(")
        lines.extend(f"{_INDENT}{arg}," for arg in args)
        lines.append(")")
    return "\n".join(lines)


def emit(graph: ResourceGraph, tables: MappingTables) -> Tuple[str, str]:
    ctx = EmitContext.create(graph, tables, FORMAT, naming.python_identifier)
    resources = ctx.ordered()
    uses_package = any(ctx.mapping(r.name) is not None for r in resources)
    code = render_template(
        _TEMPLATE,
        header=header_lines(graph),
        package=tables.pulumi_package(graph.provider) if uses_package else None,
        statements=[_render_statement(ctx, r) for r in resources],
    )
    return code, FILENAME
