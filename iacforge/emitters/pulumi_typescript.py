"""
Pulumi TypeScript program emitter.
"""
import re
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

FORMAT = IaCFormat.PULUMI_TYPESCRIPT
FILENAME = "index.ts"

_INDENT = "    "
_BARE_KEY_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

_TEMPLATE = """\
{% for line in header %}
// {{ line }}
{% endfor %}
{% for namespace in imports %}
import * as {{ namespace.alias }} from "{{ namespace.package }}";
{% endfor %}
{% for statement in statements %}

{{ statement }}
{% endfor %}
"""


def _key(key: str) -> str:
    return key if _BARE_KEY_RE.match(key) else quote_string(key)


def _reference(ctx: EmitContext, name: str) -> str:
    attr = "id" if ctx.mapping(name) else "urn"
    return f"{ctx.ident(name)}.{attr}"


def _render_value(
    ctx: EmitContext, resource: CanonicalResource, value: PropertyValue, indent: int, refs: bool
) -> str:
    pad = _INDENT * indent
    if isinstance(value, bool):
        return "true" if value else "false"
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
            f"{pad}{_INDENT}{_key(k)}: {_render_value(ctx, resource, v, indent + 1, refs)},\n"
            for k, v in value.items()
        ]
        return "{\n" + "".join(lines) + f"{pad}}}"
    raise unsupported_value(value, FORMAT, resource.name)


def _render_statement(ctx: EmitContext, resource: CanonicalResource) -> str:
    mapping = ctx.mapping(resource.name)
    if mapping is None:
        constructor = "pulumi.ComponentResource"
        type_token = quote_string(f"unmanaged:index:{unmanaged_type_token(resource.type)}")
        leading = f"{type_token}, {quote_string(resource.name)}"
        payload = {"type": resource.type, "properties": resource.properties}
        args = _render_value(ctx, resource, payload, 0, False)
    else:
        constructor = mapping.identifier(FORMAT)
        leading = quote_string(resource.name)
        renamed = {}
        keys = []
        for prop, value in resource.properties.items():
            key = mapping.property_key(prop, FORMAT)
            keys.append(key)
            renamed[key] = rename_fields(mapping, prop, value, FORMAT, resource.name)
        check_unique_keys(keys, FORMAT, resource.name)
        args = _render_value(ctx, resource, renamed, 0, True)

    call = f"new {constructor}({leading}, {args}"
    if resource.dependencies:
        deps = ", ".join(ctx.ident(d) for d in resource.dependencies)
        call += f", {{ dependsOn: [{deps}] }}"
    return (
        f"// {comment_text(resource.name)} ({comment_text(resource.type)})\n"
        f"const {ctx.ident(resource.name)} = {call});"
    )


def _imports(ctx: EmitContext) -> List[dict]:
    """One import per distinct namespace used by the emitted statements."""
    imports = [{"alias": "pulumi", "package": "@pulumi/pulumi"}]
    package = ctx.tables.pulumi_package(ctx.graph.provider)
    roots = []
    for r in ctx.ordered():
        mapping = ctx.mapping(r.name)
        if mapping is not None:
            root = mapping.identifier(FORMAT).split(".", 1)[0]
            if root not in roots:
                roots.append(root)
    for root in roots:
        if root == package.get("alias"):
            imports.append({"alias": root, "package": package["typescript"]})
        elif root != "pulumi":
            imports.append({"alias": root, "package": f"@pulumi/{root}"})
    return imports


def emit(graph: ResourceGraph, tables: MappingTables) -> Tuple[str, str]:
    ctx = EmitContext.create(graph, tables, FORMAT, naming.ts_identifier)
    code = render_template(
        _TEMPLATE,
        header=header_lines(graph),
        imports=_imports(ctx),
        statements=[_render_statement(ctx, r) for r in ctx.ordered()],
    )
    return code, FILENAME
