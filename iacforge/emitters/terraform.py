"""
Terraform (HCL) emitter.
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
    unsupported_value,
)
from iacforge.mappings import MappingTables, ResourceMapping
from iacforge.models.artifact import IaCFormat
from iacforge.models.resource import CanonicalResource, PropertyValue, ResourceGraph

FORMAT = IaCFormat.TERRAFORM
FILENAME = "main.tf"

# Built-in resource used for types without a mapping entry
UNMANAGED_TYPE = "terraform_data"

# Meta-arguments the emitter writes or Terraform reserves in a resource block
META_ARGUMENTS = ("depends_on", "count", "for_each", "provider", "lifecycle")

_BARE_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")

_TEMPLATE = """\
{% for line in header %}
# {{ line }}
{% endfor %}

terraform {
  required_providers {
    {{ provider.name }} = {
      source  = "{{ provider.source }}"
      version = "{{ provider.version }}"
    }
  }
}

provider "{{ provider.name }}" {
{% if provider.features %}
  features {}
{% endif %}
}
{% for block in blocks %}

{{ block }}
{% endfor %}
"""


def _quote(value: str) -> str:
    # Template sequences would otherwise be interpolated by Terraform
    return quote_string(value).replace("${", "$${").replace("%{", "%%{")


def _key(key: str) -> str:
    return key if _BARE_KEY_RE.match(key) else _quote(key)


def _address(ctx: EmitContext, name: str) -> str:
    mapping = ctx.mapping(name)
    block_type = mapping.identifier(FORMAT) if mapping else UNMANAGED_TYPE
    return f"{block_type}.{ctx.ident(name)}"


def _render_value(
    ctx: EmitContext, resource: CanonicalResource, value: PropertyValue, indent: int, refs: bool
) -> str:
    pad = "  " * indent
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        if refs and ctx.is_reference(resource, value):
            return f"{_address(ctx, value)}.id"
        return _quote(value)
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
        return "[\n" + "".join(f"{pad}  {item},\n" for item in items) + f"{pad}]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        lines = [
            f"{pad}  {_key(k)} = {_render_value(ctx, resource, v, indent + 1, refs)}\n"
            for k, v in value.items()
        ]
        return "{\n" + "".join(lines) + f"{pad}}}"
    raise unsupported_value(value, FORMAT, resource.name)


def _render_nested_block(
    ctx: EmitContext, resource: CanonicalResource, block_name: str, body: dict
) -> List[str]:
    lines = [f"  {block_name} {{"]
    for k, v in body.items():
        lines.append(f"    {_key(k)} = {_render_value(ctx, resource, v, 2, True)}")
    lines.append("  }")
    return lines


def _render_body(ctx: EmitContext, resource: CanonicalResource, mapping: ResourceMapping) -> List[str]:
    check_unique_keys(
        [mapping.property_key(p, FORMAT) for p in resource.properties],
        FORMAT,
        resource.name,
        reserved=META_ARGUMENTS,
    )
    lines: List[str] = []
    for prop, value in resource.properties.items():
        key = mapping.property_key(prop, FORMAT)
        value = rename_fields(mapping, prop, value, FORMAT, resource.name)
        if mapping.is_block(prop) and isinstance(value, (dict, list)):
            bodies = value if isinstance(value, list) else [value]
            if all(isinstance(b, dict) for b in bodies):
                for body in bodies:
                    lines.extend(_render_nested_block(ctx, resource, key, body))
                continue
        lines.append(f"  {_key(key)} = {_render_value(ctx, resource, value, 1, True)}")
    return lines


def _render_unmanaged_body(ctx: EmitContext, resource: CanonicalResource) -> List[str]:
    payload = {"type": resource.type, "properties": resource.properties}
    return [f"  input = {_render_value(ctx, resource, payload, 1, False)}"]


def _render_block(ctx: EmitContext, resource: CanonicalResource) -> str:
    mapping = ctx.mapping(resource.name)
    ident = ctx.ident(resource.name)
    lines = [f"# {comment_text(resource.name)} ({comment_text(resource.type)})"]
    if mapping is None:
        lines.append(f'resource "{UNMANAGED_TYPE}" "{ident}" {{')
        lines.extend(_render_unmanaged_body(ctx, resource))
    else:
        lines.append(f'resource "{mapping.identifier(FORMAT)}" "{ident}" {{')
        lines.extend(_render_body(ctx, resource, mapping))
    if resource.dependencies:
        deps = ", ".join(_address(ctx, d) for d in resource.dependencies)
        lines.append(f"  depends_on = [{deps}]")
    lines.append("}")
    return "\n".join(lines)


def emit(graph: ResourceGraph, tables: MappingTables) -> Tuple[str, str]:
    ctx = EmitContext.create(graph, tables, FORMAT, naming.hcl_identifier)
    provider = tables.terraform_provider(graph.provider)
    code = render_template(
        _TEMPLATE,
        header=header_lines(graph),
        provider=provider,
        blocks=[_render_block(ctx, r) for r in ctx.ordered()],
    )
    return code, FILENAME
