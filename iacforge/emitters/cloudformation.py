"""
CloudFormation (JSON) emitter.
"""
import json
from typing import Any, Dict, Tuple

from iacforge import __version__, naming
from iacforge.emitters.base import (
    EmitContext,
    check_number,
    check_unique_keys,
    rename_fields,
    unmanaged_type_token,
    unsupported_value,
)
from iacforge.mappings import MappingTables
from iacforge.models.artifact import IaCFormat
from iacforge.models.resource import CanonicalResource, PropertyValue, ResourceGraph

FORMAT = IaCFormat.CLOUDFORMATION
FILENAME = "template.json"

TEMPLATE_VERSION = "2010-09-09"
# Parameter that unmanaged custom resources point their ServiceToken at
SERVICE_TOKEN_PARAMETER = "UnmanagedResourceServiceToken"


def _convert(ctx: EmitContext, resource: CanonicalResource, value: PropertyValue, refs: bool) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if refs and ctx.is_reference(resource, value):
            return {"Ref": ctx.ident(value)}
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        check_number(value, FORMAT, resource.name)
        return value
    if isinstance(value, list):
        return [_convert(ctx, resource, v, refs) for v in value]
    if isinstance(value, dict):
        return {k: _convert(ctx, resource, v, refs) for k, v in value.items()}
    raise unsupported_value(value, FORMAT, resource.name)


def _resource_entry(ctx: EmitContext, resource: CanonicalResource) -> Dict[str, Any]:
    mapping = ctx.mapping(resource.name)
    entry: Dict[str, Any] = {}
    if mapping is None:
        entry["Type"] = f"Custom::{unmanaged_type_token(resource.type)}"
    else:
        entry["Type"] = mapping.identifier(FORMAT)
    if resource.dependencies:
        entry["DependsOn"] = [ctx.ident(d) for d in resource.dependencies]
    entry["Metadata"] = {"Name": resource.name}

    if mapping is None:
        entry["Properties"] = {
            "ServiceToken": {"Ref": SERVICE_TOKEN_PARAMETER},
            "OriginalType": resource.type,
            "OriginalProperties": _convert(ctx, resource, resource.properties, False),
        }
    else:
        check_unique_keys(
            [mapping.property_key(p, FORMAT) for p in resource.properties], FORMAT, resource.name
        )
        entry["Properties"] = {
            mapping.property_key(prop, FORMAT): _convert(
                ctx, resource, rename_fields(mapping, prop, value, FORMAT, resource.name), True
            )
            for prop, value in resource.properties.items()
        }
    return entry


def emit(graph: ResourceGraph, tables: MappingTables) -> Tuple[str, str]:
    ctx = EmitContext.create(graph, tables, FORMAT, naming.logical_id, separator="")

    template: Dict[str, Any] = {
        "AWSTemplateFormatVersion": TEMPLATE_VERSION,
        "Description": f"Generated by iacforge {__version__} (provider: {graph.provider})",
    }
    if graph.security is not None and graph.security.to_dict():
        template["Metadata"] = {"SecurityConfiguration": graph.security.to_dict()}

    resources = ctx.ordered()
    if any(ctx.mapping(r.name) is None for r in resources):
        template["Parameters"] = {
            SERVICE_TOKEN_PARAMETER: {
                "Type": "String",
                "Description": "Service token (Lambda or SNS ARN) backing unmanaged custom resources",
            }
        }
    template["Resources"] = {ctx.ident(r.name): _resource_entry(ctx, r) for r in resources}

    return json.dumps(template, indent=2, ensure_ascii=False, allow_nan=False) + "\n", FILENAME
