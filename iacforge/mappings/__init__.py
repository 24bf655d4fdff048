"""
Type/property mapping tables.

Each provider has a YAML data file next to this module. Entries are keyed by
canonical resource type and carry the per-format identifiers plus property
renames, so supporting a new resource type is a data change only.
"""
import copy
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from iacforge import naming
from iacforge.errors import ConfigurationError
from iacforge.models.artifact import IaCFormat, Provider

_DATA_DIR = os.path.dirname(__file__)
_TYPE_NORM_RE = re.compile(r"[\s_]+")
_IDENTIFIER_COLUMNS = ("terraform", "cloudformation", "pulumi", "pulumi-python", "pulumi-typescript")

_DEFAULT_KEY_CASE = {
    IaCFormat.TERRAFORM: naming.snake_case,
    IaCFormat.CLOUDFORMATION: naming.pascal_case,
    IaCFormat.PULUMI_PYTHON: naming.snake_case,
    IaCFormat.PULUMI_TYPESCRIPT: naming.camel_case,
}


def normalize_type(resource_type: str) -> str:
    return _TYPE_NORM_RE.sub("-", resource_type.strip().lower())


def _table_key(fmt: IaCFormat) -> str:
    """Column name used in the data files for a format."""
    if fmt in (IaCFormat.PULUMI_PYTHON, IaCFormat.PULUMI_TYPESCRIPT):
        return "pulumi"
    return fmt.value


def _rename_lookup(renames: Mapping[str, Any], fmt: IaCFormat) -> Optional[str]:
    return renames.get(fmt.value) or renames.get(_table_key(fmt))


@dataclass(frozen=True)
class PropertyMapping:
    renames: Dict[str, str] = field(default_factory=dict)
    terraform_block: bool = False
    fields: Dict[str, Dict[str, str]] = field(default_factory=dict)
    # nested key -> formats that take a single value instead of a list
    scalar_fields: Dict[str, Tuple[str, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class ResourceMapping:
    canonical_type: str
    identifiers: Dict[str, str]
    aliases: Tuple[str, ...] = ()
    properties: Dict[str, PropertyMapping] = field(default_factory=dict)

    def identifier(self, fmt: IaCFormat) -> Optional[str]:
        return self.identifiers.get(fmt.value) or self.identifiers.get(_table_key(fmt))

    def property_key(self, key: str, fmt: IaCFormat) -> str:
        pm = self.properties.get(key)
        if pm is not None:
            renamed = _rename_lookup(pm.renames, fmt)
            if renamed:
                return renamed
        return _DEFAULT_KEY_CASE[fmt](key)

    def field_key(self, prop: str, key: str, fmt: IaCFormat) -> str:
        """Rename for a key nested one level inside a property; verbatim by default."""
        pm = self.properties.get(prop)
        if pm is not None and key in pm.fields:
            renamed = _rename_lookup(pm.fields[key], fmt)
            if renamed:
                return renamed
        return key

    def is_scalar_field(self, prop: str, key: str, fmt: IaCFormat) -> bool:
        pm = self.properties.get(prop)
        if pm is None:
            return False
        formats = pm.scalar_fields.get(key, ())
        return fmt.value in formats or _table_key(fmt) in formats

    def is_block(self, key: str) -> bool:
        pm = self.properties.get(key)
        return bool(pm and pm.terraform_block)


@dataclass(frozen=True)
class ProviderTable:
    provider: str
    terraform_provider: Dict[str, Any]
    pulumi_package: Dict[str, str]
    entries: Dict[str, ResourceMapping]
    index: Dict[str, str]


class MappingTables:
    """Lookup over all provider tables; read-only once built."""

    def __init__(self, tables: Dict[str, ProviderTable]):
        self._tables = tables

    def provider_table(self, provider: str) -> ProviderTable:
        try:
            return self._tables[provider]
        except KeyError:
            raise ConfigurationError(f"No mapping table for provider '{provider}'") from None

    def resolve(self, provider: str, resource_type: str) -> Optional[ResourceMapping]:
        table = self.provider_table(provider)
        key = table.index.get(normalize_type(resource_type))
        return table.entries[key] if key else None

    def lookup(self, provider: str, resource_type: str, fmt: IaCFormat) -> Optional[ResourceMapping]:
        """Mapping for (provider, type) usable in `fmt`, or None on a miss."""
        mapping = self.resolve(provider, resource_type)
        if mapping is None or not mapping.identifier(fmt):
            return None
        return mapping

    def terraform_provider(self, provider: str) -> Dict[str, Any]:
        return self.provider_table(provider).terraform_provider

    def pulumi_package(self, provider: str) -> Dict[str, str]:
        return self.provider_table(provider).pulumi_package


# ------------------------------------------------------------------ loading

def _parse_property(key: str, raw: Any, where: str) -> PropertyMapping:
    if isinstance(raw, str):
        # Shorthand: same rename for every format
        return PropertyMapping(renames={"terraform": raw, "cloudformation": raw, "pulumi": raw})
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{where}: property '{key}' must be a mapping")
    renames = {
        k: v for k, v in raw.items()
        if k not in ("terraform_block", "fields") and isinstance(v, str)
    }
    fields = raw.get("fields") or {}
    if not isinstance(fields, dict) or not all(isinstance(v, dict) for v in fields.values()):
        raise ConfigurationError(f"{where}: 'fields' of property '{key}' must map keys to renames")
    scalar_fields = {}
    for name, spec in fields.items():
        scalar = spec.get("scalar") or []
        if not isinstance(scalar, list) or not all(isinstance(s, str) for s in scalar):
            raise ConfigurationError(
                f"{where}: 'scalar' of field '{key}.{name}' must be a list of format names"
            )
        if scalar:
            scalar_fields[name] = tuple(scalar)
    return PropertyMapping(
        renames=renames,
        terraform_block=bool(raw.get("terraform_block", False)),
        fields={
            name: {k: v for k, v in spec.items() if isinstance(v, str)}
            for name, spec in fields.items()
        },
        scalar_fields=scalar_fields,
    )


def _parse_entry(canonical: str, raw: Any, where: str) -> ResourceMapping:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{where}: entry '{canonical}' must be a mapping")
    identifiers = {
        k: raw[k] for k in _IDENTIFIER_COLUMNS
        if isinstance(raw.get(k), str) and raw[k]
    }
    aliases = raw.get("aliases") or []
    if not isinstance(aliases, list):
        raise ConfigurationError(f"{where}: aliases of '{canonical}' must be a list")
    props = raw.get("properties") or {}
    if not isinstance(props, dict):
        raise ConfigurationError(f"{where}: properties of '{canonical}' must be a mapping")
    return ResourceMapping(
        canonical_type=canonical,
        identifiers=identifiers,
        aliases=tuple(str(a) for a in aliases),
        properties={k: _parse_property(k, v, where) for k, v in props.items()},
    )


def _build_index(entries: Dict[str, ResourceMapping]) -> Dict[str, str]:
    # Canonical keys win over aliases, aliases over native identifiers.
    index: Dict[str, str] = {}
    for key in entries:
        index.setdefault(normalize_type(key), key)
    for key, entry in entries.items():
        for alias in entry.aliases:
            index.setdefault(normalize_type(alias), key)
    for key, entry in entries.items():
        for ident in entry.identifiers.values():
            index.setdefault(normalize_type(ident), key)
    return index


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, val in override.items():
        if isinstance(val, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], val)
        else:
            merged[key] = copy.deepcopy(val)
    return merged


def _load_provider_data(provider: str) -> Dict[str, Any]:
    path = os.path.join(_DATA_DIR, f"{provider}.yaml")
    try:
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot load mapping table {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Mapping table {path} is not a mapping")
    return data


def _build_table(provider: str, data: Dict[str, Any]) -> ProviderTable:
    where = f"{provider} mappings"
    resources = data.get("resources") or {}
    if not isinstance(resources, dict):
        raise ConfigurationError(f"{where}: 'resources' must be a mapping")
    entries = {
        normalize_type(k): _parse_entry(normalize_type(k), v, where)
        for k, v in resources.items()
    }
    return ProviderTable(
        provider=provider,
        terraform_provider=dict(data.get("terraform_provider") or {}),
        pulumi_package=dict(data.get("pulumi_package") or {}),
        entries=entries,
        index=_build_index(entries),
    )


def load_mapping_tables(overrides: Optional[Dict[str, Any]] = None) -> MappingTables:
    """
    Load the built-in tables, merging per-provider overrides from a user
    config (same shape as the data files) over them.
    """
    overrides = overrides or {}
    if not isinstance(overrides, dict):
        raise ConfigurationError("Mapping overrides must be a mapping of provider -> table")
    tables = {}
    for provider in Provider:
        data = _load_provider_data(provider.value)
        extra = overrides.get(provider.value)
        if extra:
            if not isinstance(extra, dict):
                raise ConfigurationError(f"Mapping overrides for '{provider.value}' must be a mapping")
            data = _merge(data, extra)
        tables[provider.value] = _build_table(provider.value, data)
    return MappingTables(tables)
