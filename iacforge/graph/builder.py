"""
Canonical graph builder: turns an untrusted analysis document into a
validated ResourceGraph or raises ValidationError.
"""
import math
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console

from iacforge.errors import ValidationError
from iacforge.graph.ordering import build_dependents, topological_order
from iacforge.models.artifact import Provider
from iacforge.models.resource import (
    CanonicalResource,
    NetworkConfiguration,
    Properties,
    PropertyValue,
    ResourceGraph,
    SecurityConfiguration,
    SecurityGroupSpec,
    SecurityRule,
    SubnetSpec,
    VPCSpec,
)

console = Console(stderr=True)

_PROVIDERS = {p.value for p in Provider}


def normalize_provider(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Provider tag is missing")
    provider = value.strip().lower()
    if provider not in _PROVIDERS:
        raise ValidationError(
            f"Unknown provider '{value}'; expected one of {', '.join(sorted(_PROVIDERS))}"
        )
    return provider


# ------------------------------------------------------------------ values

def _normalize_value(value: Any, resource: str, path: str) -> PropertyValue:
    # bool before int: bool is an int subclass
    if isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(
                f"Property '{path}' of resource '{resource}' is not a finite number",
                resource=resource,
            )
        return value
    if isinstance(value, (list, tuple)):
        return [_normalize_value(v, resource, f"{path}[{i}]") for i, v in enumerate(value)]
    if isinstance(value, dict):
        return _normalize_properties(value, resource, path)
    kind = "null" if value is None else type(value).__name__
    raise ValidationError(
        f"Property '{path}' of resource '{resource}' has unsupported value type {kind}",
        resource=resource,
    )


def _normalize_properties(raw: Dict[Any, Any], resource: str, path: str = "") -> Properties:
    props: Properties = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not key.strip():
            raise ValidationError(
                f"Resource '{resource}' has an invalid property key {key!r}"
                + (f" under '{path}'" if path else ""),
                resource=resource,
            )
        clean = key.strip()
        full = f"{path}.{clean}" if path else clean
        if clean in props:
            raise ValidationError(
                f"Resource '{resource}' defines property '{full}' more than once",
                resource=resource,
            )
        props[clean] = _normalize_value(value, resource, full)
    return props


# ------------------------------------------------------------------ resources

def _required_str(entry: Dict[str, Any], key: str, what: str) -> str:
    val = entry.get(key)
    if not isinstance(val, str) or not val.strip():
        raise ValidationError(f"{what} is missing required field '{key}'")
    return val.strip()


def _parse_resource(entry: Any, index: int) -> CanonicalResource:
    if not isinstance(entry, dict):
        raise ValidationError(f"Resource #{index + 1} is not an object")
    name = _required_str(entry, "name", f"Resource #{index + 1}")
    rtype = _required_str(entry, "type", f"Resource '{name}'")

    raw_props = entry.get("properties")
    if raw_props is None:
        raw_props = {}
    if not isinstance(raw_props, dict):
        raise ValidationError(f"Properties of resource '{name}' must be an object", resource=name)

    raw_deps = entry.get("dependencies")
    if raw_deps is None:
        raw_deps = []
    if not isinstance(raw_deps, list) or not all(isinstance(d, str) for d in raw_deps):
        raise ValidationError(
            f"Dependencies of resource '{name}' must be a list of names", resource=name
        )

    deps = tuple(dict.fromkeys(d.strip() for d in raw_deps))
    return CanonicalResource(
        type=rtype,
        name=name,
        properties=_normalize_properties(raw_props, name),
        dependencies=deps,
    )


# ------------------------------------------------------------------ network

def _opt_bool(entry: Dict[str, Any], key: str, what: str) -> Optional[bool]:
    val = entry.get(key)
    if val is None or isinstance(val, bool):
        return val
    raise ValidationError(f"{what}: '{key}' must be true or false")


def _parse_rule(raw: Any, what: str) -> SecurityRule:
    if not isinstance(raw, dict):
        raise ValidationError(f"{what} is not an object")
    protocol = _required_str(raw, "protocol", what)
    ports = []
    for key in ("fromPort", "toPort"):
        val = raw.get(key)
        if isinstance(val, bool) or not isinstance(val, int):
            raise ValidationError(f"{what}: '{key}' must be an integer")
        ports.append(val)
    cidr = raw.get("cidr")
    source = raw.get("sourceSecurityGroup")
    if cidr is not None and not isinstance(cidr, str):
        raise ValidationError(f"{what}: 'cidr' must be a string")
    if source is not None and not isinstance(source, str):
        raise ValidationError(f"{what}: 'sourceSecurityGroup' must be a string")
    if not cidr and not source:
        raise ValidationError(f"{what} needs either 'cidr' or 'sourceSecurityGroup'")
    return SecurityRule(
        protocol=protocol,
        from_port=ports[0],
        to_port=ports[1],
        cidr=cidr or None,
        source_security_group=source.strip() if source else None,
    )


def _list_of(raw: Dict[str, Any], key: str, what: str) -> List[Any]:
    val = raw.get(key)
    if val is None:
        return []
    if not isinstance(val, list):
        raise ValidationError(f"{what}: '{key}' must be a list")
    return val


def _parse_network(raw: Any) -> Optional[NetworkConfiguration]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValidationError("Network block must be an object")

    vpcs = []
    for i, v in enumerate(_list_of(raw, "vpcs", "Network")):
        what = f"VPC #{i + 1}"
        if not isinstance(v, dict):
            raise ValidationError(f"{what} is not an object")
        vpcs.append(VPCSpec(
            cidr=_required_str(v, "cidr", what),
            name=_required_str(v, "name", what),
            enable_dns_hostnames=_opt_bool(v, "enableDnsHostnames", what),
            enable_dns_support=_opt_bool(v, "enableDnsSupport", what),
        ))

    subnets = []
    for i, s in enumerate(_list_of(raw, "subnets", "Network")):
        what = f"Subnet #{i + 1}"
        if not isinstance(s, dict):
            raise ValidationError(f"{what} is not an object")
        zone = s.get("availabilityZone")
        if zone is not None and not isinstance(zone, str):
            raise ValidationError(f"{what}: 'availabilityZone' must be a string")
        subnets.append(SubnetSpec(
            cidr=_required_str(s, "cidr", what),
            name=_required_str(s, "name", what),
            availability_zone=zone or None,
            public=bool(_opt_bool(s, "public", what)),
        ))

    groups = []
    for i, g in enumerate(_list_of(raw, "securityGroups", "Network")):
        what = f"Security group #{i + 1}"
        if not isinstance(g, dict):
            raise ValidationError(f"{what} is not an object")
        name = _required_str(g, "name", what)
        description = g.get("description") or ""
        if not isinstance(description, str):
            raise ValidationError(f"Security group '{name}': 'description' must be a string")
        groups.append(SecurityGroupSpec(
            name=name,
            description=description,
            ingress=tuple(
                _parse_rule(r, f"Ingress rule #{j + 1} of '{name}'")
                for j, r in enumerate(_list_of(g, "ingress", name))
            ),
            egress=tuple(
                _parse_rule(r, f"Egress rule #{j + 1} of '{name}'")
                for j, r in enumerate(_list_of(g, "egress", name))
            ),
        ))

    return NetworkConfiguration(vpcs=tuple(vpcs), subnets=tuple(subnets), security_groups=tuple(groups))


def _parse_security(raw: Any) -> Optional[SecurityConfiguration]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValidationError("Security block must be an object")
    auth = raw.get("authentication")
    if auth is not None and not isinstance(auth, str):
        raise ValidationError("Security: 'authentication' must be a string")
    return SecurityConfiguration(
        encryption=_opt_bool(raw, "encryption", "Security"),
        public_access=_opt_bool(raw, "publicAccess", "Security"),
        authentication=auth or None,
    )


def _rule_properties(rule: SecurityRule) -> Dict[str, PropertyValue]:
    props: Dict[str, PropertyValue] = {
        "protocol": rule.protocol,
        "from_port": rule.from_port,
        "to_port": rule.to_port,
    }
    if rule.cidr:
        props["cidr_blocks"] = [rule.cidr]
    if rule.source_security_group:
        props["security_groups"] = [rule.source_security_group]
    return props


def _materialize_network(network: NetworkConfiguration) -> List[CanonicalResource]:
    """Turn network specs into canonical resources, VPCs first."""
    resources: List[CanonicalResource] = []
    vpc_name = network.vpcs[0].name if len(network.vpcs) == 1 else None

    for vpc in network.vpcs:
        props: Dict[str, PropertyValue] = {"cidr_block": vpc.cidr}
        if vpc.enable_dns_hostnames is not None:
            props["enable_dns_hostnames"] = vpc.enable_dns_hostnames
        if vpc.enable_dns_support is not None:
            props["enable_dns_support"] = vpc.enable_dns_support
        props["tags"] = {"Name": vpc.name}
        resources.append(CanonicalResource("vpc", vpc.name, props, synthetic=True))

    for subnet in network.subnets:
        props = {"cidr_block": subnet.cidr}
        deps: Tuple[str, ...] = ()
        if vpc_name:
            props["vpc_id"] = vpc_name
            deps = (vpc_name,)
        if subnet.availability_zone:
            props["availability_zone"] = subnet.availability_zone
        props["map_public_ip_on_launch"] = subnet.public
        props["tags"] = {"Name": subnet.name}
        resources.append(CanonicalResource("subnet", subnet.name, props, deps, synthetic=True))

    for group in network.security_groups:
        props = {"name": group.name}
        if group.description:
            props["description"] = group.description
        deps_list: List[str] = []
        if vpc_name:
            props["vpc_id"] = vpc_name
            deps_list.append(vpc_name)
        if group.ingress:
            props["ingress"] = [_rule_properties(r) for r in group.ingress]
        if group.egress:
            props["egress"] = [_rule_properties(r) for r in group.egress]
        for rule in group.ingress + group.egress:
            src = rule.source_security_group
            if src and src != group.name and src not in deps_list:
                deps_list.append(src)
        resources.append(
            CanonicalResource("security-group", group.name, props, tuple(deps_list), synthetic=True)
        )

    return resources


# ------------------------------------------------------------------ graph

def build_graph(document: Any, provider: str) -> ResourceGraph:
    """
    Validate a parsed analysis document against the requested provider and
    return the resource graph every emitter consumes.
    """
    requested = normalize_provider(provider)
    if not isinstance(document, dict):
        raise ValidationError("Infrastructure document must be an object")

    if document.get("provider") is None:
        raise ValidationError("Infrastructure document has no provider tag")
    doc_provider = normalize_provider(document.get("provider"))
    if doc_provider != requested:
        raise ValidationError(
            f"Document provider '{doc_provider}' does not match requested provider '{requested}'"
        )

    raw_resources = document.get("resources")
    if raw_resources is None:
        raw_resources = []
    if not isinstance(raw_resources, list):
        raise ValidationError("'resources' must be a list")

    declared = [_parse_resource(entry, i) for i, entry in enumerate(raw_resources)]
    network = _parse_network(document.get("network"))
    security = _parse_security(document.get("security"))

    seen = set()
    for r in declared:
        if r.name in seen:
            raise ValidationError(f"Duplicate resource name '{r.name}'", resource=r.name)
        seen.add(r.name)

    notices: List[str] = []
    synthetic: List[CanonicalResource] = []
    if network is not None:
        for r in _materialize_network(network):
            if r.name in seen:
                if any(s.name == r.name for s in synthetic):
                    raise ValidationError(f"Duplicate resource name '{r.name}'", resource=r.name)
                msg = (
                    f"Network {r.type} '{r.name}' skipped: a declared resource "
                    f"already uses that name"
                )
                console.print(f"[yellow]Warning:[/yellow] {msg}")
                notices.append(msg)
                continue
            seen.add(r.name)
            synthetic.append(r)

    resources = tuple(synthetic + declared)
    for r in resources:
        for dep in r.dependencies:
            if dep not in seen:
                raise ValidationError(
                    f"Resource '{r.name}' depends on unknown resource '{dep}'",
                    resource=r.name,
                    reference=dep,
                )

    names = [r.name for r in resources]
    dependencies = {r.name: r.dependencies for r in resources}
    order = topological_order(names, dependencies)

    return ResourceGraph(
        provider=requested,
        resources=resources,
        order=tuple(order),
        dependents=build_dependents(names, dependencies),
        network=network,
        security=security,
        notices=tuple(notices),
    )
