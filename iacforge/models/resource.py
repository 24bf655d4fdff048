from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

# Closed value domain for property bags. Lists and mappings nest the same
# domain; bool is checked before int wherever values are dispatched on.
PropertyValue = Union[str, int, float, bool, List["PropertyValue"], Dict[str, "PropertyValue"]]
Properties = Dict[str, PropertyValue]


@dataclass(frozen=True)
class CanonicalResource:
    type: str              # e.g. "instance", "aws_s3_bucket", "AWS::S3::Bucket"
    name: str              # unique within the graph, case-sensitive
    properties: Properties = field(default_factory=dict)
    dependencies: Tuple[str, ...] = ()
    synthetic: bool = False      # materialized from the network block


@dataclass(frozen=True)
class VPCSpec:
    cidr: str
    name: str
    enable_dns_hostnames: Optional[bool] = None
    enable_dns_support: Optional[bool] = None


@dataclass(frozen=True)
class SubnetSpec:
    cidr: str
    name: str
    availability_zone: Optional[str] = None
    public: bool = False


@dataclass(frozen=True)
class SecurityRule:
    protocol: str
    from_port: int
    to_port: int
    cidr: Optional[str] = None
    source_security_group: Optional[str] = None


@dataclass(frozen=True)
class SecurityGroupSpec:
    name: str
    description: str = ""
    ingress: Tuple[SecurityRule, ...] = ()
    egress: Tuple[SecurityRule, ...] = ()


@dataclass(frozen=True)
class NetworkConfiguration:
    vpcs: Tuple[VPCSpec, ...] = ()
    subnets: Tuple[SubnetSpec, ...] = ()
    security_groups: Tuple[SecurityGroupSpec, ...] = ()


@dataclass(frozen=True)
class SecurityConfiguration:
    encryption: Optional[bool] = None
    public_access: Optional[bool] = None
    authentication: Optional[str] = None

    def describe(self) -> List[str]:
        """Human-readable lines for file headers."""
        lines = []
        if self.encryption is not None:
            lines.append(f"encryption: {'enabled' if self.encryption else 'disabled'}")
        if self.public_access is not None:
            lines.append(f"public access: {'allowed' if self.public_access else 'blocked'}")
        if self.authentication:
            lines.append(f"authentication: {self.authentication}")
        return lines

    def to_dict(self) -> dict:
        d = {}
        if self.encryption is not None:
            d["Encryption"] = self.encryption
        if self.public_access is not None:
            d["PublicAccess"] = self.public_access
        if self.authentication:
            d["Authentication"] = self.authentication
        return d


@dataclass(frozen=True)
class ResourceGraph:
    """
    Validated, acyclic, reference-complete resource set for one request.

    Built once by the graph builder and only read afterwards. `order` is the
    stable topological emission order shared by every emitter.
    """
    provider: str
    resources: Tuple[CanonicalResource, ...]
    order: Tuple[str, ...]
    dependents: Dict[str, Tuple[str, ...]]
    network: Optional[NetworkConfiguration] = None
    security: Optional[SecurityConfiguration] = None
    notices: Tuple[str, ...] = ()

    def get(self, name: str) -> CanonicalResource:
        for r in self.resources:
            if r.name == name:
                return r
        raise KeyError(name)

    def ordered(self) -> List[CanonicalResource]:
        by_name = {r.name: r for r in self.resources}
        return [by_name[n] for n in self.order]

    @property
    def names(self) -> List[str]:
        return [r.name for r in self.resources]
