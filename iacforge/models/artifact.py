from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Provider(str, Enum):
    AWS   = "aws"
    AZURE = "azure"
    GCP   = "gcp"


class IaCFormat(str, Enum):
    TERRAFORM         = "terraform"
    CLOUDFORMATION    = "cloudformation"
    PULUMI_PYTHON     = "pulumi-python"
    PULUMI_TYPESCRIPT = "pulumi-typescript"


class WarningKind(str, Enum):
    UNMAPPED_RESOURCE = "unmapped-resource"
    EMISSION_FAILED   = "emission-failed"
    NETWORK_MERGED    = "network-merged"


@dataclass
class GeneratedArtifact:
    format: IaCFormat
    code: str
    filename: str
    resources: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "format": self.format.value,
            "code": self.code,
            "filename": self.filename,
            "resources": list(self.resources),
        }


@dataclass
class GenerationWarning:
    kind: WarningKind
    message: str
    format: Optional[IaCFormat] = None
    resource: Optional[str] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "format": self.format.value if self.format else None,
            "resource": self.resource,
            "message": self.message,
        }


@dataclass
class ConversionResult:
    provider: Provider
    artifacts: List[GeneratedArtifact] = field(default_factory=list)
    warnings: List[GenerationWarning] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": bool(self.artifacts),
            "provider": self.provider.value,
            "generated": [a.to_dict() for a in self.artifacts],
            "warnings": [w.to_dict() for w in self.warnings],
            "error": None if self.artifacts else "No artifacts were generated",
        }
