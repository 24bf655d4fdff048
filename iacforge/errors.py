"""
Exception taxonomy for the generation engine.

ValidationError and its cycle specialization are fatal for a request.
EmissionError is scoped to one format and is turned into a warning by the
engine.
"""
from typing import Optional, Sequence, Tuple


class IaCForgeError(Exception):
    pass


class ValidationError(IaCForgeError):
    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        reference: Optional[str] = None,
    ):
        super().__init__(message)
        self.resource = resource
        self.reference = reference


class CyclicDependencyError(ValidationError):
    def __init__(self, cycle: Sequence[str]):
        self.cycle: Tuple[str, ...] = tuple(cycle)
        first = self.cycle[0] if self.cycle else None
        path = " -> ".join(list(self.cycle) + [first]) if first else ""
        super().__init__(
            f"Resource '{first}' is part of a dependency cycle: {path}",
            resource=first,
        )


class EmissionError(IaCForgeError):
    def __init__(self, message: str, format: Optional[str] = None, resource: Optional[str] = None):
        super().__init__(message)
        self.format = format
        self.resource = resource


class ConfigurationError(IaCForgeError):
    pass

