"""Errors raised while building the platform resource graph."""


class PlatformError(Exception):
    """Base class for all platform construction errors."""


class ConfigError(PlatformError):
    """Unknown environment or an invalid environment table."""


class AllocationError(PlatformError):
    """The requested zones do not fit in the base CIDR block."""


class ValidationError(PlatformError):
    """A declared value is missing required fields or has foreign ones."""


class GraphError(PlatformError):
    """The resource graph is not internally consistent."""


class UnresolvedReferenceError(GraphError):
    """A resource references a name that has not been declared."""

    def __init__(self, consumer: str, reference: str, kind: str = "resource"):
        self.consumer = consumer
        self.reference = reference
        super().__init__(f"{consumer} references undeclared {kind} '{reference}'")


class DuplicateResourceError(GraphError):
    """Two resources were declared with the same stable name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Resource '{name}' is already declared")


class MaterializationError(PlatformError):
    """Creating a declared resource failed."""

    def __init__(self, name: str, reason: str):
        self.name = name
        super().__init__(f"Failed to materialize '{name}': {reason}")
