"""Domain error hierarchy.

Configuration errors are determined by the manifest and the collection/provider
tables alone; retrying them cannot succeed, so callers mark the owning manifest
failed instead of leaving work for redelivery.
"""

from __future__ import annotations

from collections.abc import Mapping


class PdrflowError(Exception):
    """Base class for domain errors."""


class IngestConfigurationError(PdrflowError):
    """Non-retryable error caused by manifest content or definitions."""


class ParseError(IngestConfigurationError):
    """Raised when manifest text cannot be parsed into a balanced tree."""

    def __init__(self, message: str, *, line: int | None = None) -> None:
        self.line = line
        super().__init__(f"line {line}: {message}" if line is not None else message)


class MissingAttributeError(IngestConfigurationError, KeyError):
    """Raised when a manifest node lacks a required attribute."""

    def __init__(self, attribute: str, *, node: str) -> None:
        self.attribute = attribute
        self.node = node
        super().__init__(f"{node} has no attribute {attribute}")

    def __str__(self) -> str:
        return str(self.args[0])


class NoMatchingCollection(IngestConfigurationError):  # noqa: N818
    """Raised when a file name matches none of the provider's collection patterns."""

    def __init__(self, file_name: str) -> None:
        self.file_name = file_name
        super().__init__(f"{file_name} did not match any of the collections")


class InvalidGranuleId(IngestConfigurationError):  # noqa: N818
    """Raised when a granule identifier fails the collection's validity pattern."""

    def __init__(self, message: str, *, granule_id: str | None = None) -> None:
        self.granule_id = granule_id
        super().__init__(message)


class UnmatchedFileError(IngestConfigurationError):
    """Raised when a discovered file fits no slot and unmatched files are fatal."""

    def __init__(self, file_names: list[str], *, granule_id: str) -> None:
        self.file_names = file_names
        self.granule_id = granule_id
        names = ", ".join(file_names)
        super().__init__(f"Files of granule {granule_id} match no file slot: {names}")


class DuplicateGranuleError(IngestConfigurationError):
    """Raised when two file groups of one manifest resolve to the same granule."""

    def __init__(self, granule_id: str, *, manifest_name: str) -> None:
        self.granule_id = granule_id
        self.manifest_name = manifest_name
        super().__init__(f"Manifest {manifest_name} lists granule {granule_id} more than once")


class UnknownDefinitionError(IngestConfigurationError):
    """Raised when a collection or provider is not configured."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"No {kind} definition named {name!r}")


class RecordNotFound(PdrflowError):  # noqa: N818
    """Raised by the record store when a key has no matching item."""

    def __init__(self, table: str, key: Mapping[str, str]) -> None:
        self.table = table
        self.key = dict(key)
        super().__init__(f"Record does not exist in {table}: {self.key}")


class ConditionFailedError(PdrflowError):
    """Raised by the record store when a conditional update's expectation fails."""

    def __init__(self, table: str, key: Mapping[str, str]) -> None:
        self.table = table
        self.key = dict(key)
        super().__init__(f"Conditional update rejected in {table}: {self.key}")


class DiscoveryError(PdrflowError):
    """Raised when a provider endpoint cannot be listed."""

    def __init__(self, message: str, *, endpoint: str) -> None:
        self.endpoint = endpoint
        super().__init__(message)


class ProviderNotFoundError(DiscoveryError):
    """Raised when the provider endpoint answers 404."""


class DiscoveryTimeoutError(DiscoveryError):
    """Raised when the provider endpoint does not answer in time."""


class UnimplementedDiscoverySource(PdrflowError):  # noqa: N818
    """Raised by discovery variants that exist in configuration but have no transport."""

    def __init__(self, variant: str) -> None:
        self.variant = variant
        super().__init__(f"Discovery over {variant} is not implemented")
