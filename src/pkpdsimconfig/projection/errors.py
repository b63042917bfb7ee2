"""
Projection Errors
=================
Exception hierarchy shared by the map registry, the projection engine and the
reference resolver.

Every error derives from ProjectionError, so a host can catch the whole family
in one place. Lookup failures additionally derive from LookupError.
"""
from __future__ import annotations

from typing import Optional


class ProjectionError(Exception):
    """Base class for all projection failures."""


class ConfigurationError(ProjectionError):
    """A map definition is malformed, incomplete or inconsistent."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class MissingReferenceID(ConfigurationError):
    """A reference-typed property points at a type without an identity key."""

    def __init__(self, type_name: str, referenced_by: Optional[str] = None, source: Optional[str] = None):
        self.type_name = type_name
        self.referenced_by = referenced_by
        message = f"Type '{type_name}' declares no ReferenceIDProperty"
        if referenced_by:
            message += f" but is used as a reference by '{referenced_by}'"
        super().__init__(message, source=source)


class DuplicateReferenceID(ConfigurationError):
    """Two objects in one authoritative collection share an identity key."""

    def __init__(self, type_name: str, key: object):
        self.type_name = type_name
        self.key = key
        super().__init__(f"Duplicate identity key {key!r} among '{type_name}' objects")


class NoMappingForType(ProjectionError, LookupError):
    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"No projection map registered for type '{type_name}'")


class UnknownProperty(ProjectionError, LookupError):
    def __init__(self, type_name: str, property_name: str):
        self.type_name = type_name
        self.property_name = property_name
        super().__init__(f"Type '{type_name}' has no property '{property_name}'")


class UnresolvedReference(ProjectionError, LookupError):
    """A reference key sent back by the UI matches no object in the graph."""

    def __init__(self, type_name: str, key: object):
        self.type_name = type_name
        self.key = key
        super().__init__(f"No '{type_name}' object with identity key {key!r}")


class CyclicOwnership(ProjectionError):
    """An owned property chain leads back to an object still being projected."""

    def __init__(self, path: list[str]):
        self.path = list(path)
        super().__init__("Cyclic ownership detected: " + " -> ".join(self.path))
