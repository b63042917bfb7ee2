"""
The PROJECTION layer turns domain object graphs into JSON documents and back.
It knows nothing about specific domain classes; everything is driven by the
projection maps loaded into a MapRegistry.
"""
from pkpdsimconfig.projection.errors import (
    ConfigurationError,
    CyclicOwnership,
    DuplicateReferenceID,
    MissingReferenceID,
    NoMappingForType,
    ProjectionError,
    UnknownProperty,
    UnresolvedReference,
)
from pkpdsimconfig.projection.maps import ProjectionMap, PropertyDefinition
from pkpdsimconfig.projection.registry import MapRegistry
from pkpdsimconfig.projection.engine import REF_KEY, REF_TYPE_KEY, ProjectionEngine, to_plain, type_name_of
from pkpdsimconfig.projection.resolver import ReferenceResolver

__all__ = [
    "ConfigurationError",
    "CyclicOwnership",
    "DuplicateReferenceID",
    "MapRegistry",
    "MissingReferenceID",
    "NoMappingForType",
    "ProjectionEngine",
    "ProjectionError",
    "ProjectionMap",
    "PropertyDefinition",
    "REF_KEY",
    "REF_TYPE_KEY",
    "ReferenceResolver",
    "UnknownProperty",
    "UnresolvedReference",
    "to_plain",
    "type_name_of",
]
