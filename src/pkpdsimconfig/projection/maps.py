"""
Projection Maps
===============
Declarative schema describing how one domain type is projected to JSON.

A map definition file looks like this:

    {
        "MATLABClass": "SimBiology.Species",
        "JSClass": "SimBiologySpecies",
        "ReferenceIDProperty": "uuid",
        "Properties": [
            {"Name": "uuid", "TargetName": "UUID", "ReadOnly": true},
            {"Name": "name", "TargetName": "Name"}
        ]
    }

Classes:
    PropertyDefinition: One projected property of a type.
    ProjectionMap: All projected properties of a type plus its identity key.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING

from pkpdsimconfig.projection.errors import ConfigurationError, NoMappingForType, UnknownProperty

if TYPE_CHECKING:
    from pkpdsimconfig.projection.registry import MapRegistry

logger = logging.getLogger(__name__)

_MAP_KEYS = {"MATLABClass", "JSClass", "ReferenceIDProperty", "Properties"}
_PROPERTY_KEYS = {"Name", "TargetName", "Type", "IsArray", "IsReference", "ReadOnly"}


def _require_str(data: Dict[str, Any], key: str, what: str, source: Optional[str]) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{what} requires a non-empty string '{key}'", source=source)
    return value.strip()


def _optional_str(data: Dict[str, Any], key: str, what: str, source: Optional[str]) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"{what}: '{key}' must be a string", source=source)
    return value.strip() or None


def _optional_bool(data: Dict[str, Any], key: str, what: str, source: Optional[str]) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ConfigurationError(f"{what}: '{key}' must be true or false", source=source)
    return value


@dataclass(frozen=True)
class PropertyDefinition:
    """
    One projected property.

    `name` is the attribute read off the domain object, `target_name` the key
    written to the JSON document. `type` names the nested domain type when the
    property holds domain objects; primitives leave it empty.
    """
    name: str
    target_name: str = ""
    type: Optional[str] = None
    is_array: bool = False
    is_reference: bool = False
    read_only: bool = False

    def __post_init__(self) -> None:
        if not self.target_name:
            object.__setattr__(self, "target_name", self.name)

    @property
    def is_primitive(self) -> bool:
        return self.type is None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"Name": self.name}
        if self.target_name != self.name:
            d["TargetName"] = self.target_name
        if self.type:
            d["Type"] = self.type
        if self.is_array:
            d["IsArray"] = True
        if self.is_reference:
            d["IsReference"] = True
        if self.read_only:
            d["ReadOnly"] = True
        return d

    @staticmethod
    def from_dict(data: Dict[str, Any], source: Optional[str] = None) -> PropertyDefinition:
        if not isinstance(data, dict):
            raise ConfigurationError("Property definitions must be JSON objects", source=source)

        name = _require_str(data, "Name", "Property definition", source)
        what = f"Property '{name}'"

        unknown = set(data) - _PROPERTY_KEYS
        if unknown:
            raise ConfigurationError(f"{what} has unknown keys: {', '.join(sorted(unknown))}", source=source)

        prop = PropertyDefinition(
            name=name,
            target_name=_optional_str(data, "TargetName", what, source) or name,
            type=_optional_str(data, "Type", what, source),
            is_array=_optional_bool(data, "IsArray", what, source),
            is_reference=_optional_bool(data, "IsReference", what, source),
            read_only=_optional_bool(data, "ReadOnly", what, source),
        )
        if prop.is_reference and prop.type is None:
            raise ConfigurationError(f"{what} is a reference but declares no 'Type'", source=source)
        return prop


@dataclass(frozen=True)
class ProjectionMap:
    """
    Projection schema for a single domain type.

    Instances are immutable. A map becomes able to resolve nested maps once a
    MapRegistry has bound it (see `MapRegistry.from_maps`).
    """
    source_type: str
    target_type: str
    properties: Tuple[PropertyDefinition, ...] = ()
    reference_id_property: Optional[str] = None
    source_file: Optional[str] = field(default=None, compare=False)
    registry: Optional[MapRegistry] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", tuple(self.properties))
        seen_names: set[str] = set()
        seen_targets: set[str] = set()
        for prop in self.properties:
            if prop.name in seen_names:
                raise ConfigurationError(
                    f"Type '{self.source_type}' declares property '{prop.name}' twice",
                    source=self.source_file,
                )
            if prop.target_name in seen_targets:
                raise ConfigurationError(
                    f"Type '{self.source_type}' maps two properties to '{prop.target_name}'",
                    source=self.source_file,
                )
            seen_names.add(prop.name)
            seen_targets.add(prop.target_name)

    # Aliases matching the keys of the definition files
    @property
    def MATLABClass(self) -> str:
        return self.source_type

    @property
    def JSClass(self) -> str:
        return self.target_type

    @property
    def ReferenceIDProperty(self) -> Optional[str]:
        return self.reference_id_property

    def get_property_names(self) -> list[str]:
        return [p.name for p in self.properties]

    def get_property_definition(self, name: str) -> PropertyDefinition:
        for prop in self.properties:
            if prop.name == name:
                return prop
        raise UnknownProperty(self.source_type, name)

    def get_property_by_target(self, target_name: str) -> PropertyDefinition:
        for prop in self.properties:
            if prop.target_name == target_name:
                return prop
        raise UnknownProperty(self.source_type, target_name)

    def get_nested_map(self, type_name: str) -> ProjectionMap:
        if self.registry is None:
            raise NoMappingForType(type_name)
        return self.registry.get_map(type_name)

    def reference_properties(self) -> list[PropertyDefinition]:
        return [p for p in self.properties if p.is_reference]

    def owned_typed_properties(self) -> list[PropertyDefinition]:
        return [p for p in self.properties if p.type and not p.is_reference]

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"MATLABClass": self.source_type, "JSClass": self.target_type}
        if self.reference_id_property:
            d["ReferenceIDProperty"] = self.reference_id_property
        d["Properties"] = [p.to_dict() for p in self.properties]
        return d

    @staticmethod
    def from_dict(data: Dict[str, Any], source_file: Optional[str] = None) -> ProjectionMap:
        if not isinstance(data, dict):
            raise ConfigurationError("Map definition must be a JSON object", source=source_file)

        unknown = set(data) - _MAP_KEYS
        if unknown:
            raise ConfigurationError(f"Unknown keys in map definition: {', '.join(sorted(unknown))}", source=source_file)

        source_type = _require_str(data, "MATLABClass", "Map definition", source_file)
        target_type = _require_str(data, "JSClass", f"Map for '{source_type}'", source_file)
        ref_id = _optional_str(data, "ReferenceIDProperty", f"Map for '{source_type}'", source_file)

        raw_props = data.get("Properties")
        if not isinstance(raw_props, list):
            raise ConfigurationError(f"Map for '{source_type}' requires a 'Properties' list", source=source_file)

        props = [PropertyDefinition.from_dict(p, source=source_file) for p in raw_props]
        logger.debug(f"Parsed map '{source_type}' -> '{target_type}' with {len(props)} properties.")

        return ProjectionMap(
            source_type=source_type,
            target_type=target_type,
            properties=tuple(props),
            reference_id_property=ref_id,
            source_file=source_file,
        )
