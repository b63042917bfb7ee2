"""
Projection Engine
=================
Converts an in-memory domain object graph into a JSON-compatible tree, driven
entirely by the projection maps of a MapRegistry, and applies JSON edits sent
back by the UI onto the graph.

Projection rules (per property definition of the object's map):
    * no Type           -> value copied as-is (numpy/enum values made plain)
    * owned Type        -> nested object projected with its own map
    * IsReference       -> {"$ref": <identity key>, "$type": <JSClass>} only
    * IsArray           -> ordered list, [] when empty or None

The engine never mutates the graph during `to_json`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
import logging
import math
import os
from typing import Any, Dict, List, Optional

import numpy as np

from pkpdsimconfig.projection.errors import (
    CyclicOwnership,
    DuplicateReferenceID,
    MissingReferenceID,
    ProjectionError,
    UnknownProperty,
    UnresolvedReference,
)
from pkpdsimconfig.projection.maps import ProjectionMap, PropertyDefinition
from pkpdsimconfig.projection.registry import MapRegistry

logger = logging.getLogger(__name__)

REF_KEY = "$ref"
REF_TYPE_KEY = "$type"


def type_name_of(obj: Any) -> str:
    """Domain type name used to look up an object's projection map."""
    cls = type(obj)
    return getattr(cls, "TYPE_NAME", None) or cls.__name__


def to_plain(value: Any) -> Any:
    """Make a primitive value JSON-compatible (numpy, enums, NaN)."""
    if isinstance(value, Enum):
        return to_plain(value.value)
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        # JSON has no NaN/Inf
        return value if math.isfinite(value) else None
    if isinstance(value, np.ndarray):
        return to_plain(value.tolist())
    if isinstance(value, np.generic):
        return to_plain(value.item())
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


def _as_sequence(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, np.ndarray)):
        return list(value)
    return [value]


@dataclass
class _ProjectionContext:
    """Identity bookkeeping for a single `to_json` call."""
    active: set[int] = field(default_factory=set)
    projected: set[int] = field(default_factory=set)


@dataclass
class _ApplyContext:
    """Pending writes of a single `apply_json` call, committed only if every key resolves."""
    root: Any
    root_map: ProjectionMap
    index: Optional[Dict[tuple[str, Any], Any]] = None
    writes: List[tuple[Any, str, Any]] = field(default_factory=list)


class ProjectionEngine:
    """Schema-driven projection of domain objects to JSON."""

    def __init__(self, registry: MapRegistry):
        self._registry = registry

    @classmethod
    def from_directory(cls, directory: str | os.PathLike) -> ProjectionEngine:
        return cls(MapRegistry.load(directory))

    @property
    def registry(self) -> MapRegistry:
        return self._registry

    def has_map(self, type_name: str) -> bool:
        return self._registry.has_map(type_name)

    def get_map(self, type_name: str) -> ProjectionMap:
        return self._registry.get_map(type_name)

    # ------------------------------------------------------------------
    # Forward projection
    # ------------------------------------------------------------------

    def to_json(self, root: Any) -> Dict[str, Any]:
        """Project `root` and everything it owns into a JSON-shaped dict."""
        type_name = type_name_of(root)
        root_map = self._registry.get_map(type_name)
        logger.debug(f"Projecting '{type_name}' -> '{root_map.target_type}'")
        return self._project_object(root, root_map, _ProjectionContext(), [type_name])

    def to_json_string(self, root: Any, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_json(root), indent=indent, allow_nan=False)

    def _project_object(
        self,
        obj: Any,
        projection_map: ProjectionMap,
        context: _ProjectionContext,
        path: List[str],
    ) -> Dict[str, Any]:
        oid = id(obj)
        if oid in context.active:
            raise CyclicOwnership(path)

        # Shared owned object already emitted elsewhere in this document
        if oid in context.projected and projection_map.reference_id_property:
            return self._reference_marker(obj, projection_map)

        context.active.add(oid)
        try:
            result: Dict[str, Any] = {}
            for prop in projection_map.properties:
                value = self._read(obj, projection_map, prop)
                result[prop.target_name] = self._project_value(value, prop, context, path + [prop.target_name])
        finally:
            context.active.discard(oid)

        context.projected.add(oid)
        return result

    def _project_value(
        self,
        value: Any,
        prop: PropertyDefinition,
        context: _ProjectionContext,
        path: List[str],
    ) -> Any:
        if prop.is_array:
            return [
                self._project_item(item, prop, context, path + [f"[{i}]"])
                for i, item in enumerate(_as_sequence(value))
            ]
        return self._project_item(value, prop, context, path)

    def _project_item(
        self,
        item: Any,
        prop: PropertyDefinition,
        context: _ProjectionContext,
        path: List[str],
    ) -> Any:
        if prop.type is None:
            return to_plain(item)
        if item is None:
            return None

        target_map = self._registry.get_map(prop.type)
        if prop.is_reference:
            return self._reference_marker(item, target_map)
        return self._project_object(item, target_map, context, path)

    def _reference_marker(self, obj: Any, projection_map: ProjectionMap) -> Dict[str, Any]:
        return {
            REF_KEY: to_plain(self._identity_key(obj, projection_map)),
            REF_TYPE_KEY: projection_map.target_type,
        }

    @staticmethod
    def _identity_key(obj: Any, projection_map: ProjectionMap) -> Any:
        id_property = projection_map.reference_id_property
        if not id_property:
            raise MissingReferenceID(projection_map.source_type, source=projection_map.source_file)
        try:
            return getattr(obj, id_property)
        except AttributeError:
            raise UnknownProperty(projection_map.source_type, id_property) from None

    @staticmethod
    def _read(obj: Any, projection_map: ProjectionMap, prop: PropertyDefinition) -> Any:
        try:
            return getattr(obj, prop.name)
        except AttributeError:
            raise UnknownProperty(projection_map.source_type, prop.name) from None

    # ------------------------------------------------------------------
    # Reverse projection (UI edits -> domain graph)
    # ------------------------------------------------------------------

    def apply_json(self, root: Any, data: Dict[str, Any]) -> None:
        """
        Apply a (partial) projected document back onto `root`.

        Keys are target names. ReadOnly properties are skipped, references are
        resolved by identity key against the objects owned by `root`, and owned
        objects are updated in place. Objects are never created or removed.

        The whole document is resolved before anything is written, so a
        failing key leaves `root` untouched.
        """
        root_map = self._registry.get_map(type_name_of(root))
        context = _ApplyContext(root=root, root_map=root_map)
        self._apply_object(root, root_map, data, context)

        for obj, name, value in context.writes:
            setattr(obj, name, value)
        logger.debug(f"Applied {len(context.writes)} property writes to '{root_map.source_type}'.")

    def _apply_object(self, obj: Any, projection_map: ProjectionMap, data: Any, context: _ApplyContext) -> None:
        if not isinstance(data, dict):
            raise ProjectionError(f"Expected a JSON object for '{projection_map.source_type}'")

        for key, value in data.items():
            if key in (REF_KEY, REF_TYPE_KEY):
                continue
            prop = projection_map.get_property_by_target(key)
            if prop.read_only:
                logger.debug(f"Skipping read-only property '{projection_map.source_type}.{prop.name}'")
                continue

            if prop.is_reference:
                context.writes.append((obj, prop.name, self._resolve_references(value, prop, context)))
            elif prop.type is None:
                context.writes.append((obj, prop.name, _as_sequence(value) if prop.is_array else value))
            else:
                nested_map = self._registry.get_map(prop.type)
                current = self._read(obj, projection_map, prop)
                if prop.is_array:
                    self._apply_array(_as_sequence(current), nested_map, _as_sequence(value), context)
                elif current is None:
                    raise ProjectionError(
                        f"'{projection_map.source_type}.{prop.name}' holds no object to update"
                    )
                else:
                    self._apply_object(current, nested_map, value, context)

    def _apply_array(self, current: List[Any], nested_map: ProjectionMap, values: List[Any], context: _ApplyContext) -> None:
        id_property = nested_map.reference_id_property
        if not id_property:
            if len(values) != len(current):
                raise ProjectionError(
                    f"Cannot apply {len(values)} '{nested_map.source_type}' entries onto {len(current)} objects"
                )
            for obj, value in zip(current, values):
                self._apply_object(obj, nested_map, value, context)
            return

        id_target = nested_map.get_property_definition(id_property).target_name
        by_key = {to_plain(self._identity_key(obj, nested_map)): obj for obj in current}
        for value in values:
            key = value.get(id_target, value.get(REF_KEY)) if isinstance(value, dict) else None
            if key not in by_key:
                raise UnresolvedReference(nested_map.source_type, key)
            self._apply_object(by_key[key], nested_map, value, context)

    def _resolve_references(self, value: Any, prop: PropertyDefinition, context: _ApplyContext) -> Any:
        if prop.is_array:
            return [self._resolve_reference(v, prop, context) for v in _as_sequence(value)]
        if value is None:
            return None
        return self._resolve_reference(value, prop, context)

    def _resolve_reference(self, value: Any, prop: PropertyDefinition, context: _ApplyContext) -> Any:
        key = value.get(REF_KEY) if isinstance(value, dict) else value
        if context.index is None:
            context.index = self._index_owned_objects(context.root, context.root_map)
        try:
            return context.index[(prop.type, key)]
        except KeyError:
            raise UnresolvedReference(prop.type, key) from None

    def _index_owned_objects(self, root: Any, root_map: ProjectionMap) -> Dict[tuple[str, Any], Any]:
        """
        Identity key index of every keyed object reachable through owned properties.

        Two distinct objects of one type sharing a key make references to that
        key ambiguous, so they fail with DuplicateReferenceID.
        """
        index: Dict[tuple[str, Any], Any] = {}
        visited: set[int] = set()
        stack: List[tuple[Any, ProjectionMap]] = [(root, root_map)]

        while stack:
            obj, projection_map = stack.pop()
            if id(obj) in visited:
                continue
            visited.add(id(obj))

            if projection_map.reference_id_property:
                key = to_plain(self._identity_key(obj, projection_map))
                entry = (projection_map.source_type, key)
                if entry in index:
                    raise DuplicateReferenceID(projection_map.source_type, key)
                index[entry] = obj

            for prop in projection_map.owned_typed_properties():
                nested_map = self._registry.get_map(prop.type)
                for child in _as_sequence(self._read(obj, projection_map, prop)):
                    if child is not None:
                        stack.append((child, nested_map))

        logger.debug(f"Indexed {len(index)} referenceable objects.")
        return index
