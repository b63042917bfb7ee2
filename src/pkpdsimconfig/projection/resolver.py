"""
Reference Resolver
==================
Repairs reference-valued properties of a freshly loaded root object.

Why is this needed?
-------------------
A snapshot stores the selected species/doses/variants of an analysis as
detached copies. After reload they are no longer the objects owned by the
analysis' model, even though they describe the same logical components.
The resolver re-binds every such reference to the live model component with
the same identity key, and drops references whose component no longer exists.

Resolution is always done by identity key, never by object identity.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Sequence

from pkpdsimconfig.projection.engine import to_plain, type_name_of
from pkpdsimconfig.projection.errors import ConfigurationError, DuplicateReferenceID, UnknownProperty
from pkpdsimconfig.projection.maps import ProjectionMap, PropertyDefinition
from pkpdsimconfig.projection.registry import MapRegistry

logger = logging.getLogger(__name__)

CollectionAccessor = Callable[[Any], Sequence[Any]]


class ReferenceResolver:
    """Re-binds stale references on a root object to its live model's components."""

    def __init__(
        self,
        registry: MapRegistry,
        collections: Mapping[str, CollectionAccessor],
        model_property: str = "model_obj",
    ):
        """
        Args:
            registry: Maps of the root and of every referenced type.
            collections: Source type name -> accessor returning the model's
                authoritative collection for that type.
            model_property: Attribute of the root holding the live model.
        """
        self._registry = registry
        self._model_property = model_property
        self._collections: Dict[str, CollectionAccessor] = dict(collections)

    def repair(self, root: Any) -> Any:
        """Rewrite every reference property of `root` in place and return it."""
        root_map = self._registry.get_map(type_name_of(root))

        model = getattr(root, self._model_property, None)
        if model is None:
            logger.debug(f"'{root_map.source_type}' has no model attached; nothing to remap.")
            return root

        for prop in root_map.reference_properties():
            self._repair_property(root, root_map, prop, model)

        return root

    def _repair_property(self, root: Any, root_map: ProjectionMap, prop: PropertyDefinition, model: Any) -> None:
        try:
            accessor = self._collections[prop.type]
        except KeyError:
            raise ConfigurationError(
                f"No authoritative collection for reference property "
                f"'{root_map.source_type}.{prop.name}' of type '{prop.type}'"
            ) from None

        element_map = self._registry.get_map(prop.type)
        live = self._index(accessor(model) or [], element_map)

        try:
            current = getattr(root, prop.name)
        except AttributeError:
            raise UnknownProperty(root_map.source_type, prop.name) from None

        if not prop.is_array:
            if current is None:
                return
            key = self._key_of(current, element_map)
            replacement = live.get(key)
            if replacement is None:
                logger.debug(f"Dropping '{prop.name}' reference {key!r}: not in model.")
            setattr(root, prop.name, replacement)
            return

        stale = list(current) if current is not None else []
        remapped: List[Any] = []
        seen: set[Any] = set()
        for element in stale:
            key = self._key_of(element, element_map)
            if key in seen:
                continue
            replacement = live.get(key)
            if replacement is None:
                logger.debug(f"Dropping '{prop.name}' reference {key!r}: not in model.")
                continue
            seen.add(key)
            remapped.append(replacement)

        if len(remapped) != len(stale):
            logger.info(f"Remapped '{prop.name}': kept {len(remapped)} of {len(stale)} references.")
        else:
            logger.debug(f"Remapped '{prop.name}': {len(remapped)} references.")
        setattr(root, prop.name, remapped)

    def _index(self, elements: Sequence[Any], element_map: ProjectionMap) -> Dict[Any, Any]:
        index: Dict[Any, Any] = {}
        for element in elements:
            key = self._key_of(element, element_map)
            if key in index and index[key] is not element:
                raise DuplicateReferenceID(element_map.source_type, key)
            index[key] = element
        return index

    @staticmethod
    def _key_of(element: Any, element_map: ProjectionMap) -> Any:
        id_property = element_map.reference_id_property
        try:
            return to_plain(getattr(element, id_property))
        except AttributeError:
            raise UnknownProperty(element_map.source_type, id_property) from None
