"""
Map Registry (Loader)
=====================
Loads a directory of projection map definitions and exposes a read-only
lookup from domain type name to its ProjectionMap.

Loading is all-or-nothing: the registry is only constructed after every file
has been parsed and every cross-reference between maps has been validated.
Once built it is never mutated, so it can be shared between threads.
"""
from __future__ import annotations

import dataclasses
import json
import logging
import os
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from pkpdsimconfig.projection.errors import ConfigurationError, MissingReferenceID, NoMappingForType
from pkpdsimconfig.projection.maps import ProjectionMap

logger = logging.getLogger(__name__)

MAP_FILE_EXTENSION = ".json"


class MapRegistry:
    """Immutable collection of projection maps keyed by source type name."""

    def __init__(self, maps: Mapping[str, ProjectionMap]):
        # Use MapRegistry.load / MapRegistry.from_maps; they validate first
        self._maps: Mapping[str, ProjectionMap] = MappingProxyType(
            {name: dataclasses.replace(m, registry=self) for name, m in maps.items()}
        )

    # ---- construction ----

    @classmethod
    def load(cls, directory: str | os.PathLike) -> MapRegistry:
        """Parse every map definition file in `directory`."""
        directory = os.fspath(directory)
        logger.info(f"Loading projection maps from: {directory}")

        if not os.path.isdir(directory):
            raise ConfigurationError(f"Projection map directory not found: {directory}")

        filenames = sorted(
            name for name in os.listdir(directory)
            if name.lower().endswith(MAP_FILE_EXTENSION)
        )
        if not filenames:
            raise ConfigurationError(f"No projection map definitions ({MAP_FILE_EXTENSION}) in: {directory}")

        maps: list[ProjectionMap] = []
        for filename in filenames:
            filepath = os.path.join(directory, filename)
            maps.append(cls._read_definition(filepath))

        registry = cls.from_maps(maps)
        logger.info(f"Loaded {len(registry)} projection maps.")
        return registry

    @classmethod
    def from_maps(cls, maps: Iterable[ProjectionMap]) -> MapRegistry:
        """Validate already-parsed maps and build a registry from them."""
        by_type: dict[str, ProjectionMap] = {}
        for m in maps:
            existing = by_type.get(m.source_type)
            if existing is not None:
                raise ConfigurationError(
                    f"Type '{m.source_type}' is already defined in {existing.source_file or 'another map'}",
                    source=m.source_file,
                )
            by_type[m.source_type] = m

        cls._validate(by_type)
        return cls(by_type)

    @staticmethod
    def _read_definition(filepath: str) -> ProjectionMap:
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON ({e.msg} at line {e.lineno})", source=filepath) from e
        except OSError as e:
            raise ConfigurationError(f"Could not read map definition: {e}", source=filepath) from e

        return ProjectionMap.from_dict(data, source_file=filepath)

    @staticmethod
    def _validate(by_type: Mapping[str, ProjectionMap]) -> None:
        for m in by_type.values():
            for prop in m.properties:
                if prop.type is None:
                    continue
                target = by_type.get(prop.type)
                if target is None:
                    raise ConfigurationError(
                        f"Property '{m.source_type}.{prop.name}' uses type '{prop.type}' "
                        f"which has no map definition",
                        source=m.source_file,
                    )
                if prop.is_reference and not target.reference_id_property:
                    raise MissingReferenceID(
                        prop.type,
                        referenced_by=f"{m.source_type}.{prop.name}",
                        source=target.source_file,
                    )

    # ---- lookup ----

    def has_map(self, type_name: str) -> bool:
        return type_name in self._maps

    def get_map(self, type_name: str) -> ProjectionMap:
        try:
            return self._maps[type_name]
        except KeyError:
            raise NoMappingForType(type_name) from None

    def types(self) -> list[str]:
        return list(self._maps.keys())

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._maps

    def __iter__(self) -> Iterator[ProjectionMap]:
        return iter(self._maps.values())

    def __len__(self) -> int:
        return len(self._maps)

    def __repr__(self) -> str:
        return f"MapRegistry({', '.join(self._maps)})"
