"""
Analysis Controller
===================
Owns the root Analysis object and connects it to the UI.

Why is this file needed?
------------------------
1. Lifecycle: An Analysis is either loaded from an analysis file (and its
   stale references repaired) or created by importing a model from a model
   project. Saving persists it again.
2. Sync: Every time the root changes, the projected JSON document is emitted
   through `root_changed`, so the UI never reads domain objects directly.
3. Edits: JSON edits coming back from the UI are applied through the
   projection engine, which skips read-only properties.

Classes:
    AnalysisController: The host adapter around the projection core.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import matplotlib
import numpy as np
from PySide6.QtCore import QObject, Signal

from pkpdsimconfig.config import ANALYSIS_FILE_EXTENSION, COLOR_MAP_SIZE, PROJECTION_MAPS_PATH
from pkpdsimconfig.model.analysis import Analysis
from pkpdsimconfig.model.io import IOManager, ModelNotFound
from pkpdsimconfig.model.simbiology import REFERENCE_COLLECTIONS
from pkpdsimconfig.projection.engine import ProjectionEngine
from pkpdsimconfig.projection.registry import MapRegistry
from pkpdsimconfig.projection.resolver import ReferenceResolver

logger = logging.getLogger(__name__)

COLOR_MAP_NAME = "viridis"


class ControllerError(Exception):
    pass


class MultipleModels(ControllerError):
    def __init__(self, filepath: str, model_names: List[str]):
        self.model_names = list(model_names)
        super().__init__(
            f"Project '{filepath}' contains {len(model_names)} models. Please specify model_name."
        )


class NoRootObject(ControllerError):
    pass


def _require_path(filepath: Optional[str | os.PathLike], what: str) -> str:
    if filepath is None or not os.fspath(filepath):
        raise ValueError(f"A file path is required to {what}.")
    return os.fspath(filepath)


class AnalysisController(QObject):
    """Host adapter: loads, saves and projects the root Analysis."""
    root_changed = Signal(object)

    def __init__(
        self,
        engine: Optional[ProjectionEngine] = None,
        resolver: Optional[ReferenceResolver] = None,
        maps_path: Optional[str] = None,
    ) -> None:
        super().__init__()
        if engine is None:
            engine = ProjectionEngine(MapRegistry.load(maps_path or PROJECTION_MAPS_PATH))
        self._engine = engine
        self._resolver = resolver or ReferenceResolver(engine.registry, REFERENCE_COLLECTIONS)
        self._root: Optional[Analysis] = None
        self.source_file_path: str = ""

    @property
    def projection_engine(self) -> ProjectionEngine:
        return self._engine

    @property
    def root_object(self) -> Optional[Analysis]:
        return self._root

    def set_root_object(self, root: Analysis) -> None:
        # A root that cannot be projected never replaces the current one
        document = self._engine.to_json(root)
        self._root = root
        self.root_changed.emit(document)

    def validate_root_object(self) -> Analysis:
        if self._root is None:
            raise NoRootObject("No analysis loaded.")
        return self._root

    # ---- projection ----

    def to_json(self) -> Dict[str, Any]:
        return self._engine.to_json(self.validate_root_object())

    def apply_changes(self, data: Dict[str, Any]) -> None:
        """Apply a JSON edit from the UI to the root object."""
        root = self.validate_root_object()
        self._engine.apply_json(root, data)
        self._emit_root()

    def _emit_root(self) -> None:
        self.root_changed.emit(self._engine.to_json(self._root))

    # ---- load / save ----

    def load_from_analysis_file(self, filepath: Optional[str | os.PathLike] = None) -> Analysis:
        filepath = _require_path(filepath, "load an analysis")

        analysis = IOManager.load_analysis(filepath)
        self._resolver.repair(analysis)

        self.set_root_object(analysis)
        self.source_file_path = filepath
        return analysis

    def load_from_project(
        self,
        filepath: Optional[str | os.PathLike] = None,
        model_name: Optional[str] = None,
    ) -> Analysis:
        filepath = _require_path(filepath, "load a model project")

        if model_name is None:
            model_names = IOManager.list_models(filepath)
            if not model_names:
                raise ModelNotFound(f"Project '{filepath}' contains no models.")
            if len(model_names) > 1:
                raise MultipleModels(filepath, model_names)
            model_name = model_names[0]

        analysis = Analysis()
        analysis.import_model(IOManager.load_model(filepath, model_name))

        self.set_root_object(analysis)
        self.source_file_path = filepath
        return analysis

    def query_project_for_models(self, filepath: Optional[str | os.PathLike] = None) -> List[str]:
        return IOManager.list_models(_require_path(filepath, "query a model project"))

    def save(self, filepath: Optional[str | os.PathLike] = None) -> str:
        filepath = _require_path(filepath, "save the analysis")
        if not filepath.endswith(ANALYSIS_FILE_EXTENSION):
            filepath += ANALYSIS_FILE_EXTENSION

        self.validate_root_object()
        self.prepare_analysis_for_save()

        IOManager.save_analysis(self._root, filepath)
        self.source_file_path = filepath
        return filepath

    def prepare_analysis_for_save(self) -> None:
        """Fill in the settings a simulation run expects from a saved analysis."""
        analysis = self.validate_root_object()

        # Log every selected species during simulation
        if analysis.model_obj is not None:
            analysis.model_obj.runtime_options.states_to_log = list(analysis.selected_species)

        # Plot table rows: [line style, species, display name]
        names = [s.partially_qualified_name for s in analysis.selected_species]
        analysis.plot_species_table = [["", name, name] for name in names]
        analysis.update_species_line_styles()

        analysis.simulation_plot_settings = {
            "Title": "Plot 1",
            "XLabel": "Time",
            "YLabel": "States",
            "XScale": "linear",
            "YScale": "linear",
            "Legend": True,
        }

        cmap = matplotlib.colormaps[COLOR_MAP_NAME]
        analysis.color_map = cmap(np.linspace(0.0, 1.0, COLOR_MAP_SIZE))[:, :3]
        logger.debug(f"Prepared analysis for save with {len(names)} plotted species.")
