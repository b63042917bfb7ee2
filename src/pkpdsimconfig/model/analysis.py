"""
PK/PD Analysis (Data Model)
===========================
This module defines the root object the configuration tool edits.

Why is this file needed?
------------------------
1. State: An Analysis holds the imported model plus everything the user picked
   for simulation and fitting (species, parameters, doses, variants, plots).
2. Persistence: This object is what gets written to an analysis file.
3. Projection: It is the root handed to the ProjectionEngine for the UI.

Classes:
    PKPDParameter: A fit/simulation parameter of the analysis.
    Analysis: The root container.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from pkpdsimconfig.model.simbiology import Dose, Model, Species, Variant

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

LINE_STYLES = ["-", "--", ":", "-."]


class FitErrorModel(StrEnum):
    CONSTANT = "constant"
    PROPORTIONAL = "proportional"
    COMBINED = "combined"
    EXPONENTIAL = "exponential"


class ParameterScale(StrEnum):
    LINEAR = "linear"
    LOG = "log"


@dataclass(eq=False)
class PKPDParameter:
    """Analysis-level copy of a model parameter, with fitting bounds."""
    TYPE_NAME = "PKPD.Parameter"

    name: str
    value: float = 1.0
    scale: ParameterScale = ParameterScale.LINEAR
    lower_bound: float = 0.0
    upper_bound: float = 1.0
    units: str = ""
    fit: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "scale": ParameterScale(self.scale).value,
            "lower_bound": self.lower_bound,
            "upper_bound": self.upper_bound,
            "units": self.units,
            "fit": self.fit,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> PKPDParameter:
        return PKPDParameter(
            name=data["name"],
            value=float(data.get("value", 1.0)),
            scale=ParameterScale(data.get("scale", ParameterScale.LINEAR)),
            lower_bound=float(data.get("lower_bound", 0.0)),
            upper_bound=float(data.get("upper_bound", 1.0)),
            units=data.get("units", ""),
            fit=bool(data.get("fit", True)),
        )


@dataclass(eq=False)
class Analysis:
    """
    Root object of the configuration tool.

    `selected_species`, `selected_doses` and `selected_variants` reference
    components owned by `model_obj`; they are never owned by the analysis.
    """
    TYPE_NAME = "PKPD.Analysis"

    model_obj: Optional[Model] = None

    start_time: float = 0.0
    time_step: float = 1.0
    stop_time: float = 100.0

    fit_function_name: str = "lsqnonlin"
    use_fit_bounds: bool = True
    fit_error_model: FitErrorModel = FitErrorModel.CONSTANT
    num_population_runs: int = 100
    model_documentation: str = ""

    selected_species: List[Species] = field(default_factory=list)
    selected_params: List[PKPDParameter] = field(default_factory=list)
    selected_doses: List[Dose] = field(default_factory=list)
    selected_variants: List[Variant] = field(default_factory=list)

    # Plot configuration, filled in before saving
    plot_species_table: List[List[str]] = field(default_factory=list)
    species_line_styles: List[str] = field(default_factory=list)
    simulation_plot_settings: Dict[str, Any] = field(default_factory=dict)
    color_map: Optional[npt.NDArray] = None

    def import_model(self, model: Model) -> None:
        """Attach `model` and reset every selection that pointed at the old one."""
        logger.info(f"Importing model '{model.name}' into analysis.")
        self.model_obj = model
        self.selected_species = []
        self.selected_doses = []
        self.selected_variants = []
        self.selected_params = [
            PKPDParameter(
                name=p.name,
                value=p.value,
                lower_bound=p.value / 10.0 if p.value > 0 else 0.0,
                upper_bound=p.value * 10.0 if p.value > 0 else 1.0,
                units=p.value_units,
            )
            for p in model.parameters
        ]
        self.plot_species_table = []
        self.species_line_styles = []

    def update_species_line_styles(self) -> None:
        self.species_line_styles = [
            LINE_STYLES[i % len(LINE_STYLES)] for i in range(len(self.plot_species_table))
        ]
        for row, style in zip(self.plot_species_table, self.species_line_styles):
            row[0] = style

    def to_dict(self) -> Dict[str, Any]:
        """
        Everything except the model and the color map.

        Selected components are written as full copies, so a reloaded analysis
        holds detached objects until they are remapped onto the model.
        """
        return {
            "start_time": self.start_time,
            "time_step": self.time_step,
            "stop_time": self.stop_time,
            "fit_function_name": self.fit_function_name,
            "use_fit_bounds": self.use_fit_bounds,
            "fit_error_model": FitErrorModel(self.fit_error_model).value,
            "num_population_runs": self.num_population_runs,
            "model_documentation": self.model_documentation,
            "selected_species": [s.to_dict() for s in self.selected_species],
            "selected_params": [p.to_dict() for p in self.selected_params],
            "selected_doses": [d.to_dict() for d in self.selected_doses],
            "selected_variants": [v.to_dict() for v in self.selected_variants],
            "plot_species_table": [list(row) for row in self.plot_species_table],
            "species_line_styles": list(self.species_line_styles),
            "simulation_plot_settings": dict(self.simulation_plot_settings),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any], model: Optional[Model] = None) -> Analysis:
        return Analysis(
            model_obj=model,
            start_time=float(data.get("start_time", 0.0)),
            time_step=float(data.get("time_step", 1.0)),
            stop_time=float(data.get("stop_time", 100.0)),
            fit_function_name=data.get("fit_function_name", "lsqnonlin"),
            use_fit_bounds=bool(data.get("use_fit_bounds", True)),
            fit_error_model=FitErrorModel(data.get("fit_error_model", FitErrorModel.CONSTANT)),
            num_population_runs=int(data.get("num_population_runs", 100)),
            model_documentation=data.get("model_documentation", ""),
            selected_species=[Species.from_dict(s) for s in data.get("selected_species", [])],
            selected_params=[PKPDParameter.from_dict(p) for p in data.get("selected_params", [])],
            selected_doses=[Dose.from_dict(d) for d in data.get("selected_doses", [])],
            selected_variants=[Variant.from_dict(v) for v in data.get("selected_variants", [])],
            plot_species_table=[list(row) for row in data.get("plot_species_table", [])],
            species_line_styles=list(data.get("species_line_styles", [])),
            simulation_plot_settings=dict(data.get("simulation_plot_settings", {})),
        )
