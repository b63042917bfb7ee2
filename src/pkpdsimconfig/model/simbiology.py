"""
SimBiology Model Components
===========================
Plain data classes describing a pharmacokinetic model and its components
(species, parameters, doses, variants).

Components are handle-like: two objects are only "the same" component if they
are the same Python object (eq=False). Across save/reload, identity is carried
by the persistent `uuid` of every component.

Classes:
    Species, Parameter, Dose, Variant: Model components.
    RuntimeOptions: Simulation logging options of a model.
    Model: Owns all components.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)


def new_uuid() -> str:
    return str(uuid.uuid4())


class DoseType(StrEnum):
    SCHEDULE = "schedule"
    REPEAT = "repeat"


@dataclass(eq=False)
class Species:
    TYPE_NAME = "SimBiology.Species"

    name: str
    compartment: str = "Central"
    initial_amount: float = 0.0
    initial_amount_units: str = ""
    uuid: str = field(default_factory=new_uuid)

    @property
    def partially_qualified_name(self) -> str:
        if not self.compartment:
            return self.name
        return f"{self.compartment}.{self.name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "compartment": self.compartment,
            "initial_amount": self.initial_amount,
            "initial_amount_units": self.initial_amount_units,
            "uuid": self.uuid,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Species:
        return Species(
            name=data["name"],
            compartment=data.get("compartment", "Central"),
            initial_amount=float(data.get("initial_amount", 0.0)),
            initial_amount_units=data.get("initial_amount_units", ""),
            uuid=data.get("uuid") or new_uuid(),
        )


@dataclass(eq=False)
class Parameter:
    TYPE_NAME = "SimBiology.Parameter"

    name: str
    value: float = 1.0
    value_units: str = ""
    constant_value: bool = True
    uuid: str = field(default_factory=new_uuid)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "value_units": self.value_units,
            "constant_value": self.constant_value,
            "uuid": self.uuid,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Parameter:
        return Parameter(
            name=data["name"],
            value=float(data.get("value", 1.0)),
            value_units=data.get("value_units", ""),
            constant_value=bool(data.get("constant_value", True)),
            uuid=data.get("uuid") or new_uuid(),
        )


@dataclass(eq=False)
class Dose:
    """
    A schedule dose (explicit times/amounts) or a repeat dose
    (amount given `repeat_count` times every `interval`).
    """
    TYPE_NAME = "SimBiology.Dose"

    name: str
    dose_type: DoseType = DoseType.REPEAT
    target_name: str = ""
    amount: float = 0.0
    amount_units: str = ""
    rate: float = 0.0
    interval: float = 0.0
    repeat_count: int = 0
    start_time: float = 0.0
    time_units: str = ""
    active: bool = False
    uuid: str = field(default_factory=new_uuid)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "dose_type": DoseType(self.dose_type).value,
            "target_name": self.target_name,
            "amount": self.amount,
            "amount_units": self.amount_units,
            "rate": self.rate,
            "interval": self.interval,
            "repeat_count": self.repeat_count,
            "start_time": self.start_time,
            "time_units": self.time_units,
            "active": self.active,
            "uuid": self.uuid,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Dose:
        return Dose(
            name=data["name"],
            dose_type=DoseType(data.get("dose_type", DoseType.REPEAT)),
            target_name=data.get("target_name", ""),
            amount=float(data.get("amount", 0.0)),
            amount_units=data.get("amount_units", ""),
            rate=float(data.get("rate", 0.0)),
            interval=float(data.get("interval", 0.0)),
            repeat_count=int(data.get("repeat_count", 0)),
            start_time=float(data.get("start_time", 0.0)),
            time_units=data.get("time_units", ""),
            active=bool(data.get("active", False)),
            uuid=data.get("uuid") or new_uuid(),
        )


@dataclass(eq=False)
class Variant:
    """Alternate values for model quantities. Content rows: [type, name, property, value]."""
    TYPE_NAME = "SimBiology.Variant"

    name: str
    content: List[List[Any]] = field(default_factory=list)
    active: bool = False
    uuid: str = field(default_factory=new_uuid)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "content": [list(row) for row in self.content],
            "active": self.active,
            "uuid": self.uuid,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Variant:
        return Variant(
            name=data["name"],
            content=[list(row) for row in data.get("content", [])],
            active=bool(data.get("active", False)),
            uuid=data.get("uuid") or new_uuid(),
        )


@dataclass(eq=False)
class RuntimeOptions:
    states_to_log: List[Species] = field(default_factory=list)


T = TypeVar("T")


@dataclass(eq=False)
class Model:
    TYPE_NAME = "SimBiology.Model"

    name: str
    species: List[Species] = field(default_factory=list)
    parameters: List[Parameter] = field(default_factory=list)
    doses: List[Dose] = field(default_factory=list)
    variants: List[Variant] = field(default_factory=list)
    runtime_options: RuntimeOptions = field(default_factory=RuntimeOptions)
    uuid: str = field(default_factory=new_uuid)

    def get_doses(self) -> List[Dose]:
        return list(self.doses)

    def get_variants(self) -> List[Variant]:
        return list(self.variants)

    @staticmethod
    def select_by_uuid(collection: Sequence[T], key: str) -> Optional[T]:
        for item in collection:
            if getattr(item, "uuid", None) == key:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "species": [s.to_dict() for s in self.species],
            "parameters": [p.to_dict() for p in self.parameters],
            "doses": [d.to_dict() for d in self.doses],
            "variants": [v.to_dict() for v in self.variants],
            # Logged states are references into our own species
            "states_to_log": [s.uuid for s in self.runtime_options.states_to_log],
            "uuid": self.uuid,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Model:
        model = Model(
            name=data["name"],
            species=[Species.from_dict(s) for s in data.get("species", [])],
            parameters=[Parameter.from_dict(p) for p in data.get("parameters", [])],
            doses=[Dose.from_dict(d) for d in data.get("doses", [])],
            variants=[Variant.from_dict(v) for v in data.get("variants", [])],
            uuid=data.get("uuid") or new_uuid(),
        )

        for key in data.get("states_to_log", []):
            species = Model.select_by_uuid(model.species, key)
            if species is None:
                logger.warning(f"Logged state '{key}' not found in model '{model.name}', ignoring.")
                continue
            model.runtime_options.states_to_log.append(species)

        return model


# Authoritative collection of each referenceable component type, read off a
# Model when stale references are re-bound after a reload.
REFERENCE_COLLECTIONS: Dict[str, Callable[[Model], Sequence[Any]]] = {
    Species.TYPE_NAME: lambda model: model.species,
    Parameter.TYPE_NAME: lambda model: model.parameters,
    Dose.TYPE_NAME: lambda model: model.get_doses(),
    Variant.TYPE_NAME: lambda model: model.get_variants(),
}
