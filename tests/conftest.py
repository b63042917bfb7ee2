import json

import pytest

from pkpdsimconfig.config import PROJECTION_MAPS_PATH
from pkpdsimconfig.model.analysis import Analysis
from pkpdsimconfig.model.simbiology import Dose, DoseType, Model, Parameter, Species, Variant
from pkpdsimconfig.projection.engine import ProjectionEngine
from pkpdsimconfig.projection.registry import MapRegistry


@pytest.fixture(scope="session")
def registry():
    return MapRegistry.load(PROJECTION_MAPS_PATH)


@pytest.fixture(scope="session")
def engine(registry):
    return ProjectionEngine(registry)


def build_model(name="TwoCompPK"):
    return Model(
        name=name,
        species=[
            Species(name="Drug", compartment="Central", initial_amount=0.0, uuid="S1"),
            Species(name="Drug", compartment="Peripheral", initial_amount=0.0, uuid="S2"),
            Species(name="Metabolite", compartment="Central", initial_amount=0.0, uuid="S3"),
        ],
        parameters=[
            Parameter(name="CL", value=2.0, value_units="liter/hour", uuid="P1"),
            Parameter(name="Vc", value=10.0, value_units="liter", uuid="P2"),
        ],
        doses=[
            Dose(name="Bolus", dose_type=DoseType.REPEAT, target_name="Central.Drug",
                 amount=100.0, interval=12.0, repeat_count=3, uuid="D1"),
            Dose(name="Infusion", dose_type=DoseType.SCHEDULE, target_name="Central.Drug",
                 amount=50.0, rate=10.0, uuid="D2"),
        ],
        variants=[
            Variant(name="HighCL", content=[["parameter", "CL", "Value", 4.0]], uuid="V1"),
            Variant(name="LowVc", content=[["parameter", "Vc", "Value", 5.0]], uuid="V2"),
        ],
        uuid="M1",
    )


@pytest.fixture
def make_model():
    return build_model


@pytest.fixture
def model():
    return build_model()


@pytest.fixture
def analysis(model):
    a = Analysis()
    a.import_model(model)
    a.selected_species = [model.species[0], model.species[1]]
    a.selected_doses = [model.doses[0]]
    a.selected_variants = [model.variants[1]]
    return a


@pytest.fixture
def write_maps(tmp_path):
    """Write map definitions (dicts) into a fresh directory and return its path."""
    def _write(*definitions, directory="maps"):
        maps_dir = tmp_path / directory
        maps_dir.mkdir()
        for i, definition in enumerate(definitions):
            (maps_dir / f"map_{i:02d}.json").write_text(json.dumps(definition), encoding="utf-8")
        return maps_dir
    return _write
