import json
from dataclasses import dataclass, field
from typing import Any, List, Optional

import numpy as np
import pytest

from pkpdsimconfig.model.analysis import Analysis, FitErrorModel
from pkpdsimconfig.projection.engine import REF_KEY, REF_TYPE_KEY, ProjectionEngine, to_plain, type_name_of
from pkpdsimconfig.projection.errors import CyclicOwnership, MissingReferenceID, NoMappingForType, UnknownProperty
from pkpdsimconfig.projection.maps import ProjectionMap, PropertyDefinition
from pkpdsimconfig.projection.registry import MapRegistry


def test_scenario_selected_species_are_references(engine, analysis):
    result = engine.to_json(analysis)

    species = result["ModelObj"]["Species"]
    assert [s["SessionID"] for s in species] == ["S1", "S2", "S3"]
    assert species[0] == {
        "SessionID": "S1",
        "Name": "Drug",
        "PartiallyQualifiedName": "Central.Drug",
        "InitialAmount": 0.0,
        "InitialAmountUnits": "",
    }

    assert result["SelectedSpecies"] == [
        {REF_KEY: "S1", REF_TYPE_KEY: "SimBiologySpecies"},
        {REF_KEY: "S2", REF_TYPE_KEY: "SimBiologySpecies"},
    ]
    assert result["SelectedDoses"] == [{REF_KEY: "D1", REF_TYPE_KEY: "SimBiologyDose"}]
    assert result["SelectedVariants"] == [{REF_KEY: "V2", REF_TYPE_KEY: "SimBiologyVariant"}]


def test_output_keys_follow_declared_order(engine, registry, analysis):
    result = engine.to_json(analysis)

    expected = [p.target_name for p in registry.get_map("PKPD.Analysis").properties]
    assert list(result.keys()) == expected


def test_primitive_values_pass_through(engine, analysis):
    analysis.start_time = 0
    analysis.stop_time = 100
    analysis.time_step = 1
    analysis.fit_error_model = FitErrorModel.PROPORTIONAL

    result = engine.to_json(analysis)

    assert result["StartTime"] == 0
    assert result["StopTime"] == 100
    assert result["TimeStep"] == 1
    assert result["FitErrorModel"] == "proportional"
    assert result["UseFitBounds"] is True


def test_owned_array_of_analysis_parameters(engine, analysis):
    result = engine.to_json(analysis)

    assert [p["Name"] for p in result["SelectedParams"]] == ["CL", "Vc"]
    assert result["SelectedParams"][0]["Scale"] == "linear"


def test_empty_arrays_project_as_empty_lists(engine):
    result = engine.to_json(Analysis())

    assert result["ModelObj"] is None
    for key in ("SelectedSpecies", "SelectedParams", "SelectedDoses", "SelectedVariants"):
        assert key in result
        assert result[key] == []


def test_reference_never_embeds_full_object(engine, analysis):
    analysis.selected_species = list(analysis.model_obj.species)

    result = engine.to_json(analysis)

    for entry in result["SelectedSpecies"]:
        assert set(entry) == {REF_KEY, REF_TYPE_KEY}


def test_projection_is_json_serializable(engine, analysis):
    text = engine.to_json_string(analysis)

    assert json.loads(text)["ModelObj"]["Name"] == "TwoCompPK"


def test_projection_does_not_mutate_graph(engine, analysis):
    before = analysis.to_dict()
    selected = list(analysis.selected_species)

    engine.to_json(analysis)

    assert analysis.to_dict() == before
    assert all(a is b for a, b in zip(analysis.selected_species, selected))


def test_unmapped_root_type(engine):
    with pytest.raises(NoMappingForType, match="object"):
        engine.to_json(object())


def test_engine_delegates_map_lookup(engine):
    assert engine.has_map("PKPD.Analysis")
    assert not engine.has_map("PKPD.Unknown")
    assert engine.get_map("SimBiology.Model").target_type == "SimBiologyModel"


def test_to_plain_converts_numpy_and_nan():
    assert to_plain(np.float64(1.5)) == 1.5
    assert to_plain(np.int32(3)) == 3
    assert to_plain(np.array([[1, 2], [3, 4]])) == [[1, 2], [3, 4]]
    assert to_plain(float("nan")) is None
    assert to_plain({"a": (1, np.bool_(True))}) == {"a": [1, True]}


def test_type_name_of_prefers_declared_name():
    class Plain:
        pass

    assert type_name_of(Analysis()) == "PKPD.Analysis"
    assert type_name_of(Plain()) == "Plain"


# ---- generic graphs built from ad-hoc maps ----

@dataclass(eq=False)
class Node:
    TYPE_NAME = "Node"

    key: str
    label: str = ""
    children: List[Any] = field(default_factory=list)
    link: Optional[Any] = None
    values: Any = None


def _node_registry(node_ref_id: Optional[str] = "key", link_is_reference: bool = True) -> MapRegistry:
    return MapRegistry.from_maps([
        ProjectionMap(
            source_type="Node",
            target_type="JSNode",
            reference_id_property=node_ref_id,
            properties=(
                PropertyDefinition("key"),
                PropertyDefinition("label", "Label"),
                PropertyDefinition("children", "Children", type="Node", is_array=True),
                PropertyDefinition("link", "Link", type="Node", is_reference=link_is_reference),
                PropertyDefinition("values", "Values", is_array=True),
            ),
        )
    ])


def test_cycle_through_owned_properties_fails_fast():
    root = Node("a")
    child = Node("b")
    root.children = [child]
    child.children = [root]

    engine = ProjectionEngine(_node_registry())

    with pytest.raises(CyclicOwnership) as excinfo:
        engine.to_json(root)
    assert excinfo.value.path[0] == "Node"


def test_cycle_through_references_is_allowed():
    root = Node("a")
    child = Node("b", link=root)
    root.children = [child]
    root.link = child

    result = ProjectionEngine(_node_registry()).to_json(root)

    assert result["Link"] == {REF_KEY: "b", REF_TYPE_KEY: "JSNode"}
    assert result["Children"][0]["Link"] == {REF_KEY: "a", REF_TYPE_KEY: "JSNode"}


def test_shared_owned_object_is_embedded_once():
    shared = Node("s", label="shared")
    root = Node("r", children=[Node("x", children=[shared]), Node("y", children=[shared])])

    result = ProjectionEngine(_node_registry()).to_json(root)

    first, second = result["Children"]
    assert first["Children"][0]["Label"] == "shared"
    assert second["Children"][0] == {REF_KEY: "s", REF_TYPE_KEY: "JSNode"}


def test_shared_owned_object_without_identity_key_is_copied():
    shared = Node("s", label="shared")
    root = Node("r", children=[shared, shared])

    registry = _node_registry(node_ref_id=None, link_is_reference=False)
    result = ProjectionEngine(registry).to_json(root)

    assert [c["Label"] for c in result["Children"]] == ["shared", "shared"]


def test_primitive_arrays_preserve_order_and_wrap_scalars():
    engine = ProjectionEngine(_node_registry())

    assert engine.to_json(Node("a", values=np.array([3.0, 1.0, 2.0])))["Values"] == [3.0, 1.0, 2.0]
    assert engine.to_json(Node("a", values=("x", "y")))["Values"] == ["x", "y"]
    assert engine.to_json(Node("a", values=7))["Values"] == [7]
    assert engine.to_json(Node("a", values=None))["Values"] == []


def test_missing_source_property_is_reported():
    @dataclass
    class Broken:
        TYPE_NAME = "Node"
        key: str = "k"

    with pytest.raises(UnknownProperty, match="label"):
        ProjectionEngine(_node_registry()).to_json(Broken())


def test_reference_to_type_without_identity_key_fails_at_projection():
    # Bypass registry validation to reach the engine's own check
    registry = _node_registry(node_ref_id=None, link_is_reference=False)
    node_map = registry.get_map("Node")
    broken = ProjectionMap(
        source_type="Node",
        target_type="JSNode",
        properties=node_map.properties[:3] + (PropertyDefinition("link", "Link", type="Node", is_reference=True),),
    )
    registry = MapRegistry({"Node": broken})

    with pytest.raises(MissingReferenceID):
        ProjectionEngine(registry).to_json(Node("a", link=Node("b")))
