import pytest

from pkpdsimconfig.projection.errors import ConfigurationError, NoMappingForType, UnknownProperty
from pkpdsimconfig.projection.maps import ProjectionMap, PropertyDefinition


SPECIES_DEF = {
    "MATLABClass": "SimBiology.Species",
    "JSClass": "SimBiologySpecies",
    "ReferenceIDProperty": "uuid",
    "Properties": [
        {"Name": "uuid", "TargetName": "SessionID", "ReadOnly": True},
        {"Name": "name"},
    ],
}


def test_property_definition_defaults():
    prop = PropertyDefinition.from_dict({"Name": "StartTime"})

    assert prop.target_name == "StartTime"
    assert prop.type is None
    assert prop.is_primitive
    assert not prop.is_array
    assert not prop.is_reference
    assert not prop.read_only


def test_property_definition_round_trips_through_dict():
    data = {"Name": "selected_species", "TargetName": "SelectedSpecies",
            "Type": "SimBiology.Species", "IsArray": True, "IsReference": True}

    assert PropertyDefinition.from_dict(data).to_dict() == data


def test_reference_without_type_is_rejected():
    with pytest.raises(ConfigurationError, match="declares no 'Type'"):
        PropertyDefinition.from_dict({"Name": "selected", "IsReference": True})


@pytest.mark.parametrize("data", [
    {},
    {"Name": ""},
    {"Name": 3},
    {"Name": "x", "IsArray": "yes"},
    {"Name": "x", "Unexpected": 1},
])
def test_malformed_property_definitions(data):
    with pytest.raises(ConfigurationError):
        PropertyDefinition.from_dict(data, source="bad.json")


def test_map_from_dict_keeps_declared_order():
    projection_map = ProjectionMap.from_dict(SPECIES_DEF, source_file="species.json")

    assert projection_map.source_type == "SimBiology.Species"
    assert projection_map.target_type == "SimBiologySpecies"
    assert projection_map.MATLABClass == "SimBiology.Species"
    assert projection_map.JSClass == "SimBiologySpecies"
    assert projection_map.ReferenceIDProperty == "uuid"
    assert projection_map.get_property_names() == ["uuid", "name"]
    assert projection_map.source_file == "species.json"


def test_get_property_definition_unknown_name():
    projection_map = ProjectionMap.from_dict(SPECIES_DEF)

    assert projection_map.get_property_definition("uuid").target_name == "SessionID"
    assert projection_map.get_property_by_target("SessionID").name == "uuid"
    with pytest.raises(UnknownProperty):
        projection_map.get_property_definition("compartment")


@pytest.mark.parametrize("missing", ["MATLABClass", "JSClass", "Properties"])
def test_map_requires_fields(missing):
    data = dict(SPECIES_DEF)
    del data[missing]

    with pytest.raises(ConfigurationError, match="species.json"):
        ProjectionMap.from_dict(data, source_file="species.json")


def test_map_rejects_duplicate_property_names():
    data = dict(SPECIES_DEF, Properties=[{"Name": "name"}, {"Name": "name", "TargetName": "Other"}])

    with pytest.raises(ConfigurationError, match="twice"):
        ProjectionMap.from_dict(data)


def test_map_rejects_duplicate_target_names():
    data = dict(SPECIES_DEF, Properties=[{"Name": "a", "TargetName": "X"}, {"Name": "b", "TargetName": "X"}])

    with pytest.raises(ConfigurationError, match="'X'"):
        ProjectionMap.from_dict(data)


def test_map_is_immutable():
    projection_map = ProjectionMap.from_dict(SPECIES_DEF)

    with pytest.raises(AttributeError):
        projection_map.target_type = "Other"


def test_unbound_map_has_no_nested_maps():
    projection_map = ProjectionMap.from_dict(SPECIES_DEF)

    with pytest.raises(NoMappingForType):
        projection_map.get_nested_map("SimBiology.Model")
