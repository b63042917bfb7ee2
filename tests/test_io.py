import h5py
import numpy as np
import pytest

from pkpdsimconfig.model.io import InvalidAnalysisFile, InvalidProjectFile, IOManager, ModelNotFound
from pkpdsimconfig.model.simbiology import Species


def test_saved_analysis_reloads_with_detached_selections(tmp_path, analysis):
    analysis.stop_time = 72.0
    analysis.color_map = np.linspace(0.0, 1.0, 12).reshape(4, 3)
    filepath = str(tmp_path / "analysis.h5")

    IOManager.save_analysis(analysis, filepath)
    loaded = IOManager.load_analysis(filepath)

    assert loaded.stop_time == 72.0
    assert loaded.model_obj.name == "TwoCompPK"
    assert [s.uuid for s in loaded.model_obj.species] == ["S1", "S2", "S3"]
    assert [s.uuid for s in loaded.selected_species] == ["S1", "S2"]
    np.testing.assert_allclose(loaded.color_map, analysis.color_map)

    # Snapshot selections are copies, not the model's own components
    assert loaded.selected_species[0] is not loaded.model_obj.species[0]


def test_states_to_log_rebind_to_own_species(tmp_path, model):
    model.runtime_options.states_to_log = [model.species[1]]
    filepath = str(tmp_path / "project.h5")

    IOManager.save_model_project([model], filepath)
    loaded = IOManager.load_model(filepath, "TwoCompPK")

    assert loaded.runtime_options.states_to_log[0] is loaded.species[1]


def test_large_payloads_use_datasets(tmp_path, analysis):
    analysis.model_obj.species.extend(Species(name=f"X{i}", uuid=f"X{i}") for i in range(1000))
    filepath = str(tmp_path / "big.h5")

    IOManager.save_analysis(analysis, filepath)

    with h5py.File(filepath, "r") as f:
        assert "model" in f["model"]
    assert len(IOManager.load_analysis(filepath).model_obj.species) == 1003


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        IOManager.load_analysis(str(tmp_path / "missing.h5"))


def test_non_hdf5_file_is_rejected(tmp_path):
    filepath = tmp_path / "notes.h5"
    filepath.write_text("plain text", encoding="utf-8")

    with pytest.raises(InvalidAnalysisFile):
        IOManager.load_analysis(str(filepath))


def test_project_file_is_not_an_analysis(tmp_path, model):
    filepath = str(tmp_path / "project.h5")
    IOManager.save_model_project([model], filepath)

    with pytest.raises(InvalidAnalysisFile):
        IOManager.load_analysis(filepath)


def test_analysis_file_is_not_a_project(tmp_path, analysis):
    filepath = str(tmp_path / "analysis.h5")
    IOManager.save_analysis(analysis, filepath)

    with pytest.raises(InvalidProjectFile):
        IOManager.list_models(filepath)


def test_model_project_lists_models_in_order(tmp_path, make_model):
    filepath = str(tmp_path / "project.h5")
    IOManager.save_model_project([make_model("Lotka"), make_model("TMDD")], filepath)

    assert IOManager.list_models(filepath) == ["Lotka", "TMDD"]
    assert IOManager.load_model(filepath, "TMDD").name == "TMDD"
    with pytest.raises(ModelNotFound):
        IOManager.load_model(filepath, "Missing")


def test_export_json(tmp_path, engine, analysis):
    dest = tmp_path / "analysis.json"

    IOManager.export_json(engine.to_json(analysis), str(dest))

    assert '"SelectedSpecies"' in dest.read_text(encoding="utf-8")


def test_model_group_without_payload(tmp_path):
    filepath = str(tmp_path / "broken.h5")
    with h5py.File(filepath, "w") as f:
        f.attrs["file_type"] = "model_project"
        f.create_group("models").create_group("model_000").attrs["name"] = "Empty"

    assert IOManager.list_models(filepath) == ["Empty"]
    with pytest.raises(InvalidProjectFile, match="model_000"):
        IOManager.load_model(filepath, "Empty")
