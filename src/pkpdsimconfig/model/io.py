"""
Input/Output Manager (HDF5)
Handles saving and loading analyses and model projects to .h5 files.

Analysis file layout:
    /                attrs: version, file_type="analysis"
    /analysis        attrs: settings_json   (or dataset "settings" when large)
    /analysis/color_map   float dataset (N x 3), optional
    /model           attrs: model_json      (or dataset "model"), optional

Model project layout:
    /                attrs: version, file_type="model_project"
    /models/model_000     attrs: name, model_json (or dataset "model")
"""
import json
import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import h5py
import numpy as np

from pkpdsimconfig.config import APP_VERSION, HDF5_ATTRIBUTE_LIMIT
from pkpdsimconfig.model.analysis import Analysis
from pkpdsimconfig.model.simbiology import Model

# Get module logger
logger = logging.getLogger(__name__)

FILE_TYPE_ANALYSIS = "analysis"
FILE_TYPE_MODEL_PROJECT = "model_project"


class InvalidAnalysisFile(ValueError):
    pass


class InvalidProjectFile(ValueError):
    pass


class ModelNotFound(LookupError):
    pass


class IOManager:

    # ---- ANALYSIS FILES ----

    @staticmethod
    def save_analysis(analysis: Analysis, filepath: str) -> None:
        logger.info(f"Saving analysis to: {filepath}")
        try:
            with h5py.File(filepath, "w") as f:
                f.attrs["version"] = APP_VERSION
                f.attrs["file_type"] = FILE_TYPE_ANALYSIS

                # --- 1. SAVE ANALYSIS SETTINGS ---
                # Selected species/doses/variants are stored as full copies
                grp_analysis = f.create_group("analysis")
                IOManager._write_json(grp_analysis, "settings", analysis.to_dict())

                if analysis.color_map is not None:
                    grp_analysis.create_dataset("color_map", data=np.asarray(analysis.color_map, dtype=float))

                # --- 2. SAVE MODEL ---
                if analysis.model_obj is not None:
                    grp_model = f.create_group("model")
                    grp_model.attrs["name"] = analysis.model_obj.name
                    IOManager._write_json(grp_model, "model", analysis.model_obj.to_dict())

            logger.info(f"Analysis saved to: {filepath}")

        except Exception as e:
            logger.exception(f"Failed to save analysis: {e}")
            raise

    @staticmethod
    def load_analysis(filepath: str) -> Analysis:
        """
        Load an analysis snapshot.

        The selections of the returned analysis are detached copies; they must
        be remapped onto `analysis.model_obj` before use.
        """
        logger.info(f"Loading analysis from: {filepath}")
        IOManager._check_hdf5(filepath, InvalidAnalysisFile)

        with h5py.File(filepath, "r") as f:
            if IOManager._file_type(f) != FILE_TYPE_ANALYSIS or "analysis" not in f:
                raise InvalidAnalysisFile(f"File does not contain a valid analysis: {filepath}")

            grp_analysis = f["analysis"]
            settings = IOManager._read_json(grp_analysis, "settings")
            if settings is None:
                raise InvalidAnalysisFile(f"Analysis settings missing in: {filepath}")

            model: Optional[Model] = None
            if "model" in f:
                model_data = IOManager._read_json(f["model"], "model")
                if model_data is not None:
                    model = Model.from_dict(model_data)
                    logger.debug(
                        f"Loaded model '{model.name}' with {len(model.species)} species, "
                        f"{len(model.doses)} doses, {len(model.variants)} variants."
                    )

            analysis = Analysis.from_dict(settings, model=model)

            if "color_map" in grp_analysis:
                analysis.color_map = grp_analysis["color_map"][:]

        logger.info(f"Analysis loaded from: {filepath}")
        return analysis

    # ---- MODEL PROJECTS ----

    @staticmethod
    def save_model_project(models: Sequence[Model], filepath: str) -> None:
        logger.info(f"Saving {len(models)} models to project: {filepath}")
        with h5py.File(filepath, "w") as f:
            f.attrs["version"] = APP_VERSION
            f.attrs["file_type"] = FILE_TYPE_MODEL_PROJECT

            grp_models = f.create_group("models")
            for i, model in enumerate(models):
                grp = grp_models.create_group(f"model_{i:03d}")
                grp.attrs["name"] = model.name
                IOManager._write_json(grp, "model", model.to_dict())

    @staticmethod
    def list_models(filepath: str) -> List[str]:
        IOManager._check_hdf5(filepath, InvalidProjectFile)
        with h5py.File(filepath, "r") as f:
            grp_models = IOManager._models_group(f, filepath)
            return [IOManager._decode(grp_models[key].attrs["name"]) for key in sorted(grp_models.keys())]

    @staticmethod
    def load_model(filepath: str, model_name: str) -> Model:
        logger.info(f"Loading model '{model_name}' from project: {filepath}")
        IOManager._check_hdf5(filepath, InvalidProjectFile)
        with h5py.File(filepath, "r") as f:
            grp_models = IOManager._models_group(f, filepath)
            for key in sorted(grp_models.keys()):
                grp = grp_models[key]
                if IOManager._decode(grp.attrs["name"]) == model_name:
                    model_data = IOManager._read_json(grp, "model")
                    if model_data is None:
                        raise InvalidProjectFile(f"Model group '{grp.name}' holds no model data in: {filepath}")
                    return Model.from_dict(model_data)

        raise ModelNotFound(f"Model '{model_name}' not found in project: {filepath}")

    # ---- EXPORT HELPERS ----

    @staticmethod
    def export_json(data: Dict[str, Any], dest_path: str, indent: int = 2) -> None:
        """Writes a projected document to a JSON file."""
        with open(dest_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent)
        logger.info(f"Projection exported to: {dest_path}")

    # ---- HDF5 HELPERS ----

    @staticmethod
    def _check_hdf5(filepath: str, error: type[ValueError]) -> None:
        if not os.path.isfile(filepath):
            raise FileNotFoundError(f"File not found: {filepath}")
        if not h5py.is_hdf5(filepath):
            msg = f"File '{filepath}' is not a valid HDF5 file."
            logger.error(msg)
            raise error(msg)

    @staticmethod
    def _file_type(f: h5py.File) -> Optional[str]:
        value = f.attrs.get("file_type")
        return IOManager._decode(value) if value is not None else None

    @staticmethod
    def _models_group(f: h5py.File, filepath: str) -> h5py.Group:
        if IOManager._file_type(f) != FILE_TYPE_MODEL_PROJECT or "models" not in f:
            raise InvalidProjectFile(f"File does not contain a model project: {filepath}")
        return f["models"]

    @staticmethod
    def _decode(value: Any) -> str:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    @staticmethod
    def _write_json(group: h5py.Group, name: str, payload: Dict[str, Any]) -> None:
        text = json.dumps(payload)

        # Use dataset if data exceeds HDF5 attribute size limit (64KB)
        if len(text) > HDF5_ATTRIBUTE_LIMIT:
            logger.info(f"'{name}' is large ({len(text)} bytes), using dataset")
            group.create_dataset(name, data=np.void(text.encode("utf-8")))
        else:
            group.attrs[f"{name}_json"] = text

    @staticmethod
    def _read_json(group: h5py.Group, name: str) -> Optional[Dict[str, Any]]:
        if name in group:
            # Large data stored as dataset
            text = bytes(group[name][()]).decode("utf-8")
        elif f"{name}_json" in group.attrs:
            # Small data stored as attribute
            text = IOManager._decode(group.attrs[f"{name}_json"])
        else:
            return None
        return json.loads(text)
