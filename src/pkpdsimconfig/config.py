"""
Configuration & Path Management
===============================
This module serves as the central registry for file paths and global constants.

Why is this file needed?
------------------------
1. Abstraction: It prevents hardcoded paths to the projection map definitions
   scattered throughout the code.
2. Deployment: It handles the logic required by PyInstaller (sys._MEIPASS) to
   find assets (projection maps) when the app is frozen into an .exe.

Exports:
    ASSETS_PATH (str): Absolute path to the packaged assets directory.
    PROJECTION_MAPS_PATH (str): Absolute path to the projection map definitions.
    APP_VERSION (str): Installed package version, written into saved files.
"""
import sys
import os
from importlib.metadata import version, PackageNotFoundError
from pathlib import Path


def get_resource_path(relative_path: str) -> str:
    """
    Get absolute path to resource, works for dev and for PyInstaller.
    """
    if hasattr(sys, '_MEIPASS'):
        # PyInstaller temp folder
        base_path: str = getattr(sys, '_MEIPASS')
        return os.path.join(base_path, relative_path)

    # Assets ship inside the package (src/pkpdsimconfig/assets)
    package_root: Path = Path(__file__).parent
    return os.path.join(str(package_root), relative_path)


try:
    APP_VERSION: str = version("pkpdsimconfig")
except PackageNotFoundError:
    APP_VERSION = "0.0.0-dev"

# Global Constants
ASSETS_PATH: str = get_resource_path("assets")
PROJECTION_MAPS_PATH: str = os.path.join(ASSETS_PATH, "model-projection")

ANALYSIS_FILE_EXTENSION: str = ".h5"

# HDF5 attributes are limited to 64KB; larger JSON payloads go to datasets
HDF5_ATTRIBUTE_LIMIT: int = 60000

# Number of entries in the color map written on save
COLOR_MAP_SIZE: int = 64
