"""
Command-line interface.

Usage:
    $ python -m pkpdsimconfig maps [--maps DIR]
    $ python -m pkpdsimconfig project FILE [--model NAME] [--output OUT.json]
    $ python -m pkpdsimconfig analysis FILE [--output OUT.json]
"""
import argparse
import logging
import sys
from typing import List, Optional

from pkpdsimconfig.config import PROJECTION_MAPS_PATH
from pkpdsimconfig.controller.analysis_controller import AnalysisController, ControllerError
from pkpdsimconfig.logging_config import setup_logging
from pkpdsimconfig.model.io import IOManager
from pkpdsimconfig.projection.engine import ProjectionEngine
from pkpdsimconfig.projection.errors import ProjectionError
from pkpdsimconfig.projection.registry import MapRegistry

logger = logging.getLogger("pkpdsimconfig")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pkpdsimconfig",
        description="Project PK/PD analyses to the JSON document consumed by the configuration UI.",
    )
    parser.add_argument("--maps", default=PROJECTION_MAPS_PATH, help="Directory of projection map definitions")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("maps", help="Validate and list the projection maps")

    p_project = subparsers.add_parser("project", help="List models of a model project, or project a new analysis")
    p_project.add_argument("file", help="Model project (.h5)")
    p_project.add_argument("--model", default=None, help="Model to import (required for multi-model projects)")
    p_project.add_argument("--list", action="store_true", help="Only list the models in the project")
    p_project.add_argument("--output", default=None, help="Write the JSON document to this file")

    p_analysis = subparsers.add_parser("analysis", help="Load an analysis file and print its projection")
    p_analysis.add_argument("file", help="Analysis file (.h5)")
    p_analysis.add_argument("--output", default=None, help="Write the JSON document to this file")

    return parser


def _emit(controller: AnalysisController, output: Optional[str]) -> None:
    if output:
        IOManager.export_json(controller.to_json(), output)
    else:
        print(controller.projection_engine.to_json_string(controller.root_object, indent=2))


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=logging.DEBUG if args.debug else logging.WARNING, log_file=args.log_file)

    try:
        if args.command == "maps":
            registry = MapRegistry.load(args.maps)
            for projection_map in registry:
                print(f"{projection_map.source_type} -> {projection_map.target_type} "
                      f"({len(projection_map.properties)} properties)")
            return 0

        controller = AnalysisController(engine=ProjectionEngine.from_directory(args.maps))

        if args.command == "project":
            if args.list:
                for name in controller.query_project_for_models(args.file):
                    print(name)
                return 0
            controller.load_from_project(args.file, args.model)
        else:
            controller.load_from_analysis_file(args.file)

        _emit(controller, args.output)
        return 0

    except (ProjectionError, ControllerError, FileNotFoundError, LookupError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
