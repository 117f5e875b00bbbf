#!/usr/bin/env python3
"""
Validate a workflow definition file and print the result as JSON.

Usage:
    python scripts/validate_workflow.py path/to/workflow.yaml [--strict]
        [--config settings.yaml]

The file may be YAML or JSON.  The script:
  1. Loads engine settings (``--config`` or WORKFLOW_ENGINE_CONFIG)
  2. Parses the document leniently
  3. Runs the graph validator
  4. Prints {"valid", "errors", "warnings", "checksum"} to stdout

Exit status: 0 valid, 1 validation errors (or warnings with --strict),
2 unreadable or malformed file.
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

import yaml

from workflow_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_workflow,
    validation_result_to_dict,
)
from workflow_config.settings import get_settings
from workflow_engines.validation import validate
from workflow_kernel.exceptions import ConfigurationError, WorkflowFormatError
from workflow_kernel.logging_config import configure_logging

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_UNREADABLE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Validate a workflow definition file.")
    parser.add_argument("path", type=Path, help="YAML or JSON workflow definition")
    parser.add_argument(
        "--strict", action="store_true", help="treat warnings as failures",
    )
    parser.add_argument(
        "--config", type=Path, default=None, help="engine settings YAML file",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings(args.config)
    except FileNotFoundError:
        print(f"Error: settings file not found: {args.config}", file=sys.stderr)
        return EXIT_UNREADABLE
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_UNREADABLE
    configure_logging(level=settings.log_level)

    try:
        definition = parse_workflow(load_yaml_file(args.path), defaults=settings.rule_defaults())
    except FileNotFoundError:
        print(f"Error: file not found: {args.path}", file=sys.stderr)
        return EXIT_UNREADABLE
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        print(f"Error: cannot parse {args.path}: {exc}", file=sys.stderr)
        return EXIT_UNREADABLE
    except WorkflowFormatError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_UNREADABLE

    result = validate(definition)
    report = validation_result_to_dict(result)
    report["checksum"] = compute_checksum(definition)
    print(json.dumps(report, indent=2))

    if not result.valid or (args.strict and result.warnings):
        return EXIT_INVALID
    return EXIT_VALID


if __name__ == "__main__":
    sys.exit(main())
