#!/usr/bin/env python3
"""Save a form submission's term selections for one object.

The submission file is YAML::

    object_id: 42
    fields:
      - name: topics
        exact_match: false
        values: [5, "New topic"]
        datasource:
          taxonomy: topic
          append_taxonomy: true

Every field is processed against one shared submission before anything is
written, so fields sharing a taxonomy are merged into a single save.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = BASE_DIR / "config" / "config.yaml"
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from term_datasource.config import ConfigError, load_config, load_yaml  # type: ignore  # pylint: disable=import-error
from term_datasource.logging_setup import configure_logging  # type: ignore  # pylint: disable=import-error
from term_datasource.workflow import (  # type: ignore  # pylint: disable=import-error
    FieldSubmission,
    SubmissionResult,
    create_store,
    save_submission,
)

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Save term selections from a YAML form submission.")
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help="Path to configuration YAML file (defaults to config/config.yaml).",
    )
    parser.add_argument("submission", help="Path to the YAML submission file.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Resolve and plan the selections without saving object terms.",
    )
    return parser


def _print_result(result: SubmissionResult) -> None:
    for name, values in result.field_values.items():
        print(f"field {name}: {values}")
    for taxonomy, entry in result.planned.items():
        mode = "append" if entry["append"] else "replace"
        status = ""
        if taxonomy in result.saved:
            status = " saved" if result.saved[taxonomy] else " FAILED"
        print(f"{taxonomy} ({mode}): {entry['term_ids']}{status}")


def run(args: argparse.Namespace) -> SubmissionResult:
    config = load_config(args.config)
    configure_logging(config, base_dir=BASE_DIR)

    data = load_yaml(Path(args.submission)) or {}
    if not isinstance(data, dict) or "object_id" not in data:
        raise ConfigError(f"Submission {args.submission} must be a mapping with an object_id")
    submissions = [FieldSubmission.from_mapping(entry) for entry in data.get("fields") or []]

    store = create_store(config, base_dir=BASE_DIR)
    result = save_submission(
        config,
        store,
        int(data["object_id"]),
        submissions,
        dry_run=args.dry_run,
    )
    _print_result(result)
    if result.saved and not all(result.saved.values()):
        LOGGER.error("Some taxonomies could not be saved; see the log for details")
    return result


def main(argv: Iterable[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    result = run(args)
    if result.saved and not all(result.saved.values()):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
