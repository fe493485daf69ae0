#!/usr/bin/env python3
"""Print the option list a term datasource would offer a form field."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, List

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = BASE_DIR / "config" / "config.yaml"
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from term_datasource.config import load_config  # type: ignore  # pylint: disable=import-error
from term_datasource.logging_setup import configure_logging  # type: ignore  # pylint: disable=import-error
from term_datasource.workflow import (  # type: ignore  # pylint: disable=import-error
    build_datasource,
    create_store,
    render_items,
)

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print the term options (flat, grouped or indented) for the configured datasource."
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help="Path to configuration YAML file (defaults to config/config.yaml).",
    )
    parser.add_argument("--search", help="Only list terms whose name or slug contains this text.")
    parser.add_argument(
        "--taxonomy",
        action="append",
        help="Taxonomy to list instead of datasource.taxonomy. May be supplied multiple times.",
    )
    parser.add_argument(
        "--hierarchical",
        action=argparse.BooleanOptionalAction,
        help="Indent child terms below their parents (--no-hierarchical lists them flat).",
    )
    parser.add_argument(
        "--depth",
        type=int,
        help="Maximum hierarchy depth to descend (0 for no limit).",
    )
    parser.add_argument(
        "--show-action",
        action="store_true",
        help="Also print the search action name derived from the datasource options.",
    )
    return parser


def run(args: argparse.Namespace) -> List[str]:
    config = load_config(args.config)
    configure_logging(config, base_dir=BASE_DIR)

    overrides = {}
    if args.taxonomy:
        overrides["taxonomy"] = args.taxonomy
    if args.hierarchical is not None:
        overrides["taxonomy_hierarchical"] = args.hierarchical
    if args.depth is not None:
        overrides["taxonomy_hierarchical_depth"] = args.depth

    store = create_store(config, base_dir=BASE_DIR)
    datasource = build_datasource(config, store, **overrides)
    items = datasource.get_items(args.search)
    LOGGER.info("Found %s options for %s", len(items), ", ".join(datasource.get_taxonomies()))

    lines = render_items(items)
    if args.show_action:
        lines.insert(0, f"action: {datasource.get_ajax_action()}")
    for line in lines:
        print(line)
    return lines


def main(argv: Iterable[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    run(args)


if __name__ == "__main__":
    main()
