"""CLI do Atlas ETL: `atlas-etl CONFIG [opções]`.

Códigos de saída:
    0  run bem-sucedida (ou --dry-run com documento válido)
    1  run reprovada (Step falhou ou foi pulado sob a política vigente)
    2  ConfigError (documento inválido; nenhum Step executado)
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from atlas_etl import __version__
from atlas_etl.core.config.errors import ConfigError
from atlas_etl.core.config.loader import load_pipeline
from atlas_etl.core.config.settings import (
    ON_STEP_FAILURE_CHOICES,
    ON_VALIDATION_FAILURE_CHOICES,
    RunSettings,
    resolve_settings,
)
from atlas_etl.core.engine.planner import plan_execution
from atlas_etl.core.engine.runner import PipelineRunner
from atlas_etl.core.pipeline.types import PipelineConfig, PipelineResult, StepStatus
from atlas_etl.core.traceability.lineage import JsonlLineageSink
from atlas_etl.core.traceability.log_sink import FileLogSink, LogSink, StreamLogSink
from atlas_etl.core.traceability.manifest import build_manifest, save_manifest
from atlas_etl.logging_config import configure_logging


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="atlas-etl",
        description="Run a declarative ETL pipeline described in a YAML/JSON document",
    )
    parser.add_argument("config", metavar="CONFIG", help="Pipeline document (.yaml, .yml or .json)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Load and validate the document, print the execution plan and run nothing",
    )
    parser.add_argument(
        "--on-step-failure",
        choices=ON_STEP_FAILURE_CHOICES,
        default=None,
        help="Policy for failed steps (overrides the document's settings)",
    )
    parser.add_argument(
        "--on-validation-failure",
        choices=ON_VALIDATION_FAILURE_CHOICES,
        default=None,
        help="Policy for failed validate steps (overrides the document's settings)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (overrides ATLAS_ETL_LOG_LEVEL)",
    )
    parser.add_argument("--log-file", metavar="PATH", help="Append step transition lines to PATH instead of stderr")
    parser.add_argument("--lineage-file", metavar="PATH", help="Append lineage edges (JSON lines) to PATH")
    parser.add_argument("--manifest", metavar="PATH", help="Write the run manifest (JSON) to PATH")
    parser.add_argument("--max-workers", type=int, default=None, help="Run independent steps concurrently")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _print_plan(config: PipelineConfig, settings: RunSettings) -> None:
    plan = plan_execution(config)
    print(f"Pipeline: {config.pipeline_name} ({len(config.steps)} steps)")
    print(
        f"Policies: on_step_failure={settings.on_step_failure} "
        f"on_validation_failure={settings.on_validation_failure} "
        f"max_workers={settings.max_workers}"
    )
    for line in plan.describe():
        print(line)


def _print_summary(result: PipelineResult) -> None:
    print(f"Pipeline: {result.pipeline_name} (run {result.run_id})")
    for r in result.steps:
        line = f"  {r.step_name}: {r.status.value.upper()}"
        if r.error is not None:
            line += f" [{r.error.kind}] {r.error.message}"
        elif r.status == StepStatus.SKIPPED:
            line += f" ({r.summary})"
        print(line)
    outcome = result.status.value.upper()
    if result.aborted:
        outcome += " (aborted)"
    print(f"Result: {outcome}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level_override=args.log_level)

    overrides = {
        "on_step_failure": args.on_step_failure,
        "on_validation_failure": args.on_validation_failure,
        "max_workers": args.max_workers,
    }

    config_path = Path(args.config)
    try:
        config = load_pipeline(config_path)
        settings = resolve_settings(config.settings, overrides)
    except ConfigError as e:
        print(f"{e.kind}: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if args.dry_run:
        _print_plan(config, settings)
        return EXIT_OK

    log_sink: LogSink = FileLogSink(args.log_file) if args.log_file else StreamLogSink(sys.stderr)
    lineage_sink = JsonlLineageSink(args.lineage_file) if args.lineage_file else None

    runner = PipelineRunner(
        config,
        settings=settings,
        log_sink=log_sink,
        lineage_sink=lineage_sink,
        base_dir=config_path.resolve().parent,
    )
    try:
        result = runner.run()
    except ConfigError as e:
        print(f"{e.kind}: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    _print_summary(result)

    if args.manifest:
        manifest = build_manifest(config, result, settings=settings, context=runner.last_context)
        save_manifest(manifest, args.manifest)
        logger.info("manifest written to %s", args.manifest)

    return EXIT_OK if result.succeeded else EXIT_RUN_FAILED
