# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Command-line interface to the recommender pipeline.
"""

import sys
from pathlib import Path

import click

from distrec import __version__
from distrec.config import RecommenderConfig, configure, distrec_settings
from distrec.data import ParquetStore
from distrec.diagnostics import ConfigurationError, PhaseFailure
from distrec.logging import LoggingConfig, Stopwatch, console, get_logger
from distrec.orchestrator import Phase, PipelineOrchestrator
from distrec.substrate import LocalSubstrate

__all__ = ["distrec", "main"]
_log = get_logger(__name__)

EXIT_CONFIG = 2
EXIT_PHASE = 3


def main():
    """
    Run the DistRec CLI, mapping failures to exit codes: 2 for configuration
    errors and 3 for failed phases.
    """
    try:
        ec = distrec.main(standalone_mode=False)
    except (click.ClickException, ConfigurationError) as e:
        _log.error("configuration error, terminating: %s", e)
        sys.exit(EXIT_CONFIG)
    except PhaseFailure as e:
        _log.error("pipeline failed: %s", e, phase=e.phase, job=e.job)
        sys.exit(EXIT_PHASE)
    except Exception as e:
        _log.error("DistRec command failed", exc_info=e)
        sys.exit(EXIT_PHASE)

    if isinstance(ec, int):
        sys.exit(ec)


@click.group("distrec")
@click.option("-v", "--verbose", "verbosity", count=True, help="Enable verbose logging output")
@click.option("--log-file", type=Path, metavar="FILE", help="Write JSON logs to FILE.")
@click.option("--skip-log-setup", is_flag=True, hidden=True, envvar="DR_SKIP_LOG_SETUP")
@click.option(
    "-C",
    "--config-dir",
    type=Path,
    metavar="DIR",
    help="Look for distrec.toml in DIR.",
)
def distrec(
    verbosity: int, log_file: Path | None, config_dir: Path | None, skip_log_setup: bool = False
):
    """
    Distributed item- and user-based recommendation.
    """
    if not skip_log_setup:
        lc = LoggingConfig()
        if verbosity:
            lc.set_verbose(verbosity)
        if log_file is not None:
            lc.set_log_file(log_file)
        lc.apply()

    configure(cfg_dir=config_dir)


@distrec.command("version")
def version():
    """
    Print DistRec version info.
    """
    console.print(f"DistRec version [bold cyan]{__version__}[/bold cyan].")


@distrec.command("recommend")
@click.option("-s", "--similarity", required=True, help="Similarity measure name.")
@click.option("--threshold", type=float, help="Discard similarities below this value.")
@click.option("-n", "--num-recommendations", type=int, default=10, help="Recommendations per user.")
@click.option(
    "-m",
    "--max-similarities-per-item",
    "max_sims",
    type=int,
    default=100,
    help="Maximum similarities kept per row.",
)
@click.option(
    "--max-prefs-per-user",
    type=int,
    default=1000,
    help="Sample users down to this many preferences for similarity.",
)
@click.option("--min-prefs-per-user", type=int, default=1, help="Ignore users with fewer preferences.")
@click.option(
    "--max-prefs-considered",
    type=int,
    help="Sample users down to this many preferences for scoring.",
)
@click.option("-b", "--boolean-data", is_flag=True, help="Ignore preference values.")
@click.option("--item-based/--user-based", default=True, help="Compare items or users.")
@click.option("--items-file", type=Path, metavar="FILE", help="Only recommend items listed in FILE.")
@click.option("--encode-ids/--no-encode-ids", default=True, help="Map IDs to dense codes.")
@click.option("--seed", type=int, help="Seed for sampling.")
@click.option("--start-phase", type=int, default=0, help="First phase to run.")
@click.option("--end-phase", type=int, help="Last phase to run.")
@click.option(
    "-w",
    "--work-dir",
    type=Path,
    metavar="DIR",
    help="Keep intermediate artifacts in DIR (required to resume).",
)
@click.argument("INPUT", type=Path)
@click.argument("OUTPUT", type=Path)
def recommend(
    similarity: str,
    threshold: float | None,
    num_recommendations: int,
    max_sims: int,
    max_prefs_per_user: int,
    min_prefs_per_user: int,
    max_prefs_considered: int | None,
    boolean_data: bool,
    item_based: bool,
    items_file: Path | None,
    encode_ids: bool,
    seed: int | None,
    start_phase: int,
    end_phase: int | None,
    work_dir: Path | None,
    input: Path,
    output: Path,
):
    """
    Compute recommendations from the preferences in INPUT and write them to
    OUTPUT.  INPUT is ignored when resuming after the preparation phase.
    """
    config = RecommenderConfig.load(
        {
            "similarity": similarity,
            "threshold": threshold,
            "num_recommendations": num_recommendations,
            "max_similarities_per_row": max_sims,
            "max_prefs_per_user": max_prefs_per_user,
            "min_prefs_per_user": min_prefs_per_user,
            "max_prefs_per_user_considered": max_prefs_considered,
            "boolean_data": boolean_data,
            "item_based": item_based,
            "items_file": items_file,
            "encode_ids": encode_ids,
            "seed": seed,
            "start_phase": start_phase,
            "end_phase": end_phase,
        }
    )

    substrate = None
    if work_dir is not None:
        substrate = LocalSubstrate(
            ParquetStore(work_dir), partitions=distrec_settings().engine.partitions
        )
    orch = PipelineOrchestrator(config, substrate)

    timer = Stopwatch()
    orch.run(input)
    if Phase.RECOMMEND in orch.phases():
        n = orch.save(output)
        _log.info("[%s] recommended for %d users", timer, n, output=str(output))
    else:
        _log.info("[%s] stopped before the recommendation phase", timer)
