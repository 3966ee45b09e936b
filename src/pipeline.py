#!/usr/bin/env python3
"""
Module: pipeline.py
Purpose: Command-line interface for the spatial risk workflow.

This module binds labeled point records, cross-validates named model
specifications, and maps predicted risk over covariate rasters.

Commands
--------
# Evaluation
cross_validate : k-fold cross-validation of a specification
    Options: --specification, --data, --folds, --stratify, --seed, --jobs
    Output: data_work/diagnostics/cv_scores.csv, cv_summary.json

# Mapping
predict_grid : Train on the full sample and predict a risk surface
    Options: --specification, --data, --grid, --layers, --output
    Output: output/risk_surface.tif

# Discovery
list_models : List registered model variants
list_specifications : List specifications in specifications.yml

# Stages
run_stage : Run a specific stage by name with its defaults
    Options: <stage_name>
list_stages : List available stages
    Options: --prefix

Usage
-----
    python src/pipeline.py cross_validate -s landslide_logistic --data data_raw/points.csv
    python src/pipeline.py predict_grid -s landslide_rf --data data_raw/points.csv \\
        --grid data_raw/slope.tif data_raw/elevation.tif
"""
from __future__ import annotations

import argparse
import importlib
import re
import sys
from pathlib import Path

from utils.errors import RiskModelError


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    from config import CV_N_FOLDS, DEFAULT_SPECIFICATION_NAME, RANDOM_STATE

    p = argparse.ArgumentParser(
        description='Spatial Risk Workflow',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    sub = p.add_subparsers(dest='cmd', required=True)

    # Evaluation Commands
    p_cv = sub.add_parser('cross_validate', help='Cross-validate a model specification')
    p_cv.add_argument(
        '--specification', '-s',
        default=DEFAULT_SPECIFICATION_NAME,
        help=f'Specification name (default: {DEFAULT_SPECIFICATION_NAME})'
    )
    p_cv.add_argument(
        '--data', '-d',
        default=None,
        help='Labeled point file (CSV, Parquet, GPKG, SHP or GeoJSON)'
    )
    p_cv.add_argument(
        '--folds', '-k',
        type=int,
        default=CV_N_FOLDS,
        help=f'Number of folds (default: {CV_N_FOLDS})'
    )
    p_cv.add_argument(
        '--stratify',
        action='store_true',
        help='Keep class ratios equal across folds'
    )
    p_cv.add_argument(
        '--seed',
        type=int,
        default=RANDOM_STATE,
        help=f'Seed of the fold shuffle (default: {RANDOM_STATE})'
    )
    p_cv.add_argument(
        '--jobs', '-j',
        type=int,
        default=1,
        help='Worker processes for fold evaluation, 0 = all cores (default: 1)'
    )
    p_cv.add_argument(
        '--specs',
        default=None,
        help='Specifications file (default: specifications.yml)'
    )

    # Mapping Commands
    p_pred = sub.add_parser('predict_grid', help='Predict a risk surface over covariate rasters')
    p_pred.add_argument(
        '--specification', '-s',
        default=DEFAULT_SPECIFICATION_NAME,
        help=f'Specification name (default: {DEFAULT_SPECIFICATION_NAME})'
    )
    p_pred.add_argument(
        '--data', '-d',
        default=None,
        help='Labeled point file used for training'
    )
    p_pred.add_argument(
        '--grid', '-g',
        nargs='+',
        required=True,
        help='Covariate rasters: one multi-band file or one file per layer'
    )
    p_pred.add_argument(
        '--layers', '-l',
        nargs='+',
        default=None,
        help='Layer names (default: band descriptions or file stems)'
    )
    p_pred.add_argument(
        '--output', '-o',
        default=None,
        help='Output GeoTIFF (default: output/risk_surface.tif)'
    )
    p_pred.add_argument(
        '--specs',
        default=None,
        help='Specifications file (default: specifications.yml)'
    )

    # Discovery Commands
    sub.add_parser('list_models', help='List registered model variants')
    p_specs = sub.add_parser('list_specifications', help='List model specifications')
    p_specs.add_argument(
        '--specs',
        default=None,
        help='Specifications file (default: specifications.yml)'
    )

    # Stage Commands
    p_run_stage = sub.add_parser('run_stage', help='Run a specific stage by name')
    p_run_stage.add_argument(
        'stage_name',
        help='Stage name (e.g., s00_sample, s01_crossval)'
    )

    p_list_stages = sub.add_parser('list_stages', help='List available stages')
    p_list_stages.add_argument(
        '--prefix', '-p',
        default=None,
        help='Filter by stage prefix (e.g., s00, s01)'
    )

    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        dispatch(args)
    except (RiskModelError, ValueError, KeyError, FileNotFoundError) as e:
        message = e.args[0] if isinstance(e, KeyError) and e.args else e
        print(f"ERROR: {message}", file=sys.stderr)
        return 1

    return 0


def dispatch(args: argparse.Namespace) -> None:
    """Run the command selected on the command line."""
    specs_path = Path(args.specs) if getattr(args, 'specs', None) else None

    if args.cmd == 'cross_validate':
        from stages import s01_crossval
        s01_crossval.main(
            specification=args.specification,
            data_path=args.data,
            n_folds=args.folds,
            stratify=args.stratify,
            seed=args.seed,
            n_jobs=None if args.jobs == 0 else args.jobs,
            specs_path=specs_path,
        )

    elif args.cmd == 'predict_grid':
        from stages import s02_predict
        grid = args.grid[0] if len(args.grid) == 1 else args.grid
        s02_predict.main(
            specification=args.specification,
            data_path=args.data,
            grid_paths=grid,
            layer_names=args.layers,
            output_path=args.output,
            specs_path=specs_path,
        )

    elif args.cmd == 'list_models':
        list_available_models()

    elif args.cmd == 'list_specifications':
        list_available_specifications(specs_path)

    elif args.cmd == 'run_stage':
        run_stage_by_name(args.stage_name)

    elif args.cmd == 'list_stages':
        list_available_stages(args.prefix)


def list_available_models() -> None:
    """List registered model variants with their defaults."""
    from classify.factory import get_model_info, list_models

    print("Available Models")
    print("=" * 60)
    for name in list_models():
        info = get_model_info(name)
        print(f"  {name:<20} {info['description']}")
        for key, value in info['defaults'].items():
            print(f"      {key} = {value!r}")


def list_available_specifications(path: Path | None = None) -> None:
    """List specifications with model and features."""
    from classify.specifications import get_specification, list_specifications

    print("Available Specifications")
    print("=" * 60)
    names = list_specifications(path)
    if not names:
        print("No specifications found")
        return

    for name in names:
        spec = get_specification(name, path)
        print(f"  {name:<24} {spec.model:<16} {spec.label} ~ {' + '.join(spec.features)}")
        if spec.description:
            print(f"      {spec.description}")


def discover_stages(prefix: str | None = None) -> list[tuple[str, str]]:
    """
    Discover available stage modules.

    Parameters
    ----------
    prefix : str, optional
        Filter by stage prefix (e.g., 's00', 's01')

    Returns
    -------
    list[tuple[str, str]]
        List of (stage_name, description) tuples
    """
    stages_dir = Path(__file__).parent / 'stages'
    stages = []

    for f in sorted(stages_dir.glob('s*.py')):
        name = f.stem
        if prefix and not name.startswith(prefix):
            continue

        # Description is the Purpose: line of the module docstring
        match = re.search(r'Purpose:\s*(.+?)(?:\n|$)', f.read_text())
        desc = match.group(1).strip() if match else ''

        stages.append((name, desc))

    return stages


def list_available_stages(prefix: str | None = None) -> None:
    """List available stage modules."""
    print("Available Pipeline Stages")
    print("=" * 60)

    stages = discover_stages(prefix)

    if not stages:
        if prefix:
            print(f"No stages found with prefix '{prefix}'")
        else:
            print("No stages found")
        return

    for name, desc in stages:
        print(f"  {name:<30} {desc}")

    print()
    print(f"Total: {len(stages)} stage(s)")
    print()
    print("Run a stage with: python src/pipeline.py run_stage <stage_name>")


def run_stage_by_name(stage_name: str) -> None:
    """
    Run a stage by its module name.

    Parameters
    ----------
    stage_name : str
        Stage module name (e.g., 's00_sample', 's01_crossval')

    Raises
    ------
    FileNotFoundError
        If no stage module has that name.
    """
    stages_dir = Path(__file__).parent / 'stages'
    stage_file = stages_dir / f'{stage_name}.py'

    if not stage_file.exists():
        available = ', '.join(name for name, _ in discover_stages())
        raise FileNotFoundError(
            f"Stage '{stage_name}' not found (expected {stage_file}). "
            f"Available stages: {available}"
        )

    module = importlib.import_module(f'stages.{stage_name}')
    module.main()


if __name__ == '__main__':
    sys.exit(main())
