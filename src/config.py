#!/usr/bin/env python3
"""
Configuration constants for the spatial risk workflow.

This module centralizes paths, resampling and model defaults, and raster
prediction settings. Project-specific values should be customized when
adapting the workflow to a new study area.

Usage
-----
    from config import PROJECT_ROOT, DATA_WORK_DIR, RANDOM_STATE

    # Or import specific sections
    from config import (
        # Paths
        DATA_RAW_DIR,
        DIAGNOSTICS_DIR,
        OUTPUT_DIR,

        # Cross-validation
        CV_N_FOLDS,
        CV_STRATIFY,

        # Models
        RF_DEFAULTS,
        LOGISTIC_DEFAULTS,
    )
"""
from __future__ import annotations

from pathlib import Path


# =============================================================================
# PATHS
# =============================================================================

def _find_project_root() -> Path:
    """Find project root by looking for characteristic files."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'src').exists() and (parent / 'specifications.yml').exists():
            return parent
    # Fallback: use parent of src/
    return Path(__file__).resolve().parent.parent


PROJECT_ROOT = _find_project_root()

# Data directories
DATA_RAW_DIR = PROJECT_ROOT / 'data_raw'
DATA_WORK_DIR = PROJECT_ROOT / 'data_work'
DIAGNOSTICS_DIR = DATA_WORK_DIR / 'diagnostics'

# Risk surfaces and other deliverables
OUTPUT_DIR = PROJECT_ROOT / 'output'

# Named model specifications
SPECIFICATIONS_FILE = PROJECT_ROOT / 'specifications.yml'
DEFAULT_SPECIFICATION_NAME = 'landslide_logistic'


# =============================================================================
# QUALITY ASSURANCE
# =============================================================================

# Enable per-stage QA report generation
ENABLE_QA_REPORTS = True

# Output directory for QA reports
QA_REPORTS_DIR = DATA_WORK_DIR / 'quality'

# QA thresholds (customize per project)
QA_THRESHOLDS = {
    'min_row_count': 20,          # Warn if fewer than 20 labeled records
    'min_minority_pct': 10.0,     # Warn if the rarer class is below 10%
    'min_auroc': 0.6,             # Warn if mean AUROC is barely above chance
}


# =============================================================================
# GEOSPATIAL SETTINGS
# =============================================================================

# Default coordinate reference system for coordinate tables
SPATIAL_DEFAULT_CRS = "EPSG:4326"  # WGS84

# Coordinate column names in point tables
COORD_X_COL = 'x'
COORD_Y_COL = 'y'


# =============================================================================
# CROSS-VALIDATION SETTINGS
# =============================================================================

# Number of folds for k-fold cross-validation
CV_N_FOLDS = 5

# Preserve the class ratio in every fold
CV_STRATIFY = False

# Random seed for fold assignment and random forests
RANDOM_STATE = 42

# Probability cut-off for turning scores into classes
CLASSIFICATION_THRESHOLD = 0.5

# Metrics reported per fold and in aggregate
DEFAULT_METRICS = ('auroc', 'accuracy')


# =============================================================================
# PARALLEL EXECUTION SETTINGS
# =============================================================================

# Maximum number of parallel fold workers (None = use CPU count)
PARALLEL_MAX_WORKERS = None


# =============================================================================
# MODEL DEFAULTS
# =============================================================================

# Logistic regression (unpenalized, GLM-equivalent)
LOGISTIC_DEFAULTS = {
    'tol': 1e-8,
    'max_iter': 1000,
}

# Random forest
RF_DEFAULTS = {
    'n_trees': 500,
    'max_features': 'sqrt',       # or a fraction in (0, 1]
    'importance': False,
    'random_state': RANDOM_STATE,
}

# Repeats for permutation importance when importance tracking is on
PERMUTATION_REPEATS = 10


# =============================================================================
# RASTER PREDICTION SETTINGS
# =============================================================================

# Rows of the covariate grid predicted per block
PREDICT_BLOCK_ROWS = 256

# Output file for the risk surface
RISK_GRID_FILE = 'risk_surface.tif'
RISK_GRID_PATH = OUTPUT_DIR / RISK_GRID_FILE


# =============================================================================
# FILE NAMING CONVENTIONS
# =============================================================================

SCORES_FILE = 'cv_scores.csv'
SCORE_SUMMARY_FILE = 'cv_summary.json'


# =============================================================================
# VALIDATION
# =============================================================================

def validate_config() -> bool:
    """
    Validate configuration settings.

    Returns
    -------
    bool
        True if all validations pass

    Raises
    ------
    ValueError
        If any configuration is invalid
    """
    errors = []

    if not PROJECT_ROOT.exists():
        errors.append(f"PROJECT_ROOT does not exist: {PROJECT_ROOT}")

    if CV_N_FOLDS < 2:
        errors.append(f"CV_N_FOLDS must be at least 2: {CV_N_FOLDS}")

    if not 0 < CLASSIFICATION_THRESHOLD < 1:
        errors.append(
            f"CLASSIFICATION_THRESHOLD must be between 0 and 1: {CLASSIFICATION_THRESHOLD}"
        )

    if RF_DEFAULTS['n_trees'] < 1:
        errors.append(f"RF_DEFAULTS['n_trees'] must be positive: {RF_DEFAULTS['n_trees']}")

    if PREDICT_BLOCK_ROWS < 1:
        errors.append(f"PREDICT_BLOCK_ROWS must be positive: {PREDICT_BLOCK_ROWS}")

    if errors:
        raise ValueError("Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors))

    return True


def ensure_directories() -> None:
    """Create required directories if they don't exist."""
    for path in [DATA_RAW_DIR, DATA_WORK_DIR, DIAGNOSTICS_DIR, OUTPUT_DIR, QA_REPORTS_DIR]:
        path.mkdir(parents=True, exist_ok=True)


# =============================================================================
# MODULE INITIALIZATION
# =============================================================================

if __name__ == '__main__':
    # Print configuration when run directly
    print("Spatial Risk Workflow Configuration")
    print("=" * 50)
    print(f"PROJECT_ROOT:      {PROJECT_ROOT}")
    print(f"DATA_RAW_DIR:      {DATA_RAW_DIR}")
    print(f"DATA_WORK_DIR:     {DATA_WORK_DIR}")
    print(f"OUTPUT_DIR:        {OUTPUT_DIR}")
    print()
    print(f"CV_N_FOLDS:        {CV_N_FOLDS}")
    print(f"CV_STRATIFY:       {CV_STRATIFY}")
    print(f"RANDOM_STATE:      {RANDOM_STATE}")
    print()
    print("Validating configuration...")
    try:
        validate_config()
        print("Configuration valid.")
    except ValueError as e:
        print(f"Configuration invalid:\n{e}")
