"""
Utilities package.

Provides shared utilities for the risk workflow:
- errors: SchemaError, FitError, ResamplingError
- scoring: AUROC, accuracy and the metric registry
- resampling: k-fold cross-validation
- helpers: Common utility functions
"""
from .errors import FitError, ResamplingError, RiskModelError, SchemaError
