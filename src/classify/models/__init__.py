"""
Model Variant Implementations.

Available Variants
------------------
- logistic: Unpenalized logistic regression (binomial GLM)
- random_forest: Random forest ensemble with optional importance tracking

Variants are registered via the @register_model decorator when this package
is imported.
"""
from __future__ import annotations

# Import variants to trigger registration
from . import logistic
from . import forest
