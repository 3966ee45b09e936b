"""
Model Variant Factory and Registry.

The set of variants is closed: every variant module registers itself when
``classify.models`` is imported, and asking for any other name fails at
construction time.

Usage
-----
    from classify.factory import get_model, list_models

    model = get_model('random_forest', n_trees=200, importance=True)
    trained = model.fit(X, y)

    list_models()
    # ['logistic', 'random_forest']
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .base import ClassificationModel

# Model registry: name -> variant class
_model_registry: dict[str, type] = {}
_models_loaded = False


def register_model(name: str):
    """
    Decorator to register a model variant.

    Parameters
    ----------
    name : str
        Variant name (e.g., 'logistic', 'random_forest')

    Example
    -------
        @register_model('logistic')
        class LogisticModel(BaseClassifier):
            ...
    """
    def decorator(cls):
        _model_registry[name.lower()] = cls
        return cls
    return decorator


def get_model(name: str, **config) -> 'ClassificationModel':
    """
    Build a model variant.

    Parameters
    ----------
    name : str
        Variant name ('logistic' or 'random_forest').
    **config
        Variant options; unspecified options take the variant defaults.

    Returns
    -------
    ClassificationModel
        Configured, unfitted variant.

    Raises
    ------
    ValueError
        If the variant name or an option is not recognized.
    """
    _ensure_models_loaded()

    key = name.lower()
    if key not in _model_registry:
        available = ', '.join(sorted(_model_registry.keys()))
        raise ValueError(f"Unknown model: '{name}'. Available models: {available}")

    return _model_registry[key](**config)


def list_models() -> list[str]:
    """Names of all registered variants."""
    _ensure_models_loaded()
    return sorted(_model_registry)


def get_model_info(name: str) -> dict:
    """
    Describe a variant.

    Returns
    -------
    dict
        'name', 'known', 'defaults' and 'description' (first docstring line).
    """
    _ensure_models_loaded()

    name = name.lower()
    if name not in _model_registry:
        return {
            'name': name,
            'known': False,
            'defaults': {},
            'description': f"Unknown model: {name}",
        }

    cls = _model_registry[name]
    doc = (cls.__doc__ or '').strip().splitlines()
    return {
        'name': name,
        'known': True,
        'defaults': dict(cls.default_config),
        'description': doc[0] if doc else '',
    }


def _ensure_models_loaded() -> None:
    """Import variant modules so their decorators run."""
    global _models_loaded
    if _models_loaded:
        return

    from . import models  # noqa: F401
    _models_loaded = True
