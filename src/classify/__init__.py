"""
Classification Model Package.

Provides one fit/predict interface over two model variants, logistic
regression and random forest, plus named model specifications.

Usage
-----
    from classify import get_model, list_models, predict

    model = get_model('random_forest', n_trees=300, importance=True)
    trained = model.fit(X_train, y_train)
    probabilities = predict(trained, X_test)
    classes = predict(trained, X_test, kind='class', threshold=0.5)

    list_models()
    # ['logistic', 'random_forest']
"""
from __future__ import annotations

from .base import BaseClassifier, ClassificationModel, TrainedModel, predict
from .factory import get_model, get_model_info, list_models, register_model
from .specifications import (
    ModelSpecification,
    create_specification,
    get_specification,
    load_specifications,
    validate_specification,
)

__all__ = [
    # Base classes and types
    'ClassificationModel',
    'BaseClassifier',
    'TrainedModel',
    'predict',
    # Factory functions
    'get_model',
    'get_model_info',
    'list_models',
    'register_model',
    # Specification utilities
    'ModelSpecification',
    'load_specifications',
    'get_specification',
    'validate_specification',
    'create_specification',
]
