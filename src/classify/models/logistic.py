"""
Logistic regression variant.

Unpenalized logistic regression, equivalent to a binomial GLM with a logit
link. The only options are the numerical convergence controls.

Usage
-----
    from classify import get_model

    model = get_model('logistic')
    trained = model.fit(X_train, y_train)
    print(trained.coefficients())
"""
from __future__ import annotations

from sklearn.linear_model import LogisticRegression

from config import LOGISTIC_DEFAULTS

from ..base import BaseClassifier
from ..factory import register_model


@register_model('logistic')
class LogisticModel(BaseClassifier):
    """Unpenalized logistic regression (binomial GLM)."""

    name = 'logistic'
    default_config = dict(LOGISTIC_DEFAULTS)

    def _validate_config(self) -> None:
        if self.config['tol'] <= 0:
            raise ValueError(f"tol must be positive: {self.config['tol']}")
        if int(self.config['max_iter']) < 1:
            raise ValueError(f"max_iter must be positive: {self.config['max_iter']}")

    def _build_estimator(self) -> LogisticRegression:
        return LogisticRegression(
            penalty=None,
            solver='lbfgs',
            tol=float(self.config['tol']),
            max_iter=int(self.config['max_iter']),
        )
