"""
Specification Management for Model Runs.

A specification names the label column, the ordered feature columns, the
model variant and its options. It replaces formula strings with an explicit
structure that is checked against a sample's schema before any fit.

Usage
-----
    from classify.specifications import load_specifications, get_specification

    # Load all specifications
    specs = load_specifications()

    # Get a specific specification
    spec = get_specification('landslide_rf')
    spec.check_against(sample)
    model = spec.build_model()
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from config import COORD_X_COL, COORD_Y_COL, SPATIAL_DEFAULT_CRS
from spatial.core.sample import FeatureSet, LabeledSample
from utils.errors import SchemaError


@dataclass(frozen=True)
class ModelSpecification:
    """
    One named model run.

    Attributes
    ----------
    name : str
        Specification name.
    model : str
        Variant name ('logistic' or 'random_forest').
    label : str
        Binary label column.
    features : tuple of str
        Ordered feature columns.
    params : dict
        Variant options.
    x, y : str
        Coordinate columns of the point table.
    crs : str
        Reference system of the coordinates.
    positive : optional
        Label value treated as the positive class.
    description : str
        Human-readable description.
    """

    name: str
    model: str
    label: str
    features: tuple[str, ...]
    params: dict = field(default_factory=dict)
    x: str = COORD_X_COL
    y: str = COORD_Y_COL
    crs: str = SPATIAL_DEFAULT_CRS
    positive: Any = None
    description: str = ''

    @classmethod
    def from_dict(cls, name: str, data: dict) -> 'ModelSpecification':
        """
        Build a specification from a parsed YAML entry.

        Raises
        ------
        SchemaError
            If the entry fails :func:`validate_specification`.
        """
        errors = validate_specification(data)
        if errors:
            raise SchemaError(
                f"Invalid specification '{name}':\n" + "\n".join(f"  - {e}" for e in errors)
            )
        return cls(
            name=name,
            model=data['model'],
            label=data['label'],
            features=tuple(data['features']),
            params=dict(data.get('params') or {}),
            x=data.get('x', COORD_X_COL),
            y=data.get('y', COORD_Y_COL),
            crs=str(data.get('crs', SPATIAL_DEFAULT_CRS)),
            positive=data.get('positive'),
            description=data.get('description', ''),
        )

    @property
    def feature_set(self) -> FeatureSet:
        return FeatureSet(self.features)

    def check_against(self, sample: LabeledSample) -> None:
        """
        Confirm the sample carries every column this specification uses.

        Raises
        ------
        SchemaError
            Naming the first missing column, or if the label differs from
            the sample's label column.
        """
        if sample.label_col != self.label:
            raise SchemaError(
                f"Specification label '{self.label}' differs from sample label "
                f"'{sample.label_col}'",
                column=self.label,
            )
        for column in self.features:
            if column not in sample.columns:
                raise SchemaError(f"Feature column not in sample: '{column}'", column=column)
        for column in self.features:
            if column in (sample.x_col, sample.y_col, sample.label_col):
                raise SchemaError(
                    f"Column '{column}' is an identifier and cannot be a feature",
                    column=column,
                )

    def build_model(self):
        """Instantiate the configured model variant."""
        from .factory import get_model
        return get_model(self.model, **self.params)

    def to_dict(self) -> dict:
        spec = {
            'model': self.model,
            'label': self.label,
            'features': list(self.features),
            'params': dict(self.params),
            'x': self.x,
            'y': self.y,
            'crs': self.crs,
        }
        if self.positive is not None:
            spec['positive'] = self.positive
        if self.description:
            spec['description'] = self.description
        return spec


def load_specifications(path: Optional[Path] = None) -> dict[str, dict]:
    """
    Load raw specification entries from a YAML file.

    Parameters
    ----------
    path : Path, optional
        Path to specifications file. Defaults to SPECIFICATIONS_FILE from config.

    Returns
    -------
    dict[str, dict]
        Dictionary of specification_name -> specification_dict

    Raises
    ------
    FileNotFoundError
        If specifications file not found
    yaml.YAMLError
        If YAML parsing fails
    """
    if path is None:
        path = _get_default_spec_path()
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Specifications file not found: {path}")

    with open(path) as f:
        specs = yaml.safe_load(f)

    if specs is None:
        return {}

    return specs


def get_specification(name: str, path: Optional[Path] = None) -> ModelSpecification:
    """
    Get a single specification by name.

    Raises
    ------
    KeyError
        If specification not found
    SchemaError
        If the entry is malformed
    """
    specs = load_specifications(path)

    if name not in specs:
        available = ', '.join(sorted(specs.keys()))
        raise KeyError(
            f"Unknown specification: '{name}'. Available: {available}"
        )

    return ModelSpecification.from_dict(name, specs[name])


def validate_specification(spec: dict) -> list[str]:
    """
    Validate a raw specification dictionary.

    Parameters
    ----------
    spec : dict
        Specification to validate

    Returns
    -------
    list[str]
        List of validation error messages (empty if valid)
    """
    from .factory import list_models

    errors = []

    for required in ('model', 'label'):
        if required not in spec:
            errors.append(f"Missing required field: '{required}'")
        elif not isinstance(spec[required], str):
            errors.append(f"Field '{required}' must be a string")

    if isinstance(spec.get('model'), str) and spec['model'] not in list_models():
        errors.append(
            f"Unknown model '{spec['model']}'; expected one of {', '.join(list_models())}"
        )

    features = spec.get('features')
    if features is None:
        errors.append("Missing required field: 'features'")
    elif not isinstance(features, list) or not features:
        errors.append("Field 'features' must be a non-empty list")
    elif not all(isinstance(f, str) for f in features):
        errors.append("All items in 'features' must be strings")
    elif len(set(features)) != len(features):
        errors.append("Field 'features' contains duplicates")
    elif spec.get('label') in features:
        errors.append("The label column cannot also be a feature")

    if 'params' in spec and spec['params'] is not None and not isinstance(spec['params'], dict):
        errors.append("Field 'params' must be a mapping")

    for coord in ('x', 'y'):
        if coord in spec and not isinstance(spec[coord], str):
            errors.append(f"Field '{coord}' must be a string")

    return errors


def list_specifications(path: Optional[Path] = None) -> list[str]:
    """List all available specification names."""
    specs = load_specifications(path)
    return sorted(specs.keys())


def create_specification(
    name: str,
    model: str,
    label: str,
    features: list[str],
    params: Optional[dict] = None,
    x: str = COORD_X_COL,
    y: str = COORD_Y_COL,
    crs: str = SPATIAL_DEFAULT_CRS,
    description: Optional[str] = None,
) -> ModelSpecification:
    """Create a specification programmatically."""
    data = {
        'model': model,
        'label': label,
        'features': list(features),
        'params': params or {},
        'x': x,
        'y': y,
        'crs': crs,
    }
    if description:
        data['description'] = description
    return ModelSpecification.from_dict(name, data)


def _get_default_spec_path() -> Path:
    """Get default specifications file path."""
    from config import SPECIFICATIONS_FILE
    return SPECIFICATIONS_FILE
