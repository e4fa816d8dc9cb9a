"""
Data Validation for SCM Input Preprocessing

Checks on loaded soundings and case datasets. Each function returns a result
dictionary with 'test_name', 'status' ('pass', 'warning' or 'fail') and a
list of 'messages'; loaders log non-passing results instead of raising.
"""

import numpy as np
from typing import Dict, Any, Optional


# Plausible ranges for atmospheric profile variables (SI units)
PHYSICAL_RANGES = {
    'pressure': (0.0, 110000.0),       # Pa
    'temperature': (150.0, 350.0),     # K
    'q_v': (0.0, 0.05),                # kg kg⁻¹
    'ozone': (0.0, 1.0e-4),            # kg kg⁻¹
}


def validate_profile_monotonicity(pressure: np.ndarray) -> Dict[str, Any]:
    """
    Check that pressure is monotonically non-increasing with level index.

    Args:
        pressure: Pressure sequence ordered from the surface upwards

    Returns:
        Dictionary with validation results
    """
    validation_results = {
        'test_name': 'profile_monotonicity',
        'status': 'pass',
        'num_levels': int(len(pressure)),
        'increasing_levels': [],
        'messages': []
    }

    increments = np.diff(np.asarray(pressure, dtype=np.float64))
    increasing = np.nonzero(increments > 0)[0]

    if increasing.size > 0:
        validation_results['status'] = 'fail'
        validation_results['increasing_levels'] = [int(i) + 1 for i in increasing]
        validation_results['messages'].append(
            f"Pressure increases upwards at {increasing.size} level(s), "
            f"first at level index {int(increasing[0]) + 1}"
        )
    else:
        validation_results['messages'].append("Pressure is monotonically non-increasing")

    return validation_results


def validate_physical_ranges(variables: Dict[str, np.ndarray],
                             ranges: Optional[Dict[str, tuple]] = None) -> Dict[str, Any]:
    """
    Check that variables lie within physically plausible ranges.

    Variables without a configured range are ignored.

    Args:
        variables: Mapping from variable name to values
        ranges: Optional override of PHYSICAL_RANGES

    Returns:
        Dictionary with validation results
    """
    ranges = ranges or PHYSICAL_RANGES
    validation_results = {
        'test_name': 'physical_ranges',
        'status': 'pass',
        'variables_checked': [],
        'messages': []
    }

    for name, values in variables.items():
        if name not in ranges:
            continue
        lower, upper = ranges[name]
        values = np.asarray(values, dtype=np.float64)
        validation_results['variables_checked'].append(name)

        if values.size == 0:
            continue

        if np.any(np.isnan(values)):
            validation_results['status'] = 'warning'
            validation_results['messages'].append(f"{name} contains NaN values")

        out_of_range = np.sum((values < lower) | (values > upper))
        if out_of_range > 0:
            validation_results['status'] = 'warning'
            validation_results['messages'].append(
                f"{name}: {int(out_of_range)} value(s) outside [{lower}, {upper}] "
                f"(min {np.nanmin(values):.4g}, max {np.nanmax(values):.4g})"
            )

    return validation_results


def validate_case_dataset_shapes(dataset) -> Dict[str, Any]:
    """
    Check the level/time shape invariants of a loaded case dataset.

    Args:
        dataset: CaseDataset instance

    Returns:
        Dictionary with validation results
    """
    validation_results = {
        'test_name': 'case_dataset_shapes',
        'status': 'pass',
        'input_nlev': dataset.input_nlev,
        'input_ntimes': dataset.input_ntimes,
        'messages': []
    }

    nlev, ntimes = dataset.input_nlev, dataset.input_ntimes
    expected = {'pressure': (nlev,), 'time': (ntimes,)}
    for name in dataset.initial.VARIABLES:
        expected[f"initial.{name}"] = (nlev,)
    for name in dataset.forcing.SERIES:
        expected[f"forcing.{name}"] = (ntimes,)
    for name in dataset.forcing.FIELDS:
        expected[f"forcing.{name}"] = (ntimes, nlev)

    for key, shape in expected.items():
        actual = np.shape(_lookup(dataset, key))
        if actual != shape:
            validation_results['status'] = 'fail'
            validation_results['messages'].append(
                f"{key} has shape {actual}, expected {shape}"
            )

    if validation_results['status'] == 'pass':
        validation_results['messages'].append(
            f"All {len(expected)} arrays consistent with nlev={nlev}, ntimes={ntimes}"
        )

    return validation_results


def _lookup(dataset, key: str):
    target = dataset
    for part in key.split('.'):
        target = getattr(target, part)
    return target
