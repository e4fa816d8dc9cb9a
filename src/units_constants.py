"""
Physical Constants and Unit Conversions for SCM Input Preprocessing

Constants and conversion helpers for the reference soundings and case data.
Tabulated soundings are commonly published in hPa, g kg⁻¹ and scaled ozone
mixing ratios; the model works in SI units (Pa, kg kg⁻¹).

References:
- McClatchey et al. (1972), Optical Properties of the Atmosphere, AFCRL-72-0497
"""

import numpy as np
from typing import Union


# =============================================================================
# PHYSICAL CONSTANTS
# =============================================================================

class PhysicalConstants:
    """
    Scale factors of tabulated soundings relative to SI units.
    """

    PA_PER_HPA = 100.0
    KG_PER_G = 1.0e-3
    OZONE_TABLE_SCALE = 1.0e-5  # tabulated ozone unit -> kg kg⁻¹


# =============================================================================
# UNIT CONVERSION FUNCTIONS
# =============================================================================

def pressure_hpa_to_pa(pressure_hpa: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Convert pressure from hectopascals to Pascals.

    Args:
        pressure_hpa: Pressure in hectopascals (hPa)

    Returns:
        Pressure in Pascals
    """
    return np.asarray(pressure_hpa, dtype=np.float64) * PhysicalConstants.PA_PER_HPA


def specific_humidity_g_kg_to_kg_kg(humidity_g_kg: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Convert specific humidity from g kg⁻¹ to kg kg⁻¹.

    Args:
        humidity_g_kg: Specific humidity in g kg⁻¹

    Returns:
        Specific humidity in kg kg⁻¹
    """
    return np.asarray(humidity_g_kg, dtype=np.float64) * PhysicalConstants.KG_PER_G


def ozone_table_to_kg_kg(ozone_table: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Convert tabulated ozone values (units of 1e-5) to kg kg⁻¹.

    Args:
        ozone_table: Ozone in tabulated units

    Returns:
        Ozone mass mixing ratio in kg kg⁻¹
    """
    return np.asarray(ozone_table, dtype=np.float64) * PhysicalConstants.OZONE_TABLE_SCALE

