"""
Reference Atmospheric Profiles

Supply the background sounding used above the vertical extent of the case
data. Two soundings are selectable:

1. McClatchey profile, read from the text table ``McCProfiles.dat``
2. Mid-latitude summer standard atmosphere, read from ``mid_lat_summer_std.nc``

A hard-coded 20-level McClatchey table is also kept through
legacy_mcclatchey_profile(). It documents the unit conventions of the
tabulated sounding (hPa, g kg⁻¹, ozone in units of 1e-5) and is not
selectable through ReferenceProfileProvider.get_profile().
"""

import logging
import numpy as np
import xarray as xr
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from logging_utils import ConfigurationError, InputDataError, ProcessingLogger, error_context
from netcdf_infrastructure import NetCDFReader
from units_constants import pressure_hpa_to_pa, specific_humidity_g_kg_to_kg_kg, ozone_table_to_kg_kg
from validation import validate_profile_monotonicity, validate_physical_ranges


MCCLATCHEY = 1
MID_LATITUDE_SUMMER = 2

PROFILE_NAMES = {
    MCCLATCHEY: "McClatchey",
    MID_LATITUDE_SUMMER: "mid-latitude summer",
}


@dataclass(frozen=True)
class ReferenceProfile:
    """
    Reference sounding ordered from the surface upwards.

    Attributes:
        pressure: Pressure (Pa)
        temperature: Temperature (K)
        q_v: Specific humidity (kg kg⁻¹)
        ozone: Ozone mass mixing ratio (kg kg⁻¹)
    """
    pressure: np.ndarray
    temperature: np.ndarray
    q_v: np.ndarray
    ozone: np.ndarray
    name: str = ""

    def __post_init__(self):
        lengths = {len(self.pressure), len(self.temperature), len(self.q_v), len(self.ozone)}
        if len(lengths) != 1:
            raise InputDataError(
                f"Reference profile sequences differ in length: "
                f"pressure={len(self.pressure)}, temperature={len(self.temperature)}, "
                f"q_v={len(self.q_v)}, ozone={len(self.ozone)}"
            )
        for values in (self.pressure, self.temperature, self.q_v, self.ozone):
            values.flags.writeable = False

    @property
    def nlev(self) -> int:
        return len(self.pressure)

    def to_xarray(self) -> xr.Dataset:
        return xr.Dataset(
            data_vars={
                'pressure': (('level',), self.pressure, {'units': 'Pa'}),
                'temperature': (('level',), self.temperature, {'units': 'K'}),
                'q_v': (('level',), self.q_v, {'units': 'kg kg-1'}),
                'ozone': (('level',), self.ozone, {'units': 'kg kg-1'}),
            },
            attrs={'profile': self.name}
        )


class ReferenceProfileProvider:
    """
    Read reference soundings from the processed case input directory.

    Profiles are re-read on every request; nothing is cached.
    """

    MCCLATCHEY_FILE = "McCProfiles.dat"
    MID_LATITUDE_SUMMER_FILE = "mid_lat_summer_std.nc"

    def __init__(self, input_dir: str = "../processed_case_input",
                 processing_logger: Optional[ProcessingLogger] = None):
        self.input_dir = Path(input_dir)
        self.processing_logger = processing_logger
        self.reader = NetCDFReader()
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_profile(self, choice: int) -> ReferenceProfile:
        """
        Return the selected reference profile.

        Args:
            choice: 1 for McClatchey, 2 for mid-latitude summer

        Returns:
            ReferenceProfile

        Raises:
            ConfigurationError: For an unknown choice
            InputDataError: If the McClatchey table is missing or malformed
            NetCDFError: If the mid-latitude summer file cannot be read
        """
        if choice == MCCLATCHEY:
            path = self.input_dir / self.MCCLATCHEY_FILE
            with error_context("reading reference profile table", self.processing_logger, path=str(path)):
                profile = self._read_mcclatchey(path)
        elif choice == MID_LATITUDE_SUMMER:
            path = self.input_dir / self.MID_LATITUDE_SUMMER_FILE
            with error_context("reading netcdf reference profile", self.processing_logger, path=str(path)):
                profile = self._read_mid_latitude_summer(path)
        else:
            raise ConfigurationError(
                f"Unknown reference_profile_choice {choice}; expected one of {sorted(PROFILE_NAMES)}",
                {'reference_profile_choice': choice}
            )

        if self.processing_logger:
            self.processing_logger.log_file_read(str(path), f"{profile.name} reference profile")
        self._check(profile)
        self.logger.info(f"Using {profile.name} reference profile with {profile.nlev} levels")
        return profile

    def _read_mcclatchey(self, path: Path) -> ReferenceProfile:
        """
        Read the McClatchey table.

        The first line is a header. Every following non-empty line holds five
        values written as 5ES16.4; the first is discarded and the rest are
        pressure (Pa), temperature (K), specific humidity (kg kg⁻¹) and
        ozone (kg kg⁻¹).
        """
        if not path.exists():
            raise InputDataError(f"There was an error opening the file {path}", {'path': str(path)})

        with open(path, 'r') as f:
            lines = f.read().splitlines()[1:]
        records = [line for line in lines if line.strip()]

        table = np.empty((len(records), 4))
        for row, line in enumerate(records):
            values = line.split()
            if len(values) != 5:
                raise InputDataError(
                    f"{path.name} line {row + 2}: expected 5 values, found {len(values)}",
                    {'path': str(path), 'line': row + 2}
                )
            try:
                table[row] = [float(value) for value in values[1:]]
            except ValueError as e:
                raise InputDataError(f"{path.name} line {row + 2}: {e}", {'path': str(path)}) from e

        return ReferenceProfile(
            pressure=table[:, 0].copy(),
            temperature=table[:, 1].copy(),
            q_v=table[:, 2].copy(),
            ozone=table[:, 3].copy(),
            name=PROFILE_NAMES[MCCLATCHEY],
        )

    def _read_mid_latitude_summer(self, path: Path) -> ReferenceProfile:
        with NetCDFReader(path) as reader:
            nlev = reader.dimension_size(reader.handle, 'height')
            return ReferenceProfile(
                pressure=reader.read_1d(reader.handle, 'pressure', nlev),
                temperature=reader.read_1d(reader.handle, 'temperature', nlev),
                q_v=reader.read_1d(reader.handle, 'q_v', nlev),
                ozone=reader.read_1d(reader.handle, 'o3', nlev),
                name=PROFILE_NAMES[MID_LATITUDE_SUMMER],
            )

    def _check(self, profile: ReferenceProfile) -> None:
        results = [
            validate_profile_monotonicity(profile.pressure),
            validate_physical_ranges({
                'pressure': profile.pressure,
                'temperature': profile.temperature,
                'q_v': profile.q_v,
                'ozone': profile.ozone,
            }),
        ]
        for result in results:
            if result['status'] == 'pass':
                continue
            for message in result['messages']:
                self.logger.warning(f"{profile.name} reference profile: {message}")


def legacy_mcclatchey_profile() -> ReferenceProfile:
    """
    Hard-coded 20-level McClatchey sounding.

    Values are tabulated in hPa, g kg⁻¹ and units of 1e-5 for ozone, and
    converted to Pa and kg kg⁻¹ here.
    """
    pressure_hpa = [1030.0, 902.0, 802.0, 710.0, 628.0, 554.0, 487.0, 426.0, 372.0, 281.0,
                    209.0, 130.0, 59.5, 27.7, 13.2, 6.52, 3.33, 0.951, 0.0671, 0.000300]
    temperature = [294., 290., 285., 279., 273., 267., 261., 255., 248., 235.,
                   222., 216., 218., 224., 234., 245., 258., 276., 218., 210.]
    q_v_g_kg = [11.75, 8.611, 6.047, 3.877, 2.363, 1.387, 0.9388, 0.6364, 0.4019, 0.1546,
                0.01976, 0.004002, 0.003999, 0.004011, 0.004002, 0.004004, 0.003994, 0.003995,
                0.003996, 0.004000]
    ozone_table = [6., 6., 6., 6.2, 6.4, 6.6, 6.9, 7.5, 7.9, 9.,
                   12., 19., 34., 30., 20., 9.2, 4.1, 0.43, 0.0086, 0.0000043]

    return ReferenceProfile(
        pressure=pressure_hpa_to_pa(pressure_hpa),
        temperature=np.array(temperature, dtype=np.float64),
        q_v=specific_humidity_g_kg_to_kg_kg(q_v_g_kg),
        ozone=ozone_table_to_kg_kg(ozone_table),
        name="legacy McClatchey",
    )
