"""
Case Input Loader

Load the initial profiles and forcing for a single-column model case from
its processed NetCDF4 case file.

File schema (``<input_dir>/<case_name>.nc``):
- root dimensions ``levels`` and ``time``; root variables ``levels``
  (pressure, Pa) and ``time`` (s since the start of the case)
- group ``initial``: level-indexed initial profiles
- group ``forcing``: time series of surface quantities and (levels, time)
  forcing fields, returned to callers as (time, levels)

Surface heat fluxes are only read when the case is run with specified
surface fluxes; otherwise they are zero and need not be present in the file.
"""

import logging
import numpy as np
import xarray as xr
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Dict, Optional, Tuple

from logging_utils import ProcessingLogger, error_context
from netcdf_infrastructure import NetCDFReader
from validation import validate_case_dataset_shapes, validate_physical_ranges


@dataclass
class InitialProfile:
    """
    Level-indexed initial conditions.

    Attributes:
        height: Height of the pressure levels (m)
        thetail: Ice-liquid water potential temperature (K)
        qt: Total water specific humidity (kg kg⁻¹)
        ql: Liquid water specific humidity (kg kg⁻¹)
        qi: Ice water specific humidity (kg kg⁻¹)
        u: East-west wind (m s⁻¹)
        v: North-south wind (m s⁻¹)
        tke: Turbulence kinetic energy (m² s⁻²)
        ozone: Ozone mass mixing ratio (kg kg⁻¹)
    """
    height: np.ndarray
    thetail: np.ndarray
    qt: np.ndarray
    ql: np.ndarray
    qi: np.ndarray
    u: np.ndarray
    v: np.ndarray
    tke: np.ndarray
    ozone: np.ndarray

    VARIABLES: ClassVar[Tuple[str, ...]] = (
        'height', 'thetail', 'qt', 'ql', 'qi', 'u', 'v', 'tke', 'ozone'
    )

    def as_dict(self) -> Dict[str, np.ndarray]:
        return {name: getattr(self, name) for name in self.VARIABLES}


@dataclass
class ForcingData:
    """
    Time series (ntimes,) and time-level fields (ntimes, nlev) of the forcing.

    Units: lat/lon in degrees, p_surf in Pa, t_surf in K, sensible heat flux
    in K m s⁻¹, latent heat flux in kg kg⁻¹ m s⁻¹, vertical velocities in
    m s⁻¹ (w_ls) and Pa s⁻¹ (omega), winds in m s⁻¹, nudging temperatures in
    K, humidity in kg kg⁻¹ and all tendencies per second.
    """
    lat: np.ndarray
    lon: np.ndarray
    p_surf: np.ndarray
    t_surf: np.ndarray
    sh_flux_sfc: np.ndarray
    lh_flux_sfc: np.ndarray
    w_ls: np.ndarray
    omega: np.ndarray
    u_g: np.ndarray
    v_g: np.ndarray
    u_nudge: np.ndarray
    v_nudge: np.ndarray
    t_nudge: np.ndarray
    thil_nudge: np.ndarray
    qt_nudge: np.ndarray
    dt_dt_rad: np.ndarray
    h_advec_thetail: np.ndarray
    h_advec_qt: np.ndarray
    v_advec_thetail: np.ndarray
    v_advec_qt: np.ndarray

    SERIES: ClassVar[Tuple[str, ...]] = (
        'lat', 'lon', 'p_surf', 't_surf', 'sh_flux_sfc', 'lh_flux_sfc'
    )
    SURFACE_FLUXES: ClassVar[Tuple[str, ...]] = ('sh_flux_sfc', 'lh_flux_sfc')
    FIELDS: ClassVar[Tuple[str, ...]] = (
        'w_ls', 'omega', 'u_g', 'v_g', 'u_nudge', 'v_nudge', 't_nudge',
        'thil_nudge', 'qt_nudge', 'dt_dt_rad', 'h_advec_thetail', 'h_advec_qt',
        'v_advec_thetail', 'v_advec_qt'
    )
    # Attribute name -> variable name in the case file, where they differ
    FILE_NAMES: ClassVar[Dict[str, str]] = {
        't_surf': 'T_surf',
        't_nudge': 'T_nudge',
        'dt_dt_rad': 'dT_dt_rad',
    }

    @classmethod
    def file_name(cls, attribute: str) -> str:
        return cls.FILE_NAMES.get(attribute, attribute)


@dataclass
class CaseDataset:
    """
    Everything read from one case file.

    Arrays are freshly allocated per load and owned by the caller.
    """
    case_name: str
    input_nlev: int
    input_ntimes: int
    pressure: np.ndarray
    time: np.ndarray
    initial: InitialProfile
    forcing: ForcingData

    def to_xarray(self) -> xr.Dataset:
        """Return the case data as an xarray Dataset using the file's variable names."""
        data_vars = {}
        for name, values in self.initial.as_dict().items():
            data_vars[name] = (('levels',), values)
        for attribute in ForcingData.SERIES:
            data_vars[ForcingData.file_name(attribute)] = (('time',), getattr(self.forcing, attribute))
        for attribute in ForcingData.FIELDS:
            data_vars[ForcingData.file_name(attribute)] = (('time', 'levels'), getattr(self.forcing, attribute))

        return xr.Dataset(
            data_vars=data_vars,
            coords={'levels': self.pressure, 'time': self.time},
            attrs={'case_name': self.case_name}
        )


class CaseInputLoader:
    """
    Read case initialization and forcing data from processed case files.
    """

    def __init__(self, input_dir: str = "../processed_case_input",
                 processing_logger: Optional[ProcessingLogger] = None):
        """
        Initialize case input loader.

        Args:
            input_dir: Directory containing ``<case_name>.nc`` files
            processing_logger: Optional run logger that records file reads and errors
        """
        self.input_dir = Path(input_dir)
        self.processing_logger = processing_logger
        self.reader = NetCDFReader()
        self.logger = logging.getLogger(self.__class__.__name__)

    def case_path(self, case_name: str) -> Path:
        return self.input_dir / f"{case_name.strip()}.nc"

    def load(self, case_name: str, surface_flux_specified: bool) -> CaseDataset:
        """
        Load the initial profiles and forcing of a case.

        Args:
            case_name: Case name; the file ``<case_name>.nc`` is read
            surface_flux_specified: Read surface heat fluxes from the file;
                if False they are set to zero

        Returns:
            CaseDataset with consistent level/time shapes

        Raises:
            NetCDFError: If the file, a dimension, group or variable is missing
                or has the wrong shape
        """
        path = self.case_path(case_name)
        self.logger.info(f"Loading case input for '{case_name}' from {path}")

        with error_context("loading netcdf case input", self.processing_logger,
                           case_name=case_name, path=str(path)):
            handle = self.reader.open(path)
            try:
                dataset = self._read_case(handle, case_name, surface_flux_specified)
            finally:
                self.reader.close(handle)

        if self.processing_logger:
            self.processing_logger.log_file_read(str(path), "case input")

        self._report(validate_case_dataset_shapes(dataset))
        self._report(validate_physical_ranges({'pressure': dataset.pressure}))

        self.logger.info(
            f"Loaded case '{case_name}': {dataset.input_nlev} levels, {dataset.input_ntimes} times"
        )
        return dataset

    def _read_case(self, handle, case_name: str, surface_flux_specified: bool) -> CaseDataset:
        reader = self.reader

        nlev = reader.dimension_size(handle, 'levels')
        ntimes = reader.dimension_size(handle, 'time')

        pressure = reader.read_1d(handle, 'levels', nlev)
        time = reader.read_1d(handle, 'time', ntimes)

        initial_group = reader.group(handle, 'initial')
        initial = InitialProfile(**{
            name: reader.read_1d(initial_group, name, nlev)
            for name in InitialProfile.VARIABLES
        })

        forcing_group = reader.group(handle, 'forcing')
        forcing_values = {}
        for attribute in ForcingData.SERIES:
            if attribute in ForcingData.SURFACE_FLUXES and not surface_flux_specified:
                forcing_values[attribute] = np.zeros(ntimes)
                continue
            forcing_values[attribute] = reader.read_1d(
                forcing_group, ForcingData.file_name(attribute), ntimes
            )
        for attribute in ForcingData.FIELDS:
            forcing_values[attribute] = reader.read_2d(
                forcing_group, ForcingData.file_name(attribute), (ntimes, nlev), ('time', 'levels')
            )

        if not surface_flux_specified:
            self.logger.debug("Surface fluxes not specified; using zero sensible and latent heat flux")

        return CaseDataset(
            case_name=case_name,
            input_nlev=nlev,
            input_ntimes=ntimes,
            pressure=pressure,
            time=time,
            initial=initial,
            forcing=ForcingData(**forcing_values),
        )

    def _report(self, result: Dict) -> None:
        if result['status'] == 'pass':
            for message in result['messages']:
                self.logger.debug(message)
            return
        for message in result['messages']:
            if self.processing_logger:
                self.processing_logger.log_processing_warning(message, {'check': result['test_name']})
            else:
                self.logger.warning(message)
