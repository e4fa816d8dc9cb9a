"""
Tests for reference profile selection and reading.
"""

import pytest
import numpy as np
import netCDF4
from pathlib import Path

import sys
sys.path.append(str(Path(__file__).parent.parent / "src"))

from reference_profiles import (
    ReferenceProfile, ReferenceProfileProvider, legacy_mcclatchey_profile,
    MCCLATCHEY, MID_LATITUDE_SUMMER
)
from logging_utils import ConfigurationError, InputDataError, NetCDFError, ProcessingLogger


NLEV = 20


def sounding():
    pressure = np.linspace(101300.0, 100.0, NLEV)
    temperature = np.linspace(294.0, 210.0, NLEV)
    q_v = np.geomspace(1.0e-2, 4.0e-6, NLEV)
    ozone = np.full(NLEV, 6.0e-5)
    return pressure, temperature, q_v, ozone


def write_mcclatchey(directory, rows=None):
    """Write a McClatchey table: one header line, then five 16.4E values per line"""
    pressure, temperature, q_v, ozone = sounding()
    if rows is None:
        rows = [
            "".join(f"{value:16.4E}" for value in (1.0 + i, pressure[i], temperature[i], q_v[i], ozone[i]))
            for i in range(NLEV)
        ]
    path = directory / "McCProfiles.dat"
    path.write_text("      index        pressure     temperature             q_v           ozone\n"
                    + "\n".join(rows) + "\n")
    return path


def write_mid_latitude_summer(directory):
    pressure, temperature, q_v, ozone = sounding()
    path = directory / "mid_lat_summer_std.nc"
    with netCDF4.Dataset(str(path), 'w') as nc_dataset:
        nc_dataset.createDimension('height', NLEV)
        for name, values in (('pressure', pressure), ('temperature', temperature),
                             ('q_v', q_v), ('o3', ozone)):
            variable = nc_dataset.createVariable(name, 'f8', ('height',))
            variable[:] = values
    return path


def test_mcclatchey_profile(tmp_path):
    """Test reading the McClatchey table"""
    write_mcclatchey(tmp_path)
    processing_logger = ProcessingLogger()

    profile = ReferenceProfileProvider(str(tmp_path), processing_logger).get_profile(MCCLATCHEY)

    pressure, temperature, q_v, ozone = sounding()
    assert profile.nlev == NLEV
    assert profile.name == "McClatchey"
    # Values are written with four decimals of mantissa
    np.testing.assert_allclose(profile.pressure, pressure, rtol=1e-4)
    np.testing.assert_allclose(profile.temperature, temperature, rtol=1e-4)
    np.testing.assert_allclose(profile.q_v, q_v, rtol=1e-4)
    np.testing.assert_allclose(profile.ozone, ozone, rtol=1e-4)
    assert np.all(np.diff(profile.pressure) <= 0)
    assert processing_logger.processing_stats['files_read'] == 1


def test_mcclatchey_ignores_blank_lines(tmp_path):
    """Test that trailing blank lines do not add levels"""
    path = write_mcclatchey(tmp_path)
    path.write_text(path.read_text() + "\n\n")

    profile = ReferenceProfileProvider(str(tmp_path)).get_profile(MCCLATCHEY)

    assert profile.nlev == NLEV


def test_mid_latitude_summer_profile(tmp_path):
    """Test reading the mid-latitude summer NetCDF sounding"""
    write_mid_latitude_summer(tmp_path)

    profile = ReferenceProfileProvider(str(tmp_path)).get_profile(MID_LATITUDE_SUMMER)

    pressure, temperature, q_v, ozone = sounding()
    assert profile.nlev == NLEV
    assert profile.name == "mid-latitude summer"
    np.testing.assert_array_equal(profile.pressure, pressure)
    np.testing.assert_array_equal(profile.temperature, temperature)
    np.testing.assert_array_equal(profile.q_v, q_v)
    np.testing.assert_array_equal(profile.ozone, ozone)


@pytest.mark.parametrize("choice", [0, 3, -1])
def test_invalid_choice(tmp_path, choice):
    """Test that only choices 1 and 2 are selectable"""
    with pytest.raises(ConfigurationError) as excinfo:
        ReferenceProfileProvider(str(tmp_path)).get_profile(choice)
    assert excinfo.value.context['reference_profile_choice'] == choice


def test_missing_mcclatchey_table(tmp_path):
    """Test that a missing table raises InputDataError"""
    with pytest.raises(InputDataError, match="McCProfiles.dat"):
        ReferenceProfileProvider(str(tmp_path)).get_profile(MCCLATCHEY)


def test_malformed_mcclatchey_table(tmp_path):
    """Test that a line without five values raises InputDataError"""
    write_mcclatchey(tmp_path, rows=["  1.0000E+00  1.0130E+05  2.9400E+02"])

    with pytest.raises(InputDataError) as excinfo:
        ReferenceProfileProvider(str(tmp_path)).get_profile(MCCLATCHEY)
    assert excinfo.value.context['line'] == 2


def test_non_numeric_mcclatchey_table(tmp_path):
    write_mcclatchey(tmp_path, rows=["1.0 101300.0 294.0 abc 6.0E-05"])

    with pytest.raises(InputDataError):
        ReferenceProfileProvider(str(tmp_path)).get_profile(MCCLATCHEY)


def test_missing_mid_latitude_summer_file(tmp_path):
    """Test that a missing NetCDF sounding raises NetCDFError"""
    with pytest.raises(NetCDFError):
        ReferenceProfileProvider(str(tmp_path)).get_profile(MID_LATITUDE_SUMMER)


def test_non_monotonic_profile_warns(tmp_path, caplog):
    """Test that increasing pressure is logged but not fatal"""
    pressure, temperature, q_v, ozone = sounding()
    pressure[5] = pressure[3]
    rows = [
        "".join(f"{value:16.4E}" for value in (1.0 + i, pressure[i], temperature[i], q_v[i], ozone[i]))
        for i in range(NLEV)
    ]
    write_mcclatchey(tmp_path, rows=rows)

    with caplog.at_level("WARNING"):
        profile = ReferenceProfileProvider(str(tmp_path)).get_profile(MCCLATCHEY)

    assert profile.nlev == NLEV
    assert "Pressure increases upwards" in caplog.text


def test_profile_arrays_are_read_only(tmp_path):
    write_mid_latitude_summer(tmp_path)
    profile = ReferenceProfileProvider(str(tmp_path)).get_profile(MID_LATITUDE_SUMMER)

    with pytest.raises(ValueError):
        profile.pressure[0] = 0.0


def test_profile_length_mismatch():
    """Test that the four sequences must have equal length"""
    with pytest.raises(InputDataError):
        ReferenceProfile(
            pressure=np.ones(3), temperature=np.ones(3), q_v=np.ones(2), ozone=np.ones(3)
        )


def test_legacy_mcclatchey_units():
    """Test unit conversion of the hard-coded 20-level sounding"""
    profile = legacy_mcclatchey_profile()

    assert profile.nlev == 20
    assert profile.pressure[0] == pytest.approx(103000.0)
    assert profile.pressure[-1] == pytest.approx(0.03)
    assert profile.temperature[0] == pytest.approx(294.0)
    assert profile.q_v[0] == pytest.approx(11.75e-3)
    assert profile.ozone[0] == pytest.approx(6.0e-5)
    assert np.all(np.diff(profile.pressure) < 0)


def test_to_xarray(tmp_path):
    write_mid_latitude_summer(tmp_path)
    profile = ReferenceProfileProvider(str(tmp_path)).get_profile(MID_LATITUDE_SUMMER)

    ds = profile.to_xarray()

    assert ds.sizes['level'] == NLEV
    assert ds['pressure'].attrs['units'] == 'Pa'
    assert ds.attrs['profile'] == "mid-latitude summer"


if __name__ == '__main__':
    pytest.main([__file__])
