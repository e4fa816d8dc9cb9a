"""
Tests for the fail-fast NetCDF reader.

Small NetCDF4 files are written into pytest's tmp_path with netCDF4 and read
back through NetCDFReader.
"""

import pytest
import numpy as np
import netCDF4
from pathlib import Path

import sys
sys.path.append(str(Path(__file__).parent.parent / "src"))

from netcdf_infrastructure import NetCDFReader, check_netcdf
from logging_utils import NetCDFError


NLEV = 4
NTIMES = 3


@pytest.fixture
def sample_file(tmp_path):
    """File with root dims, a 1-D root variable and a group with a (levels, time) field"""
    path = tmp_path / "sample.nc"
    with netCDF4.Dataset(str(path), 'w') as nc_dataset:
        nc_dataset.createDimension('levels', NLEV)
        nc_dataset.createDimension('time', NTIMES)

        levels = nc_dataset.createVariable('levels', 'f8', ('levels',))
        levels[:] = [100000.0, 85000.0, 70000.0, 50000.0]

        forcing = nc_dataset.createGroup('forcing')
        field = forcing.createVariable('w_ls', 'f8', ('levels', 'time'))
        field[:] = np.arange(NTIMES * NLEV, dtype=np.float64).reshape(NTIMES, NLEV).T
        wrong = forcing.createVariable('time_major', 'f8', ('time', 'levels'))
        wrong[:] = np.zeros((NTIMES, NLEV))
    return path


def test_dimension_sizes(sample_file):
    """Test dimension lookup"""
    with NetCDFReader(sample_file) as reader:
        assert reader.dimension_size(reader.handle, 'levels') == NLEV
        assert reader.dimension_size(reader.handle, 'time') == NTIMES


def test_read_1d(sample_file):
    """Test reading a 1-D variable into a fresh float64 array"""
    with NetCDFReader(sample_file) as reader:
        pressure = reader.read_1d(reader.handle, 'levels', NLEV)

    assert pressure.dtype == np.float64
    np.testing.assert_array_equal(pressure, [100000.0, 85000.0, 70000.0, 50000.0])

    # The array stays valid after the file is closed
    pressure[0] = 0.0


def test_read_2d_transposes_to_time_major(sample_file):
    """Test that (levels, time) data is returned as (time, levels)"""
    with NetCDFReader(sample_file) as reader:
        forcing = reader.group(reader.handle, 'forcing')
        w_ls = reader.read_2d(forcing, 'w_ls', (NTIMES, NLEV))

    assert w_ls.shape == (NTIMES, NLEV)
    np.testing.assert_array_equal(w_ls, np.arange(NTIMES * NLEV).reshape(NTIMES, NLEV))
    assert w_ls.flags['C_CONTIGUOUS']


def test_read_2d_rejects_wrong_dimension_order(sample_file):
    """Test that a field stored time-major is rejected"""
    with NetCDFReader(sample_file) as reader:
        forcing = reader.group(reader.handle, 'forcing')
        with pytest.raises(NetCDFError, match="time_major"):
            reader.read_2d(forcing, 'time_major', (NTIMES, NLEV))


def test_read_2d_rejects_square_time_major_field(tmp_path):
    """Test that dimension names are checked when nlev equals ntimes"""
    path = tmp_path / "square.nc"
    with netCDF4.Dataset(str(path), 'w') as nc_dataset:
        nc_dataset.createDimension('levels', 3)
        nc_dataset.createDimension('time', 3)
        forcing = nc_dataset.createGroup('forcing')
        w_ls = forcing.createVariable('w_ls', 'f8', ('time', 'levels'))
        w_ls[:] = np.arange(9, dtype=np.float64).reshape(3, 3)
        omega = forcing.createVariable('omega', 'f8', ('levels', 'time'))
        omega[:] = np.arange(9, dtype=np.float64).reshape(3, 3).T

    with NetCDFReader(path) as reader:
        forcing = reader.group(reader.handle, 'forcing')
        with pytest.raises(NetCDFError, match="dimensions") as excinfo:
            reader.read_2d(forcing, 'w_ls', (3, 3))
        assert excinfo.value.context['variable'] == 'w_ls'

        omega = reader.read_2d(forcing, 'omega', (3, 3))

    np.testing.assert_array_equal(omega, np.arange(9).reshape(3, 3))


def test_read_1d_rejects_wrong_length(sample_file):
    """Test that an unexpected length is a NetCDFError"""
    with NetCDFReader(sample_file) as reader:
        with pytest.raises(NetCDFError, match="expected"):
            reader.read_1d(reader.handle, 'levels', NLEV + 1)


def test_missing_objects_raise_netcdf_error(sample_file):
    """Test that missing dimensions, variables and groups fail fast"""
    with NetCDFReader(sample_file) as reader:
        with pytest.raises(NetCDFError) as excinfo:
            reader.dimension_size(reader.handle, 'height')
        assert excinfo.value.context['dimension'] == 'height'

        with pytest.raises(NetCDFError):
            reader.read_1d(reader.handle, 'pressure', NLEV)

        with pytest.raises(NetCDFError):
            reader.group(reader.handle, 'initial')


def test_missing_file(tmp_path):
    """Test that opening a missing file raises NetCDFError"""
    reader = NetCDFReader()
    with pytest.raises(NetCDFError) as excinfo:
        reader.open(tmp_path / "absent.nc")
    assert 'absent.nc' in excinfo.value.context['path']


def test_open_close(sample_file):
    """Test explicit open/close"""
    reader = NetCDFReader()
    handle = reader.open(sample_file)
    assert reader.dimension_size(handle, 'time') == NTIMES
    reader.close(handle)
    assert not handle.isopen()


def test_check_netcdf_wraps_errors():
    """Test that the check helper converts low-level errors"""
    with pytest.raises(NetCDFError) as excinfo:
        with check_netcdf("doing something", variable='x'):
            raise RuntimeError("NetCDF: HDF error")

    assert "doing something" in str(excinfo.value)
    assert "HDF error" in str(excinfo.value)
    assert excinfo.value.context == {'operation': 'doing something', 'variable': 'x'}
    assert isinstance(excinfo.value.__cause__, RuntimeError)


if __name__ == '__main__':
    pytest.main([__file__])
