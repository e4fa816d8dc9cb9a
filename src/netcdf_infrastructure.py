"""
NetCDF Infrastructure for SCM Input Preprocessing

This module provides read access to the NetCDF4 files used by the single-column
model: case initialization/forcing files and the standard-atmosphere reference
profile. All netCDF4 calls run through a single check helper so that any
failure surfaces as a NetCDFError with a human-readable description. Nothing
is retried: malformed scientific input is a configuration error.

Dimension order convention:
Two-dimensional forcing fields are stored on disk as (levels, time). Callers
work with time-major arrays of shape (ntimes, nlev), so the reader validates
the on-disk shape against the reversed caller shape and transposes.
"""

import numpy as np
import netCDF4
from contextlib import contextmanager
from pathlib import Path
from typing import Tuple, Union

from logging_utils import NetCDFError


NetCDFHandle = Union[netCDF4.Dataset, netCDF4.Group]


@contextmanager
def check_netcdf(description: str, **context):
    """
    Run a netCDF operation and convert any failure into a NetCDFError.

    Args:
        description: What is being attempted (used in the error message)
        **context: Extra context recorded on the error (path, variable, ...)

    Raises:
        NetCDFError: If the wrapped operation fails
    """
    try:
        yield
    except NetCDFError:
        raise
    except (OSError, RuntimeError, KeyError, IndexError, ValueError) as e:
        message = f"NetCDF error while {description}: {e}"
        raise NetCDFError(message, {'operation': description, **context}) from e


class NetCDFReader:
    """
    Fail-fast reader for named dimensions, groups and variables.

    Can be used directly (open/close) or as a context manager:

        with NetCDFReader("../processed_case_input/twpice.nc") as reader:
            nlev = reader.dimension_size(reader.handle, "levels")
    """

    def __init__(self, path: Union[str, Path, None] = None):
        self.path = Path(path) if path is not None else None
        self.handle = None

    def __enter__(self) -> "NetCDFReader":
        self.handle = self.open(self.path)
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close(self.handle)
        self.handle = None

    def open(self, path: Union[str, Path]) -> netCDF4.Dataset:
        """Open a NetCDF file read-only."""
        path = Path(path)
        with check_netcdf(f"opening {path}", path=str(path)):
            if not path.exists():
                raise FileNotFoundError(f"No such file: {path}")
            handle = netCDF4.Dataset(str(path), 'r')
            handle.set_auto_mask(False)
        return handle

    def close(self, handle: netCDF4.Dataset) -> None:
        """Close a handle returned by open(); closing twice is an error."""
        if handle is None:
            return
        with check_netcdf("closing file", path=str(self.path)):
            handle.close()

    def group(self, handle: NetCDFHandle, name: str) -> netCDF4.Group:
        """Return the named sub-group of a file or group."""
        with check_netcdf(f"looking up group '{name}'", group=name):
            return handle.groups[name]

    def dimension_size(self, handle: NetCDFHandle, name: str) -> int:
        """Return the length of a named dimension."""
        with check_netcdf(f"looking up dimension '{name}'", dimension=name):
            return len(handle.dimensions[name])

    def read_1d(self, handle: NetCDFHandle, name: str, length: int) -> np.ndarray:
        """
        Read a 1-D variable into a new float64 array.

        Args:
            handle: File or group containing the variable
            name: Variable name
            length: Expected number of values

        Returns:
            Array of shape (length,)
        """
        with check_netcdf(f"reading variable '{name}'", variable=name):
            variable = handle.variables[name]
            if variable.shape != (length,):
                raise ValueError(
                    f"variable '{name}' has shape {variable.shape}, expected ({length},)"
                )
            return np.array(variable[:], dtype=np.float64)

    def read_2d(self, handle: NetCDFHandle, name: str, shape: Tuple[int, int],
                dimensions: Tuple[str, str] = ('time', 'levels')) -> np.ndarray:
        """
        Read a 2-D variable stored in reversed dimension order.

        Both the on-disk dimension names and sizes are checked, so a square
        field stored in caller order is rejected too.

        Args:
            handle: File or group containing the variable
            name: Variable name
            shape: Caller-side shape, e.g. (ntimes, nlev)
            dimensions: Caller-side dimension names matching shape

        Returns:
            Array of the requested shape
        """
        expected_on_disk = tuple(reversed(shape))
        expected_dimensions = tuple(reversed(dimensions))
        with check_netcdf(f"reading variable '{name}'", variable=name):
            variable = handle.variables[name]
            if variable.dimensions != expected_dimensions:
                raise ValueError(
                    f"variable '{name}' has dimensions {variable.dimensions}, "
                    f"expected {expected_dimensions}"
                )
            if variable.shape != expected_on_disk:
                raise ValueError(
                    f"variable '{name}' has on-disk shape {variable.shape} "
                    f"{variable.dimensions}, expected {expected_on_disk}"
                )
            return np.ascontiguousarray(np.array(variable[:], dtype=np.float64).T)
