"""
SCM Input Preprocessor

Input layer for a single-column atmospheric model:

Configuration:
- Layered case configuration (defaults, experiment file, command-line overrides)
- Interactive confirmation on recoverable configuration errors
- Persisted resolved configuration record

Scientific Input:
- Fail-fast NetCDF4 reader for groups, dimensions and variables
- Case initialization and forcing datasets
- McClatchey and mid-latitude summer reference soundings
"""

__version__ = "1.0.0"
__author__ = "SCM Development Team"
