"""
Utility Functions
=================

This module provides general utility functions used throughout SDFMesher,
including logging configuration and small helpers for the integer lattice
the extractor works on.

Functions
---------
configure_logging
    Set up logging for the SDFMesher package with customizable
    output format and destinations.
lattice_key
    Pack an integer lattice coordinate into a single hashable key.
next_power_of_two
    Smallest power of two greater or equal to a value.
safe_normalize
    Normalize a vector, returning zeros for degenerate input.
"""

import logging
import numpy as np
import SDFMesher

_LATTICE_OFFSET = 1 << 31
_LATTICE_MASK = (1 << 32) - 1


def configure_logging(level=logging.INFO, logfile=None):
    """Configure logging for the SDFMesher package.

    Sets up a logger with a standard format and optional file output.
    This is called automatically when SDFMesher is imported.

    Parameters
    ----------
    level : int, default logging.INFO
        Logging level (e.g., logging.DEBUG, logging.INFO, logging.WARNING).
    logfile : str, optional
        Path to log file. If provided, logs are written to both console
        and file. If None, logs only to console.

    Examples
    --------
    >>> from SDFMesher.utils import configure_logging
    >>> import logging
    >>>
    >>> # Set debug level and log to file
    >>> configure_logging(level=logging.DEBUG, logfile='sdfmesher.log')

    Notes
    -----
    The log format is: "HH:MM:SS message"
    All log messages are prefixed with a timestamp for easy debugging.
    """
    logger = logging.getLogger(SDFMesher.__name__)
    logger.setLevel(level)

    logger_handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s %(message)s", datefmt="%H:%M:%S")
    logger_handler.setFormatter(formatter)
    logger.addHandler(logger_handler)

    if logfile is not None:
        file_logger_handler = logging.FileHandler(logfile)
        file_logger_handler.setFormatter(formatter)
        logger.addHandler(file_logger_handler)


def lattice_key(x: int, y: int, z: int) -> int:
    """Pack a lattice coordinate into one integer key.

    Every axis gets 32 bits after shifting by 2**31, so any coordinate in the
    signed 32 bit range maps to a distinct key.

    Examples
    --------
    >>> lattice_key(0, 0, 0) == lattice_key(0, 0, 0)
    True
    >>> lattice_key(1, 0, 0) == lattice_key(0, 1, 0)
    False
    """
    return (
        (((x + _LATTICE_OFFSET) & _LATTICE_MASK) << 64)
        | (((y + _LATTICE_OFFSET) & _LATTICE_MASK) << 32)
        | ((z + _LATTICE_OFFSET) & _LATTICE_MASK)
    )


def unpack_lattice_key(key: int) -> tuple[int, int, int]:
    """Inverse of :func:`lattice_key`."""
    x = ((key >> 64) & _LATTICE_MASK) - _LATTICE_OFFSET
    y = ((key >> 32) & _LATTICE_MASK) - _LATTICE_OFFSET
    z = (key & _LATTICE_MASK) - _LATTICE_OFFSET
    return x, y, z


def next_power_of_two(value: int) -> int:
    power = 1
    while power < value:
        power <<= 1
    return power


def safe_normalize(vector: np.ndarray) -> np.ndarray:
    length = np.linalg.norm(vector)
    if length == 0.0 or not np.isfinite(length):
        return np.zeros_like(vector)
    return vector / length
