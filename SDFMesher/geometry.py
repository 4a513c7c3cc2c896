"""
Axis-Aligned Bounding Boxes
===========================

Minimal AABB type used to describe the region an isosurface is extracted
from, and the octree boxes reported to the debug sink.
"""

import numpy as np


class AABB:
    """Axis-aligned bounding box defined by its min and max corners.

    Parameters
    ----------
    min : array-like of shape (3,)
        Lower corner.
    max : array-like of shape (3,)
        Upper corner.

    Examples
    --------
    >>> box = AABB([-1, -1, -1], [1, 1, 1])
    >>> box.contains([0, 0, 0])
    True
    >>> box.get_center()
    array([0., 0., 0.])
    """

    def __init__(self, min, max):
        self.min = np.asarray(min, dtype=np.float64).reshape(3)
        self.max = np.asarray(max, dtype=np.float64).reshape(3)

    @classmethod
    def from_center(cls, center, half_size):
        center = np.asarray(center, dtype=np.float64)
        half_size = np.broadcast_to(np.asarray(half_size, dtype=np.float64), (3,))
        return cls(center - half_size, center + half_size)

    @classmethod
    def from_bounds(cls, bounds):
        """Create a box from a (2, 3) array ``[[xmin, ymin, zmin], [xmax, ymax, zmax]]``."""
        bounds = np.asarray(bounds, dtype=np.float64)
        if bounds.shape != (2, 3):
            raise ValueError(f"Bounds should be of shape (2, 3), got {bounds.shape}")
        return cls(bounds[0], bounds[1])

    def get_center(self) -> np.ndarray:
        return (self.min + self.max) * 0.5

    def is_valid(self) -> bool:
        """True if all coordinates are finite and the box has volume."""
        return bool(
            np.all(np.isfinite(self.min))
            and np.all(np.isfinite(self.max))
            and np.all(self.min < self.max)
        )

    def contains(self, point) -> bool:
        point = np.asarray(point, dtype=np.float64)
        return bool(np.all(point >= self.min) and np.all(point <= self.max))

    def integer_bounds(self) -> tuple[tuple[int, int, int], tuple[int, int, int]]:
        """Inclusive integer lattice bounds (floor of min, ceil of max)."""
        lower = tuple(int(v) for v in np.floor(self.min))
        upper = tuple(int(v) for v in np.ceil(self.max))
        return lower, upper

    def to_bounds(self) -> np.ndarray:
        return np.stack([self.min, self.max], axis=0)

    def __eq__(self, other):
        if not isinstance(other, AABB):
            return NotImplemented
        return np.array_equal(self.min, other.min) and np.array_equal(
            self.max, other.max
        )

    # mutable numpy corners
    __hash__ = None

    def __repr__(self):
        return f"AABB(min={self.min.tolist()}, max={self.max.tolist()})"
