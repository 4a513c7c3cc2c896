"""
Voxel Map and Edge Processing
=============================

A voxel ``(x, y, z)`` spans the lattice points ``[x, x+1]`` on every axis.
Its *shared corner* is ``(x+1, y+1, z+1)``. Each voxel tests only the three
lattice edges that end in its shared corner; the other nine edges of the
voxel are the shared-corner edges of its neighbours. Every lattice edge is
therefore tested exactly once.

Each edge that crosses the surface becomes a quad connecting the dual
vertices of the four voxels around it. Dual vertices are created the first
time a quad references them and are positioned later by
:class:`SDFMesher.assembler.MeshAssembler`.

Edge axis ``a`` (0 = x, 1 = y, 2 = z) is stored in bit ``a`` of
``Voxel.edge_mask``.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

import SDFMesher
from SDFMesher.buffers import GrowableArray
from SDFMesher.params import IsosurfaceParams, IsosurfaceStats
from SDFMesher.sample_cache import DualSampleCache
from SDFMesher.utils import lattice_key, safe_normalize

logger = logging.getLogger(SDFMesher.__name__)

SQRT3 = math.sqrt(3.0)

#: Voxel-local offset of the shared corner.
SHARED_CORNER_OFFSET = np.array([1.0, 1.0, 1.0])

#: Voxel-local offset of the other end of the edge along each axis.
CORNER_OFFSETS = (
    np.array([0.0, 1.0, 1.0]),
    np.array([1.0, 0.0, 1.0]),
    np.array([1.0, 1.0, 0.0]),
)

#: Voxels around the edge along each axis, relative to the owning voxel.
QUAD_OFFSETS = (
    ((0, 0, 0), (0, 1, 0), (0, 0, 1), (0, 1, 1)),
    ((0, 0, 0), (1, 0, 0), (0, 0, 1), (1, 0, 1)),
    ((0, 0, 0), (0, 1, 0), (1, 0, 0), (1, 1, 0)),
)

#: Largest difference of two adjacent lattice samples of a valid SDF.
LIPSCHITZ_TOLERANCE = 1.01

_AXES = np.eye(3)


def nudge(value: float) -> float:
    """Move samples that are exactly zero off the lattice.

    Without this a surface lying exactly on a lattice plane would belong to
    neither side and leave holes in the mesh.
    """
    return 0.0001 if value == 0.0 else value


@dataclass(slots=True)
class Voxel:
    edge_mask: int = 0
    edge_pos: list = field(default_factory=lambda: [None, None, None])
    edge_normal: list = field(default_factory=lambda: [None, None, None])
    vertex_index: Optional[int] = None
    evaluated: bool = False
    visited: bool = False

    def has_edge(self, axis: int) -> bool:
        return bool(self.edge_mask & (1 << axis))


class VoxelMap:
    """Sparse voxel storage keyed by lattice coordinate."""

    def __init__(self):
        self._voxels: dict[int, Voxel] = {}

    def __len__(self):
        return len(self._voxels)

    def get(self, coord) -> Optional[Voxel]:
        return self._voxels.get(lattice_key(*coord))

    def get_or_create(self, coord) -> Voxel:
        key = lattice_key(*coord)
        voxel = self._voxels.get(key)
        if voxel is None:
            voxel = Voxel()
            self._voxels[key] = voxel
        return voxel

    def clear(self):
        self._voxels.clear()


class EdgeProcessor:
    """Finds edge intersections of single voxels and emits their quads.

    Parameters
    ----------
    params : IsosurfaceParams
    cache : DualSampleCache
    voxels : VoxelMap
    vertices, indices : GrowableArray
        Output buffers.
    vertex_voxels : list
        Receives the voxel coordinate of every vertex created, parallel to
        ``vertices``.
    stats : IsosurfaceStats
    """

    def __init__(
        self,
        params: IsosurfaceParams,
        cache: DualSampleCache,
        voxels: VoxelMap,
        vertices: GrowableArray,
        indices: GrowableArray,
        vertex_voxels: list,
        stats: IsosurfaceStats,
    ):
        self.params = params
        self.cache = cache
        self.voxels = voxels
        self.vertices = vertices
        self.indices = indices
        self.vertex_voxels = vertex_voxels
        self.stats = stats
        self.lower, self.upper = params.aabb.integer_bounds()
        self._vertex_budget = params.vertex_budget()
        self._index_budget = params.index_budget()

    def evaluate_edges(self, coord) -> Voxel:
        """Sample the voxel and record which of its three edges cross the surface.

        Results are stored in the voxel map, so repeated calls are free.
        """
        voxel = self.voxels.get_or_create(coord)
        if voxel.evaluated:
            return voxel
        voxel.evaluated = True

        x, y, z = coord
        shared = self.cache.sample_dual((x + 1, y + 1, z + 1))
        corners = (
            self.cache.sample_dual((x, y + 1, z + 1)),
            self.cache.sample_dual((x + 1, y, z + 1)),
            self.cache.sample_dual((x + 1, y + 1, z)),
        )
        shared_value = nudge(shared.distance)
        if abs(shared_value) - shared.error_margin > SQRT3:
            # too far from the surface for any edge of this voxel to cross it
            return voxel

        corner_values = [nudge(c.distance) for c in corners]
        for corner, value in zip(corners, corner_values):
            tolerance = LIPSCHITZ_TOLERANCE + shared.error_margin + corner.error_margin
            if abs(value - shared_value) > tolerance:
                if self.params.error_points is not None:
                    self.params.error_points.append(np.array(coord, dtype=np.float64))
                    self.stats.error_count += 1
                    return voxel
                logger.debug(
                    f"Distance between adjacent lattice samples at voxel {coord} "
                    f"is {abs(value - shared_value)}, the field is not a valid SDF"
                )
                break

        origin = np.array(coord, dtype=np.float64)
        for axis in range(3):
            if corner_values[axis] * shared_value >= 0.0:
                continue
            voxel.edge_mask |= 1 << axis
            offset = self._intersect(
                origin, axis, shared_value, corner_values[axis], shared, corners[axis]
            )
            voxel.edge_pos[axis] = offset
            if self.params.dual_contouring:
                voxel.edge_normal[axis] = self._gradient(origin + offset)
            else:
                voxel.edge_normal[axis] = np.zeros(3)
        return voxel

    def _intersect(self, origin, axis, shared_value, other_value, shared, other):
        """Voxel-local offset of the surface crossing on one edge."""
        other_offset = CORNER_OFFSETS[axis]
        s = shared_value / (shared_value - other_value)
        linear = SHARED_CORNER_OFFSET + (other_offset - SHARED_CORNER_OFFSET) * s

        blend = min(max(max(shared.error_margin, other.error_margin), 0.0), 1.0)
        if blend >= 1.0 or self.params.sphere_trace_iterations <= 0:
            return linear

        # sphere trace from the outside corner toward the inside corner
        shared_inside = shared_value < other_value
        start = other_offset if shared_inside else SHARED_CORNER_OFFSET
        end = SHARED_CORNER_OFFSET if shared_inside else other_offset
        direction = end - start
        depth = 0.0
        traced = start
        for _ in range(self.params.sphere_trace_iterations):
            traced = start + direction * depth
            distance = self.cache.sample(origin + traced).distance
            if distance < self.params.sphere_trace_epsilon:
                break
            depth += distance
            if depth >= 1.0:
                traced = end
                break

        offset = traced * (1.0 - blend) + linear * blend
        assert np.all(np.isfinite(offset)), f"Invalid edge offset {offset}"
        assert np.all(offset >= -1e-6) and np.all(offset <= 1.0 + 1e-6), (
            f"Edge offset {offset} outside the voxel"
        )
        return offset

    def _gradient(self, position: np.ndarray) -> np.ndarray:
        h = self.params.normal_sample_offset
        gradient = np.empty(3)
        for i in range(3):
            forward = self.cache.sample(position + _AXES[i] * h).distance
            backward = self.cache.sample(position - _AXES[i] * h).distance
            gradient[i] = forward - backward
        return safe_normalize(gradient)

    def _edge_in_bounds(self, coord, axis) -> bool:
        for b in range(3):
            corner = coord[b] + 1
            if b == axis:
                if corner - 1 < self.lower[b] or corner > self.upper[b]:
                    return False
            elif corner < self.lower[b] or corner >= self.upper[b]:
                return False
        return True

    def process_voxel(self, coord) -> bool:
        """Evaluate a voxel and emit a quad for each crossing edge in the AABB.

        Returns False when the vertex or index budget would be exceeded; the
        edge in progress is then skipped entirely.
        """
        voxel = self.evaluate_edges(coord)
        if voxel.visited:
            return True
        voxel.visited = True
        self.stats.voxel_count += 1
        if not voxel.edge_mask:
            return True

        x, y, z = coord
        shared_value = nudge(self.cache.sample_dual((x + 1, y + 1, z + 1)).distance)
        for axis in range(3):
            if not voxel.has_edge(axis) or not self._edge_in_bounds(coord, axis):
                continue
            if (
                len(self.vertices) + 4 > self._vertex_budget
                or len(self.indices) + 6 > self._index_budget
            ):
                self.stats.budget_exceeded = True
                return False

            quad = [
                self._vertex_for((x + dx, y + dy, z + dz))
                for dx, dy, dz in QUAD_OFFSETS[axis]
            ]
            # counter-clockwise seen from the positive side
            if axis == 0:
                flip = shared_value > 0.0
            else:
                flip = shared_value < 0.0
            if flip:
                self.indices.extend(
                    [quad[0], quad[1], quad[2], quad[1], quad[3], quad[2]]
                )
            else:
                self.indices.extend(
                    [quad[0], quad[2], quad[1], quad[1], quad[2], quad[3]]
                )
        return True

    def _vertex_for(self, coord) -> int:
        voxel = self.voxels.get_or_create(coord)
        if voxel.vertex_index is None:
            x, y, z = coord
            voxel.vertex_index = self.vertices.append(
                ((x + 0.5, y + 0.5, z + 0.5, 1.0), (0.0, 0.0, 0.0))
            )
            self.vertex_voxels.append(coord)
        return voxel.vertex_index
