"""
Vertex Solve
============

Once the octree search has created all dual vertices, each vertex is moved
from its provisional voxel-center position to a point that best fits the
surface crossings on the (up to) twelve edges of its voxel.

With dual contouring enabled this is a simplified quadratic error function
(QEF) solve: start at the mean of the crossings and repeatedly pull the
estimate halfway onto each crossing's tangent plane, then bias the result
slightly back toward the mean, which avoids self-intersecting triangles on
sharp features. Without dual contouring the vertex sits at the mean.

Positions are not clamped to the voxel; a voxel whose corners all share one
sign can still have crossings (two per edge) on its edges.
"""

import logging

import numpy as np

import SDFMesher
from SDFMesher.buffers import GrowableArray
from SDFMesher.params import IsosurfaceParams, IsosurfaceStats, ProgressReporter
from SDFMesher.sample_cache import DualSampleCache
from SDFMesher.utils import safe_normalize
from SDFMesher.voxels import EdgeProcessor, VoxelMap

logger = logging.getLogger(SDFMesher.__name__)

#: Owners of the twelve edges of a voxel: (owner offset, edge axes).
EDGE_OWNERS = (
    ((0, 0, 0), (0, 1, 2)),
    ((-1, 0, 0), (1, 2)),
    ((0, -1, 0), (0, 2)),
    ((-1, -1, 0), (2,)),
    ((-1, 0, -1), (1,)),
    ((0, -1, -1), (0,)),
    ((0, 0, -1), (0, 1)),
)

_CORNERS = tuple((dx, dy, dz) for dz in (0, 1) for dy in (0, 1) for dx in (0, 1))


class MeshAssembler:
    def __init__(
        self,
        params: IsosurfaceParams,
        cache: DualSampleCache,
        voxels: VoxelMap,
        processor: EdgeProcessor,
        vertices: GrowableArray,
        vertex_voxels: list,
        stats: IsosurfaceStats,
        reporter: ProgressReporter | None = None,
    ):
        self.params = params
        self.cache = cache
        self.voxels = voxels
        self.processor = processor
        self.vertices = vertices
        self.vertex_voxels = vertex_voxels
        self.stats = stats
        self.reporter = reporter
        self.lazy_evaluations = 0

    def solve(self):
        """Position every vertex created during the search."""
        count = len(self.vertex_voxels)
        positions = self.vertices.data["position"]
        normals = self.vertices.data["normal"]
        for index, coord in enumerate(self.vertex_voxels):
            position, normal = self.solve_vertex(coord)
            positions[index, :3] = position
            positions[index, 3] = 1.0
            normals[index] = normal
            self.stats.mesh_progress = (index + 1) / count
            if self.reporter is not None:
                self.reporter.update()
        if self.lazy_evaluations:
            logger.debug(f"Evaluated {self.lazy_evaluations} border voxels for the vertex solve")

    def gather(self, coord) -> tuple[list, list]:
        """Crossing offsets (in the frame of ``coord``) and normals of a voxel's edges."""
        x, y, z = coord
        points = []
        normals = []
        for (ox, oy, oz), axes in EDGE_OWNERS:
            owner = (x + ox, y + oy, z + oz)
            voxel = self.voxels.get(owner)
            if voxel is None or not voxel.evaluated:
                voxel = self.processor.evaluate_edges(owner)
                self.lazy_evaluations += 1
            for axis in axes:
                if voxel.has_edge(axis):
                    points.append(voxel.edge_pos[axis] + np.array((ox, oy, oz), dtype=np.float64))
                    normals.append(voxel.edge_normal[axis])
        return points, normals

    def solve_vertex(self, coord) -> tuple[np.ndarray, np.ndarray]:
        points, normals = self.gather(coord)
        assert points, f"Vertex in voxel {coord} has no edge crossings"
        average = np.mean(points, axis=0)

        if self.params.dual_contouring:
            position = average.copy()
            for _ in range(self.params.qef_iterations):
                for point, normal in zip(points, normals):
                    d = np.dot(normal, point - position)
                    position += normal * (d * self.params.qef_step)
            position += (average - position) * self.params.average_bias
            normal = safe_normalize(np.sum(normals, axis=0))
        else:
            position = average
            normal = self._corner_normal(coord)

        assert np.all(np.isfinite(position)), f"Invalid vertex position {position}"
        return np.asarray(coord, dtype=np.float64) + position, normal

    def _corner_normal(self, coord) -> np.ndarray:
        """Gradient estimate from the eight lattice samples around a voxel."""
        x, y, z = coord
        gradient = np.zeros(3)
        for dx, dy, dz in _CORNERS:
            value = self.cache.sample_dual((x + dx, y + dy, z + dz)).distance
            gradient += value * (np.array((dx, dy, dz), dtype=np.float64) * 2.0 - 1.0)
        return safe_normalize(gradient)
