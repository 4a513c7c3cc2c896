"""
Adaptive Octree Search
======================

Recursively subdivides the search region and only descends into octants
that may contain the surface. An octant centered on lattice point ``c`` with
half size ``h`` covers the voxels ``[c - h, c + h - 1]`` on every axis and is
pruned when the distance sampled at its center, reduced by the sample's error
margin, exceeds the octant's half diagonal ``sqrt(3) * h``.

The traversal order is fixed (children with x varying fastest, then y, then
z), so a pass is deterministic regardless of hash map iteration order.
"""

import logging
import math

import SDFMesher
from SDFMesher.geometry import AABB
from SDFMesher.params import IsosurfaceParams, IsosurfaceStats, ProgressReporter
from SDFMesher.sample_cache import DualSampleCache
from SDFMesher.utils import next_power_of_two
from SDFMesher.voxels import EdgeProcessor

logger = logging.getLogger(SDFMesher.__name__)

SQRT3 = math.sqrt(3.0)

CHILD_OFFSETS = (
    (-1, -1, -1),
    (1, -1, -1),
    (-1, 1, -1),
    (1, 1, -1),
    (-1, -1, 1),
    (1, -1, 1),
    (-1, 1, 1),
    (1, 1, 1),
)


class OctreeSearch:
    def __init__(
        self,
        params: IsosurfaceParams,
        cache: DualSampleCache,
        processor: EdgeProcessor,
        stats: IsosurfaceStats,
        reporter: ProgressReporter | None = None,
    ):
        self.params = params
        self.cache = cache
        self.processor = processor
        self.stats = stats
        self.reporter = reporter
        lower, upper = params.aabb.integer_bounds()
        # one voxel border below the AABB owns the edges on its lower faces
        self.voxel_min = tuple(v - 1 for v in lower)
        self.voxel_max = tuple(v - 1 for v in upper)
        self.center, self.half_size = self.root()
        self._done = 0

    def root(self) -> tuple[tuple[int, int, int], int]:
        """Center and half size of the root octant covering all searched voxels."""
        center = tuple(int(math.floor(v)) for v in self.params.aabb.get_center())
        extent = 1
        for axis in range(3):
            extent = max(
                extent,
                center[axis] - self.voxel_min[axis],
                self.voxel_max[axis] - center[axis] + 1,
            )
        return center, next_power_of_two(extent)

    def run(self) -> bool:
        self.stats.voxel_total_count = (2 * self.half_size) ** 3
        logger.debug(
            f"Octree root center {self.center} half size {self.half_size}, "
            f"voxels {self.voxel_min} to {self.voxel_max}"
        )
        return self.search(self.center, self.half_size)

    def _advance(self, voxels: int, skipped: bool):
        self._done += voxels
        if skipped:
            self.stats.voxel_skip_count += voxels
        self.stats.voxel_progress = self._done / self.stats.voxel_total_count
        if self.reporter is not None:
            self.reporter.update()

    def _overlaps(self, center, half_size) -> bool:
        for axis in range(3):
            if center[axis] + half_size - 1 < self.voxel_min[axis]:
                return False
            if center[axis] - half_size > self.voxel_max[axis]:
                return False
        return True

    def _in_range(self, voxel) -> bool:
        return all(
            self.voxel_min[axis] <= voxel[axis] <= self.voxel_max[axis]
            for axis in range(3)
        )

    def search(self, center: tuple[int, int, int], half_size: int) -> bool:
        """Search one octant. Returns False as soon as the output budget is hit."""
        self.stats.octree_node_count += 1
        if self.params.octree_boxes is not None:
            self.params.octree_boxes.append(AABB.from_center(center, half_size))

        sample = self.cache.sample_dual(center)
        if abs(sample.distance) - sample.error_margin > SQRT3 * half_size:
            self._advance((2 * half_size) ** 3, skipped=True)
            return True

        cx, cy, cz = center
        if half_size > 1:
            child_half = half_size // 2
            for ox, oy, oz in CHILD_OFFSETS:
                child = (cx + ox * child_half, cy + oy * child_half, cz + oz * child_half)
                if not self._overlaps(child, child_half):
                    self._advance((2 * child_half) ** 3, skipped=True)
                    continue
                if not self.search(child, child_half):
                    return False
            return True

        for dz in (-1, 0):
            for dy in (-1, 0):
                for dx in (-1, 0):
                    voxel = (cx + dx, cy + dy, cz + dz)
                    if not self._in_range(voxel):
                        self._advance(1, skipped=True)
                        continue
                    if not self.processor.process_voxel(voxel):
                        return False
                    self._advance(1, skipped=False)
        return True
