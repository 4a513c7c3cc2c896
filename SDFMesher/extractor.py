"""
Isosurface Extractor
====================

Entry point of the dual contouring pipeline. One :meth:`generate` call runs

1. the adaptive octree search (:mod:`SDFMesher.octree`), which hands every
   unit voxel near the surface to the edge processor
   (:mod:`SDFMesher.voxels`), creating quads and provisional vertices,
2. the vertex solve (:mod:`SDFMesher.assembler`), which moves each vertex
   onto the surface.

The extractor owns its sample cache, voxel map and output buffers. They are
cleared at the start of every pass but keep their capacity, so reusing one
extractor for many passes does not reallocate.

Examples
--------
>>> import numpy as np
>>> from SDFMesher.SDF import FunctionSampler
>>> from SDFMesher.geometry import AABB
>>> from SDFMesher.params import IsosurfaceParams
>>> params = IsosurfaceParams(
...     sampler=FunctionSampler(lambda p: np.linalg.norm(p) - 2.0),
...     aabb=AABB([-3, -3, -3], [3, 3, 3]),
... )
>>> extractor = IsosurfaceExtractor()
>>> extractor.generate(params)
True
>>> len(extractor.indices) % 3
0
"""

import dataclasses
import itertools
import logging
import time

import numpy as np

import SDFMesher
from SDFMesher.assembler import MeshAssembler
from SDFMesher.buffers import INDEX_DTYPE, VERTEX_DTYPE, GrowableArray
from SDFMesher.geometry import AABB
from SDFMesher.octree import OctreeSearch
from SDFMesher.params import IsosurfaceParams, IsosurfaceStats, ProgressReporter
from SDFMesher.sample_cache import DualSampleCache
from SDFMesher.utils import lattice_key
from SDFMesher.voxels import EdgeProcessor, VoxelMap

logger = logging.getLogger(SDFMesher.__name__)


class IsosurfaceExtractor:
    """Reusable dual contouring mesh builder.

    Attributes
    ----------
    vertices : GrowableArray
        Output vertices with :data:`SDFMesher.buffers.VERTEX_DTYPE`.
    indices : GrowableArray
        Output triangle list, three ``uint32`` indices per triangle.
    vertex_voxels : list of tuple
        Lattice coordinate of the dual cell of every vertex.
    stats : IsosurfaceStats
        Counters of the last pass.
    """

    def __init__(self):
        self.vertices = GrowableArray(VERTEX_DTYPE)
        self.indices = GrowableArray(INDEX_DTYPE)
        self.vertex_voxels = []
        self.stats = IsosurfaceStats()
        self.cache = DualSampleCache(stats=self.stats)
        self.voxels = VoxelMap()

    def reserve(self, max_verts: int, max_indices: int):
        """Pre-size the output buffers."""
        self.vertices.reserve(max_verts)
        self.indices.reserve(max_indices)

    def reset(self):
        """Drop all working state and output, keeping buffer capacity."""
        self.cache.clear()
        self.voxels.clear()
        self.vertices.clear()
        self.indices.clear()
        self.vertex_voxels.clear()

    def generate(self, params: IsosurfaceParams) -> bool:
        """Extract the zero level set of ``params.sampler`` inside ``params.aabb``.

        Returns
        -------
        bool
            False if no triangles were produced. When a vertex or index
            budget stops the search early the partial mesh is kept, the
            return value is True and ``stats.budget_exceeded`` is set.
        """
        params.validate()
        self.reset()
        stats = self.stats = IsosurfaceStats()
        reporter = ProgressReporter(stats, params.stats_callback)

        if not params.aabb.is_valid():
            logger.warning(f"Skipping isosurface extraction for invalid {params.aabb}")
            return True

        start = time.perf_counter()
        self.cache.bind(params.sampler, stats)
        processor = EdgeProcessor(
            params,
            self.cache,
            self.voxels,
            self.vertices,
            self.indices,
            self.vertex_voxels,
            stats,
        )
        if not OctreeSearch(params, self.cache, processor, stats, reporter).run():
            logger.debug(
                f"Output budget reached after {len(self.vertices)} vertices "
                f"and {len(self.indices)} indices"
            )
        stats.voxel_time = time.perf_counter() - start

        mesh_start = time.perf_counter()
        MeshAssembler(
            params,
            self.cache,
            self.voxels,
            processor,
            self.vertices,
            self.vertex_voxels,
            stats,
            reporter,
        ).solve()
        stats.mesh_time = time.perf_counter() - mesh_start

        assert len(self.vertices) <= params.vertex_budget()
        assert len(self.indices) <= params.index_budget()

        if len(self.indices) == 0:
            self.vertices.clear()
            self.vertex_voxels.clear()
        stats.vertex_count = len(self.vertices)
        stats.index_count = len(self.indices)
        stats.elapsed_time = time.perf_counter() - start
        reporter.update(force=True)

        logger.info(
            f"Extracted {stats.vertex_count} vertices, {stats.index_count // 3} triangles "
            f"in {stats.elapsed_time:.3f}s (search {stats.voxel_time:.3f}s, "
            f"solve {stats.mesh_time:.3f}s)"
        )
        return stats.index_count > 0

    def generate_chunks(self, params: IsosurfaceParams, chunk_size: int) -> bool:
        """Extract a large region as a sequence of cubic chunks.

        The integer bounds of ``params.aabb`` are split into chunks of
        ``chunk_size`` voxels. Each chunk is a separate :meth:`generate` pass
        with the same parameters (budgets apply per chunk). Vertices on chunk
        borders are merged, so the result has the same topology as a single
        pass over the whole region.

        Afterwards ``vertices`` and ``indices`` hold the combined mesh and
        ``stats`` the summed counters of all chunks.
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        params.validate()
        if not params.aabb.is_valid():
            return self.generate(params)

        lower, upper = params.aabb.integer_bounds()
        ranges = [range(lower[axis], upper[axis], chunk_size) for axis in range(3)]

        n_chunks = len(ranges[0]) * len(ranges[1]) * len(ranges[2])
        total = IsosurfaceStats()
        vertices = []
        indices = []
        vertex_voxels = []
        merged = {}
        chunks = itertools.product(ranges[2], ranges[1], ranges[0])
        for index, (z, y, x) in enumerate(chunks):
            chunk_min = (x, y, z)
            chunk_max = tuple(
                min(c + chunk_size, upper[axis]) for axis, c in enumerate(chunk_min)
            )
            callback = None
            if params.stats_callback is not None:
                callback = _chunk_progress(params.stats_callback, total, index, n_chunks)
            self.generate(
                dataclasses.replace(
                    params, aabb=AABB(chunk_min, chunk_max), stats_callback=callback
                )
            )
            total.accumulate(self.stats)

            remap = np.empty(len(self.vertices), dtype=INDEX_DTYPE)
            for local, coord in enumerate(self.vertex_voxels):
                key = lattice_key(*coord)
                if key not in merged:
                    merged[key] = len(vertex_voxels)
                    vertex_voxels.append(coord)
                    vertices.append(self.vertices.data[local].copy())
                remap[local] = merged[key]
            indices.append(remap[self.indices.view()])

        self.reset()
        if vertices:
            self.vertices.extend(np.array(vertices, dtype=VERTEX_DTYPE))
            self.indices.extend(np.concatenate(indices))
        self.vertex_voxels.extend(vertex_voxels)
        total.vertex_count = len(self.vertices)
        total.index_count = len(self.indices)
        total.voxel_progress = total.mesh_progress = 1.0
        self.stats = total
        if params.stats_callback is not None:
            params.stats_callback(total.copy())
        logger.info(
            f"Merged {total.vertex_count} vertices, {total.index_count // 3} triangles "
            f"from {n_chunks} chunks"
        )
        return total.index_count > 0


def _chunk_progress(callback, total: IsosurfaceStats, index: int, n_chunks: int):
    """Report the stats of one chunk as part of the whole chunked pass.

    Counters are added to those of the finished chunks and progress is mapped
    to ``(index + progress) / n_chunks``.
    """

    def report(stats: IsosurfaceStats):
        combined = total.copy()
        combined.accumulate(stats)
        combined.voxel_progress = (index + stats.voxel_progress) / n_chunks
        combined.mesh_progress = (index + stats.mesh_progress) / n_chunks
        callback(combined)

    return report
