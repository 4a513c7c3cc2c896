"""
Lattice Sample Cache
====================

Every lattice point of a pass is sampled at most once. Octree nodes, voxel
edges and the vertex solve all read lattice samples through
:class:`DualSampleCache`, which also keeps the raw and cached sample counters
of :class:`SDFMesher.params.IsosurfaceStats` up to date.
"""

import logging
import numpy as np

import SDFMesher
from SDFMesher.SDF import SampleValue, SDFSampler
from SDFMesher.params import IsosurfaceStats
from SDFMesher.utils import lattice_key

logger = logging.getLogger(SDFMesher.__name__)


class DualSampleCache:
    """Memoizes SDF samples on the integer lattice.

    Up to eight voxels share every lattice point, so each point is sampled
    once per pass. There is no invalidation: the sampler must be
    deterministic for the lifetime of the cache.
    """

    def __init__(self, sampler: SDFSampler | None = None, stats: IsosurfaceStats | None = None):
        self.sampler = sampler
        self.stats = stats if stats is not None else IsosurfaceStats()
        self._samples: dict[int, SampleValue] = {}

    def __len__(self):
        return len(self._samples)

    def __contains__(self, lattice):
        return lattice_key(*lattice) in self._samples

    def bind(self, sampler: SDFSampler, stats: IsosurfaceStats):
        self.sampler = sampler
        self.stats = stats

    def clear(self):
        self._samples.clear()

    def sample_dual(self, lattice: tuple[int, int, int]) -> SampleValue:
        key = lattice_key(*lattice)
        value = self._samples.get(key)
        if value is not None:
            self.stats.sample_cache_count += 1
            return value
        value = self.sampler.sample(np.array(lattice, dtype=np.float64))
        self._samples[key] = value
        self.stats.sample_raw_count += 1
        return value

    def sample(self, position: np.ndarray) -> SampleValue:
        """Uncached sample at an arbitrary world position."""
        self.stats.sample_refine_count += 1
        return self.sampler.sample(position)
