"""
Extraction Parameters and Statistics
====================================

``IsosurfaceParams`` is everything the caller hands to one
``IsosurfaceExtractor.generate`` call. ``IsosurfaceStats`` collects counters
and timings of that call; ``ProgressReporter`` forwards them to an optional
callback whenever the search or the mesh solve advances by a full percent.

Parameters can also be stored in a ``specs.json`` file inside an experiment
directory and loaded with :func:`load_specifications` and
:func:`params_from_specs`.
"""

import dataclasses
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Optional

import SDFMesher
from SDFMesher.geometry import AABB
from SDFMesher.SDF import SDFSampler

logger = logging.getLogger(SDFMesher.__name__)

specifications_filename = "specs.json"

# specs.json key -> IsosurfaceParams field
_SPEC_KEYS = {
    "MaxVerts": "max_verts",
    "MaxIndices": "max_indices",
    "NormalSampleOffset": "normal_sample_offset",
    "DualContouring": "dual_contouring",
    "QEFIterations": "qef_iterations",
    "QEFStep": "qef_step",
    "AverageBias": "average_bias",
    "SphereTraceIterations": "sphere_trace_iterations",
    "SphereTraceEpsilon": "sphere_trace_epsilon",
}


@dataclass
class IsosurfaceStats:
    """Counters and timings of one generation pass.

    Sample counters
        ``sample_raw_count`` lattice samples that missed the cache,
        ``sample_cache_count`` lattice samples served from the cache,
        ``sample_refine_count`` off-lattice samples (sphere tracing and
        normal estimation).
    Voxel counters
        ``voxel_count`` voxels handed to the edge processor,
        ``voxel_skip_count`` voxels skipped by octree pruning or the AABB,
        ``voxel_total_count`` voxels covered by the octree root,
        ``octree_node_count`` octree nodes sampled.
    Output
        ``vertex_count``, ``index_count``, ``error_count`` (voxels flagged as
        numerically unstable), ``budget_exceeded``.
    Progress
        ``voxel_progress`` and ``mesh_progress`` in [0, 1].
    Timings in seconds
        ``elapsed_time``, ``voxel_time``, ``mesh_time``.
    """

    sample_raw_count: int = 0
    sample_cache_count: int = 0
    sample_refine_count: int = 0
    voxel_count: int = 0
    voxel_skip_count: int = 0
    voxel_total_count: int = 0
    octree_node_count: int = 0
    vertex_count: int = 0
    index_count: int = 0
    error_count: int = 0
    budget_exceeded: bool = False
    voxel_progress: float = 0.0
    mesh_progress: float = 0.0
    elapsed_time: float = 0.0
    voxel_time: float = 0.0
    mesh_time: float = 0.0

    def copy(self) -> "IsosurfaceStats":
        return dataclasses.replace(self)

    def accumulate(self, other: "IsosurfaceStats"):
        """Add the counters and timings of another pass to this one."""
        for f in dataclasses.fields(self):
            if f.name in ("voxel_progress", "mesh_progress"):
                continue
            if f.name == "budget_exceeded":
                self.budget_exceeded = self.budget_exceeded or other.budget_exceeded
                continue
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))


@dataclass
class IsosurfaceParams:
    """Parameters of one extraction pass.

    Parameters
    ----------
    sampler : SDFSampler
        The field to extract. Must be deterministic.
    aabb : AABB
        Region to search, in lattice units (one voxel per world unit).
    stats_callback : callable, optional
        Invoked with a copy of :class:`IsosurfaceStats` whenever voxel search
        or mesh progress crosses a 1% boundary.
    max_verts, max_indices : int, default 0
        Output budgets, 0 means unbounded.
    normal_sample_offset : float, default 0.1
        Offset of the central differences used for edge normals.
    dual_contouring : bool, default True
        Estimate edge normals and refine vertex positions against the
        tangent planes. When False vertices sit at the average of their
        edge intersections.
    octree_boxes : list, optional
        Debug sink, receives an :class:`AABB` for every octree node visited.
    error_points : list, optional
        Debug sink, receives the world position of every voxel whose samples
        violate the distance bound of a signed distance field. Flagged voxels
        are skipped.
    qef_iterations, qef_step, average_bias : int, float, float
        Vertex solve heuristics (10, 0.5, 0.1).
    sphere_trace_iterations, sphere_trace_epsilon : int, float
        Edge intersection refinement (8, 0.01).
    """

    sampler: SDFSampler
    aabb: AABB
    stats_callback: Optional[Callable[[IsosurfaceStats], None]] = None
    max_verts: int = 0
    max_indices: int = 0
    normal_sample_offset: float = 0.1
    dual_contouring: bool = True
    octree_boxes: Optional[list] = field(default=None, repr=False)
    error_points: Optional[list] = field(default=None, repr=False)
    qef_iterations: int = 10
    qef_step: float = 0.5
    average_bias: float = 0.1
    sphere_trace_iterations: int = 8
    sphere_trace_epsilon: float = 0.01

    def validate(self):
        if not isinstance(self.sampler, SDFSampler):
            raise TypeError(
                f"sampler must be an SDFSampler, got {type(self.sampler).__name__}"
            )
        if self.max_verts < 0 or self.max_indices < 0:
            raise ValueError("Vertex and index budgets must not be negative")
        if self.normal_sample_offset <= 0.0:
            raise ValueError("normal_sample_offset must be positive")

    def vertex_budget(self) -> float:
        return self.max_verts if self.max_verts > 0 else float("inf")

    def index_budget(self) -> float:
        return self.max_indices if self.max_indices > 0 else float("inf")


class ProgressReporter:
    """Forwards stats to the caller's callback on every full percent of progress."""

    def __init__(self, stats: IsosurfaceStats, callback=None):
        self.stats = stats
        self.callback = callback
        self._previous = None

    def _percent(self, stats):
        return int(stats.voxel_progress * 100), int(stats.mesh_progress * 100)

    def update(self, force=False):
        if self.callback is None:
            return
        if (
            not force
            and self._previous is not None
            and self._percent(self._previous) == self._percent(self.stats)
        ):
            return
        self._previous = self.stats.copy()
        self.callback(self._previous)


def load_specifications(directory):
    filename = os.path.join(directory, specifications_filename)

    if not os.path.isfile(filename):
        raise FileNotFoundError(
            f"The experiment directory ({directory}) does not include specifications file "
            + f'"{specifications_filename}"'
        )

    with open(filename) as f:
        return json.load(f)


def params_from_specs(specs: dict, sampler: SDFSampler, **kwargs) -> IsosurfaceParams:
    """Build :class:`IsosurfaceParams` from a specifications dictionary.

    ``specs["AABB"]`` holds ``[[xmin, ymin, zmin], [xmax, ymax, zmax]]``.
    Keyword arguments override values from the file.
    """
    options = {}
    if "AABB" in specs:
        options["aabb"] = AABB.from_bounds(specs["AABB"])
    for spec_key, name in _SPEC_KEYS.items():
        if spec_key in specs:
            options[name] = specs[spec_key]
    ignored = set(specs) - set(_SPEC_KEYS) - {"AABB"}
    if ignored:
        logger.debug(f"Ignoring unknown specification keys {sorted(ignored)}")
    options.update(kwargs)
    if "aabb" not in options:
        raise ValueError("Specifications must define an AABB")
    return IsosurfaceParams(sampler=sampler, **options)
