"""
SDFMesher - Dual Contouring Isosurface Extraction for Signed Distance Fields
===========================================================================

SDFMesher turns an arbitrary signed distance function (SDF) into a triangle
mesh approximating its zero level set. The extractor searches a bounded region
with an adaptive octree, tests lattice edges for sign changes, and places one
vertex per dual-grid cell with a simplified quadratic-error solve.

Key Components
--------------

SDF Representations
    - ``SDFMesher.SDF``: Sample values, sampler adapters, SDF base class and
      CSG combinators
    - ``SDFMesher.sdf_primitives``: Geometric primitives (spheres, boxes, etc.)

Extraction
    - ``SDFMesher.extractor``: The ``IsosurfaceExtractor`` entry point
    - ``SDFMesher.octree``: Adaptive octree search over the lattice
    - ``SDFMesher.sample_cache``: Memoized lattice samples
    - ``SDFMesher.voxels``: Voxel map and edge intersection processing
    - ``SDFMesher.assembler``: Final vertex position and normal solve
    - ``SDFMesher.params``: Parameters, statistics and specs.json loading

Mesh Operations
    - ``SDFMesher.mesh``: Mesh container, conversion and export

Utilities
    - ``SDFMesher.plotting``: Visualization tools
    - ``SDFMesher.utils``: Logging configuration and lattice helpers

Examples
--------
Extract a sphere::

    from SDFMesher.sdf_primitives import SphereSDF
    from SDFMesher.mesh import create_3D_mesh

    sphere = SphereSDF(center=[0, 0, 0], radius=8.0)
    mesh = create_3D_mesh(sphere, [[-10, -10, -10], [10, 10, 10]])
    mesh.to_gus()

Drive the extractor directly::

    from SDFMesher.SDF import FunctionSampler
    from SDFMesher.extractor import IsosurfaceExtractor
    from SDFMesher.geometry import AABB
    from SDFMesher.params import IsosurfaceParams
    import numpy as np

    params = IsosurfaceParams(
        sampler=FunctionSampler(lambda p: np.linalg.norm(p) - 2.0),
        aabb=AABB([-3, -3, -3], [3, 3, 3]),
    )
    extractor = IsosurfaceExtractor()
    extractor.generate(params)
"""

import SDFMesher.utils

SDFMesher.utils.configure_logging()

__version__ = "0.4.0"
__author__ = "Michael Kofler"
