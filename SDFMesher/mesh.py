import logging
import os
import pathlib

import gustaf as gus
import numpy as np
import trimesh
import vtk

import SDFMesher
from SDFMesher.extractor import IsosurfaceExtractor
from SDFMesher.geometry import AABB
from SDFMesher.params import IsosurfaceParams
from SDFMesher.SDF import FunctionSampler, SampleValue, SDFBase, SDFSampler

logger = logging.getLogger(SDFMesher.__name__)


class IsosurfaceMesh:
    """Triangle mesh produced by the extractor.

    Parameters
    ----------
    vertices : np.ndarray of shape (N, 3)
    faces : np.ndarray of shape (M, 3)
        Counter-clockwise seen from outside.
    normals : np.ndarray of shape (N, 3), optional
        Unit vertex normals pointing outside.
    """

    def __init__(self, vertices, faces, normals=None):
        self.vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
        self.faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
        self.normals = (
            None if normals is None else np.asarray(normals, dtype=np.float64).reshape(-1, 3)
        )

    @classmethod
    def from_extractor(cls, extractor: IsosurfaceExtractor, scale=1.0):
        vertices = extractor.vertices.view()
        return cls(
            vertices["position"][:, :3].astype(np.float64) * scale,
            extractor.indices.view().astype(np.int64).reshape(-1, 3),
            vertices["normal"].astype(np.float64),
        )

    def is_empty(self) -> bool:
        return len(self.faces) == 0

    def to_gus(self):
        return gus.Faces(self.vertices, self.faces)

    def to_trimesh(self):
        return trimesh.Trimesh(
            vertices=self.vertices,
            faces=self.faces,
            vertex_normals=self.normals,
            process=False,
        )


class _ScaledSampler(SDFSampler):
    """Samples a field in world units on a lattice of ``voxel_size`` spacing."""

    def __init__(self, sampler: SDFSampler, voxel_size: float):
        self.sampler = sampler
        self.voxel_size = voxel_size

    def sample(self, position: np.ndarray) -> SampleValue:
        value = self.sampler.sample(position * self.voxel_size)
        return SampleValue(
            value.distance / self.voxel_size, value.error_margin / self.voxel_size
        )


def _as_sampler(sdf, error_margin=0.0, device="cpu") -> SDFSampler:
    if isinstance(sdf, SDFSampler):
        return sdf
    if isinstance(sdf, SDFBase):
        return sdf.to_sampler(error_margin=error_margin, device=device)
    if callable(sdf):
        return FunctionSampler(sdf, error_margin=error_margin)
    raise TypeError(f"Cannot sample an SDF of type {type(sdf).__name__}")


def create_3D_mesh(
    sdf,
    bounds,
    voxel_size=1.0,
    error_margin=0.0,
    device="cpu",
    extractor: IsosurfaceExtractor | None = None,
    **kwargs,
) -> IsosurfaceMesh:
    """Extract the surface of an SDF as a triangle mesh.

    Parameters
    ----------
    sdf : SDFBase, SDFSampler or callable
        Plain callables receive a point of shape (3,).
    bounds : AABB or array-like of shape (2, 3)
        Region to extract, in world units.
    voxel_size : float, default 1.0
        Edge length of one voxel in world units.
    error_margin : float, default 0.0
        Error margin reported for ``SDFBase`` and callable fields.
    extractor : IsosurfaceExtractor, optional
        Reused if given, so its buffers keep their capacity.
    **kwargs
        Further :class:`IsosurfaceParams` fields, e.g. ``max_verts`` or
        ``dual_contouring``.
    """
    if voxel_size <= 0.0:
        raise ValueError("voxel_size must be positive")
    aabb = bounds if isinstance(bounds, AABB) else AABB.from_bounds(bounds)
    sampler = _as_sampler(sdf, error_margin=error_margin, device=device)
    if voxel_size != 1.0:
        sampler = _ScaledSampler(sampler, voxel_size)
        aabb = AABB(aabb.min / voxel_size, aabb.max / voxel_size)

    # debug sinks are filled in lattice units and handed back in world units
    octree_boxes = kwargs.pop("octree_boxes", None)
    error_points = kwargs.pop("error_points", None)

    if extractor is None:
        extractor = IsosurfaceExtractor()
    params = IsosurfaceParams(
        sampler=sampler,
        aabb=aabb,
        octree_boxes=None if octree_boxes is None else [],
        error_points=None if error_points is None else [],
        **kwargs,
    )
    if not extractor.generate(params):
        logger.debug("SDF has no surface inside the given bounds")

    if octree_boxes is not None:
        octree_boxes.extend(
            AABB(box.min * voxel_size, box.max * voxel_size) for box in params.octree_boxes
        )
    if error_points is not None:
        error_points.extend(point * voxel_size for point in params.error_points)
    return IsosurfaceMesh.from_extractor(extractor, scale=voxel_size)


def _export_surface_mesh_vtk(verts, faces, filename, normals=None):
    vtk_points = vtk.vtkPoints()
    for v in verts:
        vtk_points.InsertNextPoint(v.tolist())

    vtk_cells = vtk.vtkCellArray()
    for f in faces:
        triangle = vtk.vtkTriangle()
        triangle.GetPointIds().SetId(0, int(f[0]))
        triangle.GetPointIds().SetId(1, int(f[1]))
        triangle.GetPointIds().SetId(2, int(f[2]))
        vtk_cells.InsertNextCell(triangle)

    polydata = vtk.vtkPolyData()
    polydata.SetPoints(vtk_points)
    polydata.SetPolys(vtk_cells)
    if normals is not None:
        vectors = vtk.vtkFloatArray()
        vectors.SetNumberOfComponents(3)
        vectors.SetName("Normals")
        for n in normals:
            vectors.InsertNextTuple(n.tolist())
        polydata.GetPointData().SetNormals(vectors)

    writer = vtk.vtkPolyDataWriter()
    writer.SetFileName(str(filename))
    writer.SetInputData(polydata)
    writer.Write()
    logger.debug(f"Mesh saved to {filename}")


def export_surface_mesh(
    filename: str | bytes | os.PathLike[str] | os.PathLike[bytes],
    mesh: gus.Faces | IsosurfaceMesh,
):
    """Write a surface mesh. ``.vtk`` files keep vertex normals, every other
    extension is written by gustaf's meshio backend."""
    export_filename = pathlib.Path(filename)
    ext = export_filename.suffix.lower()
    if isinstance(mesh, IsosurfaceMesh):
        if mesh.is_empty():
            logger.warning(f"Exporting an empty mesh to {export_filename}")
        normals = mesh.normals
        mesh = mesh.to_gus()
    else:
        normals = None
    if not os.path.isdir(export_filename.parent):
        os.makedirs(export_filename.parent)
    logger.debug(
        f"Exporting mesh with {len(mesh.faces)} faces, {len(mesh.vertices)} vertices to {export_filename}"
    )
    match ext:
        case ".vtk":
            _export_surface_mesh_vtk(mesh.vertices, mesh.faces, export_filename, normals)
        case _:
            gus.io.meshio.export(export_filename, mesh)
