from SDFMesher.sdf_primitives import BoxSDF, CylinderSDF, SphereSDF
from SDFMesher.SDF import SmoothUnionSDF
from SDFMesher.mesh import create_3D_mesh, export_surface_mesh
from SDFMesher.plotting import plot_octree_boxes

box = BoxSDF(half_size=[0.6, 0.6, 0.6], corner_radius=0.1)
hole = CylinderSDF(half_size=[0.3, 0.3, 1.0])
part = SmoothUnionSDF(box - hole, SphereSDF(center=[0, 0, 0.8], radius=0.4), k=0.1)

part.plot_slice(origin=(0, 0, 0), normal=(0, 1, 0), xlim=(-1.2, 1.2), ylim=(-1.2, 1.2))

octree_boxes = []
mesh = create_3D_mesh(
    part, [[-1.2, -1.2, -1.2], [1.2, 1.5, 1.5]], voxel_size=0.05, octree_boxes=octree_boxes
)
plot_octree_boxes(octree_boxes)

export_surface_mesh("part.vtk", mesh)
export_surface_mesh("part.stl", mesh)
