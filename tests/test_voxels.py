import math

import numpy as np
import pytest

from SDFMesher.SDF import FunctionSampler
from SDFMesher.buffers import INDEX_DTYPE, VERTEX_DTYPE, GrowableArray
from SDFMesher.geometry import AABB
from SDFMesher.params import IsosurfaceParams, IsosurfaceStats
from SDFMesher.sample_cache import DualSampleCache
from SDFMesher.voxels import EdgeProcessor, VoxelMap, nudge


def make_processor(fn, aabb=None, error_margin=0.0, **kwargs):
    if aabb is None:
        aabb = AABB([-2, -2, -2], [2, 2, 2])
    params = IsosurfaceParams(
        sampler=FunctionSampler(fn, error_margin=error_margin), aabb=aabb, **kwargs
    )
    stats = IsosurfaceStats()
    cache = DualSampleCache(params.sampler, stats)
    return EdgeProcessor(
        params,
        cache,
        VoxelMap(),
        GrowableArray(VERTEX_DTYPE),
        GrowableArray(INDEX_DTYPE),
        [],
        stats,
    )


def sphere(p):
    return float(np.linalg.norm(p) - 2.0)


def test_nudge():
    assert nudge(0.0) == 0.0001
    assert nudge(-0.0) == 0.0001
    assert nudge(-1.0) == -1.0
    assert nudge(0.5) == 0.5


def test_plane_edge_intersection():
    processor = make_processor(lambda p: p[2] - 0.5)
    voxel = processor.evaluate_edges((0, 0, 0))
    assert voxel.evaluated
    assert voxel.edge_mask == 0b100
    assert not voxel.has_edge(0) and not voxel.has_edge(1) and voxel.has_edge(2)
    np.testing.assert_allclose(voxel.edge_pos[2], [1.0, 1.0, 0.5])
    np.testing.assert_allclose(voxel.edge_normal[2], [0.0, 0.0, 1.0], atol=1e-12)
    # evaluating again does not resample
    samples = processor.stats.sample_raw_count + processor.stats.sample_cache_count
    assert processor.evaluate_edges((0, 0, 0)) is voxel
    assert processor.stats.sample_raw_count + processor.stats.sample_cache_count == samples


def test_far_voxel_has_no_edges():
    processor = make_processor(lambda p: p[2] - 0.5)
    voxel = processor.evaluate_edges((0, 0, 5))
    assert voxel.evaluated
    assert voxel.edge_mask == 0
    # early out only needs the four corner samples
    assert processor.stats.sample_refine_count == 0


def test_sphere_trace_refines_linear_estimate():
    # x edge from (1, 1, 0) to (2, 1, 0), the surface crosses at x = sqrt(3)
    traced = make_processor(sphere).evaluate_edges((1, 0, -1))
    linear = make_processor(sphere, sphere_trace_iterations=0).evaluate_edges((1, 0, -1))
    assert traced.has_edge(0) and linear.has_edge(0)

    traced_x = 1.0 + traced.edge_pos[0][0]
    linear_x = 1.0 + linear.edge_pos[0][0]
    np.testing.assert_allclose(traced.edge_pos[0][1:], [1.0, 1.0])
    assert abs(traced_x - math.sqrt(3.0)) < 0.01
    assert abs(traced_x - math.sqrt(3.0)) < abs(linear_x - math.sqrt(3.0))
    # normals point away from the center
    normal = traced.edge_normal[0]
    assert np.linalg.norm(normal) == pytest.approx(1.0)
    assert np.dot(normal, [traced_x, 1.0, 0.0]) > 0.0


def test_large_error_margin_falls_back_to_linear():
    linear = make_processor(sphere, sphere_trace_iterations=0).evaluate_edges((1, 0, -1))
    noisy = make_processor(sphere, error_margin=1.0).evaluate_edges((1, 0, -1))
    np.testing.assert_allclose(noisy.edge_pos[0], linear.edge_pos[0])


def test_dual_contouring_off_skips_normals():
    processor = make_processor(lambda p: p[2] - 0.5, dual_contouring=False)
    voxel = processor.evaluate_edges((0, 0, 0))
    np.testing.assert_array_equal(voxel.edge_normal[2], np.zeros(3))
    assert processor.stats.sample_refine_count > 0


def test_lipschitz_violation_recorded():
    error_points = []
    processor = make_processor(lambda p: 3.0 * (p[2] - 0.5), error_points=error_points)
    voxel = processor.evaluate_edges((0, 0, 0))
    assert voxel.edge_mask == 0
    assert processor.stats.error_count == 1
    assert len(error_points) == 1
    np.testing.assert_array_equal(error_points[0], [0.0, 0.0, 0.0])


def test_lipschitz_violation_without_sink_is_processed():
    processor = make_processor(lambda p: 3.0 * (p[2] - 0.5))
    voxel = processor.evaluate_edges((0, 0, 0))
    assert voxel.has_edge(2)
    assert processor.stats.error_count == 0


def test_edge_in_bounds():
    processor = make_processor(sphere, aabb=AABB([0, 0, 0], [2, 2, 2]))
    assert processor._edge_in_bounds((0, 0, 0), 2)
    assert processor._edge_in_bounds((1, 1, 1), 2) is False
    assert processor._edge_in_bounds((0, 0, -1), 2) is False
    assert processor._edge_in_bounds((0, 0, 1), 2)
    assert processor._edge_in_bounds((-2, 0, 0), 2) is False


def triangle_normals(processor):
    positions = processor.vertices.view()["position"][:, :3].astype(np.float64)
    triangles = positions[processor.indices.view().reshape(-1, 3)]
    return np.cross(triangles[:, 1] - triangles[:, 0], triangles[:, 2] - triangles[:, 0])


@pytest.mark.parametrize("axis", [0, 1, 2])
@pytest.mark.parametrize("sign", [1.0, -1.0])
def test_quad_winding_faces_outside(axis, sign):
    processor = make_processor(lambda p: sign * (p[axis] - 0.5))
    assert processor.process_voxel((0, 0, 0))
    assert len(processor.vertices) == 4
    assert len(processor.indices) == 6
    assert len(processor.vertex_voxels) == 4
    outside = np.zeros(3)
    outside[axis] = sign
    for normal in triangle_normals(processor):
        assert np.dot(normal, outside) > 0.0


def test_process_voxel_counts_once():
    processor = make_processor(lambda p: p[2] - 0.5)
    assert processor.process_voxel((0, 0, 0))
    assert processor.process_voxel((0, 0, 0))
    assert processor.stats.voxel_count == 1
    assert len(processor.indices) == 6


def test_shared_vertices_are_reused():
    processor = make_processor(lambda p: p[2] - 0.5)
    processor.process_voxel((0, 0, 0))
    processor.process_voxel((-1, 0, 0))
    # the second quad shares two vertices with the first one
    assert len(processor.vertices) == 6
    assert len(processor.indices) == 12
    positions = processor.vertices.view()["position"]
    np.testing.assert_array_equal(positions[:, 3], np.ones(6))


def test_budget_exceeded_skips_edge():
    processor = make_processor(lambda p: p[2] - 0.5, max_verts=3)
    assert processor.process_voxel((0, 0, 0)) is False
    assert processor.stats.budget_exceeded
    assert len(processor.vertices) == 0
    assert len(processor.indices) == 0

    processor = make_processor(lambda p: p[2] - 0.5, max_indices=6)
    assert processor.process_voxel((0, 0, 0))
    assert processor.process_voxel((-1, 0, 0)) is False
    assert len(processor.indices) == 6


if __name__ == "__main__":
    test_nudge()
    test_plane_edge_intersection()
    test_far_voxel_has_no_edges()
    test_sphere_trace_refines_linear_estimate()
    test_large_error_margin_falls_back_to_linear()
    test_dual_contouring_off_skips_normals()
    test_lipschitz_violation_recorded()
    test_lipschitz_violation_without_sink_is_processed()
    test_edge_in_bounds()
    for axis in range(3):
        test_quad_winding_faces_outside(axis, 1.0)
        test_quad_winding_faces_outside(axis, -1.0)
    test_process_voxel_counts_once()
    test_shared_vertices_are_reused()
    test_budget_exceeded_skips_edge()
