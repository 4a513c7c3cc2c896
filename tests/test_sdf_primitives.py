import torch
import numpy as np
from math import pi, cos, sin
import pytest

from SDFMesher.sdf_primitives import (
    SphereSDF,
    BoxSDF,
    CylinderSDF,
    TorusSDF,
    PlaneSDF,
)
from SDFMesher.SDF import (
    FunctionSampler,
    IntersectionSDF,
    SampleValue,
    SmoothSubtractionSDF,
    SmoothUnionSDF,
    SubtractionSDF,
    TorchSDFSampler,
    TransformedSDF,
    UnionSDF,
)


@pytest.fixture
def queries():
    torch.manual_seed(42)
    return torch.rand(10, 3)


def test_sdf_primitives(queries):

    # instantiate primitives
    sphere = SphereSDF(center=[0.0, 0.0, 0.0], radius=0.5)
    box = BoxSDF(half_size=[0.5, 0.4, 0.3], corner_radius=0.1)
    cylinder = CylinderSDF(half_size=[0.3, 0.3, 0.5])
    cone = CylinderSDF(half_size=[0.3, 0.2, 0.5], top=0.0)
    torus = TorusSDF(center=[0.0, 0.0, 0.0], R=0.5, r=0.2)
    plane = PlaneSDF(point=[0.0, 0.0, 0.0], normal=[0.0, 1.0, 0.0])

    primitives = [sphere, box, cylinder, cone, torus, plane]

    # test each primitive
    for sdf in primitives:
        print(f"Testing {sdf.__class__.__name__}")
        values = sdf(queries)
        assert values.shape == (10, 1)
        assert torch.all(torch.isfinite(values))
        assert sdf._get_domain_bounds().shape == (2, 3)


def test_primitive_values():
    origin = torch.tensor([[0.0, 0.0, 0.0]])
    outside = torch.tensor([[2.0, 0.0, 0.0]])

    box = BoxSDF(half_size=[1.0, 1.0, 1.0])
    assert box(origin).item() == pytest.approx(-1.0)
    assert box(outside).item() == pytest.approx(1.0)
    rounded = BoxSDF(half_size=[1.0, 1.0, 1.0], corner_radius=0.2)
    assert rounded(outside).item() == pytest.approx(1.0)

    cylinder = CylinderSDF(half_size=[0.5, 0.5, 1.0])
    assert cylinder(origin).item() == pytest.approx(-0.5)
    assert cylinder(torch.tensor([[1.0, 0.0, 0.0]])).item() == pytest.approx(0.5)
    assert cylinder(torch.tensor([[0.0, 0.0, 1.5]])).item() == pytest.approx(0.5)

    torus = TorusSDF(center=[0.0, 0.0, 0.0], R=1.0, r=0.25)
    assert torus(torch.tensor([[1.0, 0.0, 0.0]])).item() == pytest.approx(-0.25)
    assert torus(origin).item() == pytest.approx(0.75)

    plane = PlaneSDF(point=[0.0, 0.0, 0.0], normal=[0.0, 0.0, 2.0])
    assert plane(torch.tensor([[5.0, 1.0, 3.0]])).item() == pytest.approx(3.0)


def test_rotated_cylinder(queries):
    """
    Rotate an elliptic cylinder by 90 degrees around the z-axis.
    It should be equivalent to the cylinder with swapped radii.
    """
    cyl_x = CylinderSDF(half_size=[0.2, 0.4, 1.0])
    theta = pi / 2  # rotate x -> y
    R = torch.tensor(
        [[cos(theta), -sin(theta), 0], [sin(theta), cos(theta), 0], [0, 0, 1]],
        dtype=torch.float32,
    )

    rotated_cyl = TransformedSDF(cyl_x, rotation=R)
    cyl_y = CylinderSDF(half_size=[0.4, 0.2, 1.0])
    val_rot = rotated_cyl._compute(queries)
    val_ref = cyl_y._compute(queries)
    assert torch.allclose(val_rot, val_ref, atol=1e-5)


def test_scaled_sphere(queries):
    """
    Scale a sphere and check equivalence with a sphere of different radius.
    """
    sphere_r03 = SphereSDF(center=[0, 0, 0], radius=0.3)
    sphere_r03_scaled = TransformedSDF(sphere_r03, scale=2.0)
    sphere_r06 = SphereSDF(center=[0, 0, 0], radius=0.6)
    val_r1_scaled = sphere_r03_scaled(queries)
    val_r2 = sphere_r06(queries)
    assert torch.allclose(val_r1_scaled, val_r2, atol=1e-6)


def test_rotated_sphere_equivalence(queries):
    """
    Rotate a sphere around any axis – should produce the same SDF.
    """
    sphere = SphereSDF(center=[0, 0, 0], radius=0.5)
    theta = pi / 3
    R = torch.tensor(
        [[cos(theta), -sin(theta), 0], [sin(theta), cos(theta), 0], [0, 0, 1]],
        dtype=torch.float32,
    )

    rotated_sphere = TransformedSDF(sphere, rotation=R)
    val_rot = rotated_sphere._compute(queries)
    val_ref = sphere._compute(queries)
    assert torch.allclose(val_rot, val_ref, atol=1e-6)


def test_translated_sphere(queries):
    """
    Translate a sphere – should be equivalent to a sphere with new center.
    """
    sphere_orig = SphereSDF(center=[0, 0, 0], radius=0.5)
    translation = torch.tensor([0.2, -0.1, 0.3])
    translated_sphere = TransformedSDF(sphere_orig, translation=translation)
    sphere_translated = SphereSDF(center=[0.2, -0.1, 0.3], radius=0.5)

    val_trans = translated_sphere._compute(queries)
    val_ref = sphere_translated._compute(queries)
    assert torch.allclose(val_trans, val_ref, atol=1e-6)
    bounds = translated_sphere._get_domain_bounds()
    assert torch.allclose(bounds, sphere_translated._get_domain_bounds(), atol=1e-6)


def test_csg_operators(queries):
    a = SphereSDF(center=[0.0, 0.0, 0.0], radius=1.0)
    b = SphereSDF(center=[1.0, 0.0, 0.0], radius=1.0)
    point = torch.tensor([[1.5, 0.0, 0.0]])

    assert isinstance(a + b, UnionSDF)
    assert isinstance(a | b, UnionSDF)
    assert isinstance(a & b, IntersectionSDF)
    assert isinstance(a - b, SubtractionSDF)

    assert (a + b)(point).item() == pytest.approx(-0.5)
    assert (a & b)(point).item() == pytest.approx(0.5)
    assert (a - b)(point).item() == pytest.approx(0.5)
    assert (a - b)(torch.tensor([[-0.5, 0.0, 0.0]])).item() == pytest.approx(-0.5)

    union = (a + b)(queries)
    assert torch.allclose(SmoothUnionSDF(a, b, k=0.0)(queries), union)
    assert torch.all(SmoothUnionSDF(a, b, k=0.2)(queries) <= union + 1e-6)
    subtraction = (a - b)(queries)
    assert torch.allclose(SmoothSubtractionSDF(a, b, k=0.0)(queries), subtraction)
    assert torch.all(SmoothSubtractionSDF(a, b, k=0.2)(queries) >= subtraction - 1e-6)

    bounds = (a + b)._get_domain_bounds()
    assert torch.allclose(bounds[0], torch.tensor([-1.0, -1.0, -1.0]))
    assert torch.allclose(bounds[1], torch.tensor([2.0, 1.0, 1.0]))


def test_invalid_query_shape():
    sphere = SphereSDF(center=[0.0, 0.0, 0.0], radius=1.0)
    with pytest.raises(ValueError):
        sphere(torch.zeros(3))
    with pytest.raises(ValueError):
        sphere(torch.zeros(4, 2))


def test_samplers():
    sphere = SphereSDF(center=[0.0, 0.0, 0.0], radius=1.0)
    sampler = sphere.to_sampler(error_margin=0.25)
    assert isinstance(sampler, TorchSDFSampler)
    value = sampler.sample(np.array([2.0, 0.0, 0.0]))
    assert value.distance == pytest.approx(1.0)
    assert value.error_margin == 0.25
    assert sampler([0.0, 0.0, 0.0]).distance == pytest.approx(-1.0)

    assert FunctionSampler(lambda p: 0.5)(np.zeros(3)) == SampleValue(0.5, 0.0)
    assert FunctionSampler(lambda p: (0.5, 0.1))(np.zeros(3)) == SampleValue(0.5, 0.1)
    assert FunctionSampler(lambda p: SampleValue(-1.0, 2.0))(np.zeros(3)) == SampleValue(
        -1.0, 2.0
    )
    assert FunctionSampler(lambda p: 0.5, error_margin=0.3)(np.zeros(3)).error_margin == 0.3


if __name__ == "__main__":
    queries = torch.rand(10, 3)
    test_rotated_cylinder(queries)
    test_rotated_sphere_equivalence(queries)
    test_scaled_sphere(queries)
    test_sdf_primitives(queries)
    test_translated_sphere(queries)
    test_primitive_values()
    test_csg_operators(queries)
    test_invalid_query_shape()
    test_samplers()
