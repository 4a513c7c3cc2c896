import json

import numpy as np
import pytest

from SDFMesher.SDF import FunctionSampler
from SDFMesher.geometry import AABB
from SDFMesher.params import (
    IsosurfaceParams,
    IsosurfaceStats,
    ProgressReporter,
    load_specifications,
    params_from_specs,
)


@pytest.fixture
def sampler():
    return FunctionSampler(lambda p: np.linalg.norm(p) - 1.0)


def test_defaults(sampler):
    params = IsosurfaceParams(sampler=sampler, aabb=AABB([-1] * 3, [1] * 3))
    assert params.max_verts == 0
    assert params.max_indices == 0
    assert params.normal_sample_offset == 0.1
    assert params.dual_contouring
    assert params.qef_iterations == 10
    assert params.qef_step == 0.5
    assert params.average_bias == 0.1
    assert params.sphere_trace_iterations == 8
    assert params.sphere_trace_epsilon == 0.01
    assert params.vertex_budget() == float("inf")
    assert params.index_budget() == float("inf")
    params.max_verts = 12
    assert params.vertex_budget() == 12


def test_load_specifications(tmp_path, sampler):
    specs = {
        "AABB": [[-2, -2, -2], [2, 2, 3]],
        "MaxVerts": 1000,
        "MaxIndices": 6000,
        "DualContouring": False,
        "NormalSampleOffset": 0.05,
        "Description": "unit sphere",
    }
    with open(tmp_path / "specs.json", "w") as f:
        json.dump(specs, f)

    loaded = load_specifications(tmp_path)
    params = params_from_specs(loaded, sampler, max_indices=12)
    assert params.aabb == AABB([-2, -2, -2], [2, 2, 3])
    assert params.max_verts == 1000
    assert params.max_indices == 12
    assert params.dual_contouring is False
    assert params.normal_sample_offset == 0.05
    assert params.sampler is sampler
    params.validate()


def test_missing_specifications(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_specifications(tmp_path)


def test_specs_without_aabb(sampler):
    with pytest.raises(ValueError):
        params_from_specs({"MaxVerts": 10}, sampler)
    params = params_from_specs({"MaxVerts": 10}, sampler, aabb=AABB([0] * 3, [1] * 3))
    assert params.max_verts == 10


def test_stats_accumulate():
    total = IsosurfaceStats()
    total.accumulate(IsosurfaceStats(sample_raw_count=3, voxel_time=0.5, voxel_progress=1.0))
    total.accumulate(IsosurfaceStats(sample_raw_count=4, budget_exceeded=True))
    assert total.sample_raw_count == 7
    assert total.voxel_time == 0.5
    assert total.budget_exceeded
    assert total.voxel_progress == 0.0


def test_progress_reporter_full_percent():
    reports = []
    stats = IsosurfaceStats()
    reporter = ProgressReporter(stats, reports.append)
    reporter.update()
    stats.voxel_progress = 0.005
    reporter.update()
    assert len(reports) == 1
    stats.voxel_progress = 0.01
    reporter.update()
    assert len(reports) == 2
    stats.mesh_progress = 0.5
    reporter.update()
    reporter.update()
    assert len(reports) == 3
    reporter.update(force=True)
    assert len(reports) == 4
    assert reports[0].voxel_progress == 0.0
    assert reports[-1].mesh_progress == 0.5

    # without callback nothing happens
    ProgressReporter(stats).update(force=True)


if __name__ == "__main__":
    sampler = FunctionSampler(lambda p: np.linalg.norm(p) - 1.0)
    test_defaults(sampler)
    test_specs_without_aabb(sampler)
    test_stats_accumulate()
    test_progress_reporter_full_percent()
