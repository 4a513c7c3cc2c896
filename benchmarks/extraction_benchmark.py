import time
import numpy as np
import pandas as pd
from SDFMesher.SDF import FunctionSampler
from SDFMesher.extractor import IsosurfaceExtractor
from SDFMesher.geometry import AABB
from SDFMesher.params import IsosurfaceParams
from SDFMesher.sdf_primitives import BoxSDF, SphereSDF, TorusSDF


def sphere_function(radius):
    return lambda p: np.linalg.norm(p) - radius


def run_benchmark():
    sizes = [4, 8, 16]
    results = []

    print(
        f"{'Shape':<10} | {'Size':<5} | {'Sampler':<8} | {'DC':<5} | "
        f"{'Vertices':<9} | {'Time (s)':<10}"
    )
    print("-" * 62)

    extractor = IsosurfaceExtractor()
    for size in sizes:
        shapes = {
            "Sphere": SphereSDF(center=[0, 0, 0], radius=0.8 * size),
            "Box": BoxSDF(half_size=[0.7 * size] * 3, corner_radius=0.1 * size),
            "Torus": TorusSDF(center=[0, 0, 0], R=0.6 * size, r=0.25 * size),
        }
        samplers = {name: sdf.to_sampler() for name, sdf in shapes.items()}
        samplers["Function"] = FunctionSampler(sphere_function(0.8 * size))
        aabb = AABB([-size] * 3, [size] * 3)

        for name, sampler in samplers.items():
            for dual_contouring in (True, False):
                params = IsosurfaceParams(
                    sampler=sampler, aabb=aabb, dual_contouring=dual_contouring
                )
                start_time = time.perf_counter()
                extractor.generate(params)
                elapsed = time.perf_counter() - start_time
                stats = extractor.stats
                kind = "torch" if name in shapes else "numpy"
                results.append(
                    {
                        "Shape": name,
                        "Size": size,
                        "Sampler": kind,
                        "DC": dual_contouring,
                        "Vertices": stats.vertex_count,
                        "Raw samples": stats.sample_raw_count,
                        "Cached samples": stats.sample_cache_count,
                        "Search": stats.voxel_time,
                        "Solve": stats.mesh_time,
                        "Time": elapsed,
                    }
                )
                print(
                    f"{name:<10} | {size:<5} | {kind:<8} | {str(dual_contouring):<5} | "
                    f"{stats.vertex_count:<9} | {elapsed:.4f}"
                )

    return pd.DataFrame(results)


df = run_benchmark()
summary = df.pivot_table(index=["Shape", "Size"], columns="DC", values="Time")
print("\nSlowdown of dual contouring vs plain averaging:")
summary["Slowdown (x)"] = summary[True] / summary[False]
print(summary)
