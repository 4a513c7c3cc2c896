from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable
import torch
import numpy as np

from SDFMesher.plotting import plot_slice
import SDFMesher

import logging

logger = logging.getLogger(SDFMesher.__name__)


@dataclass(frozen=True)
class SampleValue:
    """A single evaluation of a signed distance field.

    Attributes
    ----------
    distance : float
        Signed distance to the surface, negative inside.
    error_margin : float
        Radius within which the field may deviate from an exact SDF. Zero for
        exact fields; larger values make the extractor prune less aggressively
        and fall back to plain linear interpolation along edges.
    """

    distance: float
    error_margin: float = 0.0


class SDFSampler(ABC):
    """Adapter between a caller's distance function and the extractor.

    Implementations must be deterministic and free of side effects, because
    the extractor caches lattice samples for the duration of a pass.
    """

    @abstractmethod
    def sample(self, position: np.ndarray) -> SampleValue:
        """Evaluate the field at a single world position of shape (3,)."""

    def __call__(self, position) -> SampleValue:
        return self.sample(np.asarray(position, dtype=np.float64))


class FunctionSampler(SDFSampler):
    """Wrap a plain Python callable as a sampler.

    The callable receives a numpy array of shape (3,) and may return a float,
    a ``(distance, error_margin)`` pair or a :class:`SampleValue`.

    Examples
    --------
    >>> import numpy as np
    >>> sampler = FunctionSampler(lambda p: np.linalg.norm(p) - 2.0)
    >>> sampler.sample(np.zeros(3))
    SampleValue(distance=-2.0, error_margin=0.0)
    """

    def __init__(self, fn: Callable, error_margin: float = 0.0):
        self.fn = fn
        self.error_margin = error_margin

    def sample(self, position: np.ndarray) -> SampleValue:
        result = self.fn(position)
        if isinstance(result, SampleValue):
            return result
        if isinstance(result, tuple):
            distance, error_margin = result
            return SampleValue(float(distance), float(error_margin))
        return SampleValue(float(result), self.error_margin)


class TorchSDFSampler(SDFSampler):
    """Evaluate an :class:`SDFBase` one point at a time.

    Parameters
    ----------
    sdf : SDFBase
        The torch based signed distance function.
    error_margin : float, default 0.0
        Constant error margin reported with every sample.
    device : str, default "cpu"
        Device the queries are created on.
    dtype : torch.dtype, default torch.float32
        Dtype of the query tensor.
    """

    def __init__(self, sdf, error_margin=0.0, device="cpu", dtype=torch.float32):
        self.sdf = sdf
        self.error_margin = error_margin
        self.device = device
        self.dtype = dtype

    def sample(self, position: np.ndarray) -> SampleValue:
        query = torch.tensor(
            np.asarray(position).reshape(1, 3), dtype=self.dtype, device=self.device
        )
        with torch.no_grad():
            distance = self.sdf(query)
        return SampleValue(float(distance.reshape(-1)[0]), self.error_margin)


class SDFBase(ABC):
    """Abstract base class for torch based Signed Distance Functions.

    SDFs represent geometry as an implicit function that returns the signed
    distance from any query point to the nearest surface. Negative values
    indicate points inside the geometry, positive values indicate points
    outside, and zero indicates points on the surface.

    Composition is available through operator overloading:

    - ``a + b`` and ``a | b``: union
    - ``a & b``: intersection
    - ``a - b``: subtraction of ``b`` from ``a``

    Notes
    -----
    Subclasses must implement:
    - ``_compute(queries)``: Calculate SDF values for query points
    - ``_get_domain_bounds()``: Return the bounding box of the geometry

    Examples
    --------
    >>> from SDFMesher.sdf_primitives import SphereSDF
    >>> import torch
    >>>
    >>> sphere = SphereSDF(center=[0, 0, 0], radius=1.0)
    >>> points = torch.tensor([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
    >>> distances = sphere(points)
    >>> print(distances)  # [-1.0, 1.0] (inside, outside)
    """

    def __call__(self, queries: torch.Tensor) -> torch.Tensor:
        """Evaluate the SDF at given query points.

        Parameters
        ----------
        queries : torch.Tensor
            Query points of shape (N, 3).

        Returns
        -------
        torch.Tensor
            Signed distance values of shape (N, 1).

        Raises
        ------
        ValueError
            If queries have invalid shape.
        RuntimeError
            If SDF computation returns invalid output.
        """
        self._validate_input(queries)
        sdf_values = self._compute(queries)
        if sdf_values is None:
            raise RuntimeError("Invalid SDF output")
        return sdf_values

    def _validate_input(self, queries: torch.Tensor):
        if queries.ndim != 2 or queries.shape[1] != 3:
            raise ValueError(f"Expected input of shape (N, 3), got {queries.shape}")

    @abstractmethod
    def _compute(self, queries: torch.Tensor) -> torch.Tensor:
        """Compute SDF values of shape (N, 1) for query points of shape (N, 3)."""

    @abstractmethod
    def _get_domain_bounds(self) -> torch.Tensor:
        """Return the bounding box of the geometry as a (2, 3) tensor."""

    def plot_slice(self, *args, **kwargs):
        return plot_slice(self, *args, **kwargs)

    def to_sampler(self, error_margin=0.0, device="cpu") -> TorchSDFSampler:
        return TorchSDFSampler(self, error_margin=error_margin, device=device)

    def __add__(self, other):
        return UnionSDF(self, other)

    def __or__(self, other):
        return UnionSDF(self, other)

    def __and__(self, other):
        return IntersectionSDF(self, other)

    def __sub__(self, other):
        return SubtractionSDF(self, other)


class UnionSDF(SDFBase):
    def __init__(self, obj1: SDFBase, obj2: SDFBase):
        super().__init__()
        self.obj1 = obj1
        self.obj2 = obj2

    def _compute(self, queries):
        return torch.minimum(self.obj1._compute(queries), self.obj2._compute(queries))

    def _get_domain_bounds(self):
        bounds1 = self.obj1._get_domain_bounds()
        bounds2 = self.obj2._get_domain_bounds()

        lower = torch.minimum(bounds1[0], bounds2[0])
        upper = torch.maximum(bounds1[1], bounds2[1])

        return torch.stack([lower, upper], dim=0)


class IntersectionSDF(SDFBase):
    def __init__(self, obj1: SDFBase, obj2: SDFBase):
        super().__init__()
        self.obj1 = obj1
        self.obj2 = obj2

    def _compute(self, queries):
        return torch.maximum(self.obj1._compute(queries), self.obj2._compute(queries))

    def _get_domain_bounds(self):
        bounds1 = self.obj1._get_domain_bounds()
        bounds2 = self.obj2._get_domain_bounds()

        lower = torch.maximum(bounds1[0], bounds2[0])
        upper = torch.minimum(bounds1[1], bounds2[1])

        return torch.stack([lower, upper], dim=0)


class SubtractionSDF(SDFBase):
    """Removes ``obj2`` from ``obj1``."""

    def __init__(self, obj1: SDFBase, obj2: SDFBase):
        super().__init__()
        self.obj1 = obj1
        self.obj2 = obj2

    def _compute(self, queries):
        return torch.maximum(self.obj1._compute(queries), -self.obj2._compute(queries))

    def _get_domain_bounds(self):
        return self.obj1._get_domain_bounds()


class SmoothUnionSDF(UnionSDF):
    """Union with a blend region of width ``k`` between the two shapes."""

    def __init__(self, obj1: SDFBase, obj2: SDFBase, k: float):
        super().__init__(obj1, obj2)
        self.k = k

    def _compute(self, queries):
        d1 = self.obj1._compute(queries)
        d2 = self.obj2._compute(queries)
        if self.k <= 0:
            return torch.minimum(d1, d2)
        h = torch.clip(0.5 + 0.5 * (d2 - d1) / self.k, 0, 1)
        return torch.lerp(d2, d1, h) - self.k * h * (1 - h)


class SmoothSubtractionSDF(SubtractionSDF):
    """Subtraction of ``obj2`` from ``obj1`` with a blend region of width ``k``."""

    def __init__(self, obj1: SDFBase, obj2: SDFBase, k: float):
        super().__init__(obj1, obj2)
        self.k = k

    def _compute(self, queries):
        d1 = self.obj2._compute(queries)
        d2 = self.obj1._compute(queries)
        if self.k <= 0:
            return torch.maximum(-d1, d2)
        h = torch.clip(0.5 - 0.5 * (d2 + d1) / self.k, 0, 1)
        return torch.lerp(d2, -d1, h) + self.k * h * (1 - h)


class TransformedSDF(SDFBase):
    """
    Generic SDF wrapper that applies a transformation to the input queries.
    Transformation can be rotation, translation, or uniform scaling.
    """

    def __init__(self, sdf: SDFBase, rotation=None, translation=None, scale=None):
        super().__init__()
        self.sdf = sdf
        self.rotation = rotation
        self.translation = translation
        self.scale = scale

    def _compute(self, queries: torch.Tensor) -> torch.Tensor:
        xyz = queries

        # undo translation, then rotation, then scale
        if self.translation is not None:
            xyz = xyz - torch.as_tensor(
                self.translation, dtype=xyz.dtype, device=xyz.device
            )

        if self.rotation is not None:
            rotation = torch.as_tensor(self.rotation, dtype=xyz.dtype, device=xyz.device)
            xyz = xyz @ rotation

        if self.scale is not None:
            xyz = xyz / self.scale

        sdf_vals = self.sdf._compute(xyz)

        # rescale distances if scaled
        if self.scale is not None:
            sdf_vals = sdf_vals * self.scale
        return sdf_vals

    def _get_domain_bounds(self) -> torch.Tensor:
        bounds = self.sdf._get_domain_bounds().to(torch.float32)
        corners = torch.stack(
            [
                torch.stack([bounds[i, 0], bounds[j, 1], bounds[k, 2]])
                for i in (0, 1)
                for j in (0, 1)
                for k in (0, 1)
            ]
        )
        if self.scale is not None:
            corners = corners * self.scale
        if self.rotation is not None:
            rotation = torch.as_tensor(self.rotation, dtype=corners.dtype)
            corners = corners @ rotation.T
        if self.translation is not None:
            corners = corners + torch.as_tensor(self.translation, dtype=corners.dtype)
        return torch.stack([corners.min(dim=0).values, corners.max(dim=0).values])
