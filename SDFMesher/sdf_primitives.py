from SDFMesher.SDF import SDFBase
import torch


def _bounds(center, half_size):
    center = torch.as_tensor(center, dtype=torch.float32)
    half_size = torch.as_tensor(half_size, dtype=torch.float32)
    return torch.stack([center - half_size, center + half_size], dim=0)


class SphereSDF(SDFBase):
    def __init__(self, center, radius):
        super().__init__()
        self.center = torch.tensor(center, dtype=torch.float32)
        self.r = radius

    def _compute(self, queries: torch.Tensor) -> torch.Tensor:
        center = self.center.to(queries.dtype)
        return (torch.linalg.norm(queries - center, dim=1) - self.r).reshape(-1, 1)

    def _get_domain_bounds(self) -> torch.Tensor:
        return _bounds(self.center, self.r)


class PlaneSDF(SDFBase):
    """Infinite plane through ``point``; positive on the side ``normal`` points to."""

    def __init__(self, point, normal, extent=1.0):
        super().__init__()
        self.point = torch.tensor(point, dtype=torch.float32)
        self.normal = torch.tensor(normal, dtype=torch.float32)
        self.normal = self.normal / torch.linalg.norm(self.normal)
        self.extent = extent

    def _compute(self, queries: torch.Tensor) -> torch.Tensor:
        point = self.point.to(queries.dtype)
        normal = self.normal.to(queries.dtype)
        return torch.matmul(queries - point, normal).reshape(-1, 1)

    def _get_domain_bounds(self) -> torch.Tensor:
        # planes are unbounded, report a box of the given extent around the point
        return _bounds(self.point, self.extent)


class BoxSDF(SDFBase):
    """Axis-aligned box with optionally rounded corners.

    Parameters
    ----------
    half_size : array-like of shape (3,)
        Half extents of the box.
    center : array-like of shape (3,), default origin
    corner_radius : float, default 0.0
        Radius of the rounded edges, measured inside ``half_size``.
    """

    def __init__(self, half_size, center=(0.0, 0.0, 0.0), corner_radius=0.0):
        super().__init__()
        self.half_size = torch.tensor(half_size, dtype=torch.float32)
        self.center = torch.tensor(center, dtype=torch.float32)
        self.corner_radius = corner_radius

    def _compute(self, queries: torch.Tensor) -> torch.Tensor:
        p = queries - self.center.to(queries.dtype)
        q = torch.abs(p) - (self.half_size.to(queries.dtype) - self.corner_radius)
        outside = torch.linalg.norm(torch.clamp(q, min=0.0), dim=1)
        inside = torch.clamp(q.max(dim=1).values, max=0.0)
        return (outside + inside - self.corner_radius).reshape(-1, 1)

    def _get_domain_bounds(self) -> torch.Tensor:
        return _bounds(self.center, self.half_size)


class CylinderSDF(SDFBase):
    """Z aligned capped cone with an elliptic cross section.

    ``half_size`` gives the x/y radii and the half height. ``top`` and
    ``bottom`` scale the radius at the upper and lower cap (0 to 1), so
    ``top=0`` gives a cone and ``top=bottom=1`` a cylinder.
    """

    def __init__(self, half_size, center=(0.0, 0.0, 0.0), top=1.0, bottom=1.0):
        super().__init__()
        self.half_size = torch.tensor(half_size, dtype=torch.float32)
        self.center = torch.tensor(center, dtype=torch.float32)
        self.top = min(max(top, 0.0), 1.0)
        self.bottom = min(max(bottom, 0.0), 1.0)

    def _compute(self, queries: torch.Tensor) -> torch.Tensor:
        p = queries - self.center.to(queries.dtype)
        hx, hy, hz = (float(v) for v in self.half_size)
        px, py, pz = p[:, 0], p[:, 1], p[:, 2]
        if hx > hy:
            scale = hx
            py = py * (hx / hy)
        else:
            scale = hy
            px = px * (hy / hx)

        r1 = self.bottom * scale
        r2 = self.top * scale
        qx = torch.sqrt(px**2 + py**2)
        qy = pz
        k1x, k1y = r2, hz
        k2x, k2y = r2 - r1, 2.0 * hz

        cap = torch.where(qy < 0.0, torch.full_like(qy, r1), torch.full_like(qy, r2))
        ca_x = qx - torch.minimum(qx, cap)
        ca_y = torch.abs(qy) - hz
        t = torch.clip(((k1x - qx) * k2x + (k1y - qy) * k2y) / (k2x**2 + k2y**2), 0, 1)
        cb_x = qx - k1x + k2x * t
        cb_y = qy - k1y + k2y * t
        inside = (cb_x < 0.0) & (ca_y < 0.0)
        sign = torch.where(inside, -torch.ones_like(qx), torch.ones_like(qx))
        dist = torch.sqrt(
            torch.minimum(ca_x**2 + ca_y**2, cb_x**2 + cb_y**2)
        )
        return (sign * dist).reshape(-1, 1)

    def _get_domain_bounds(self) -> torch.Tensor:
        return _bounds(self.center, self.half_size)


class TorusSDF(SDFBase):
    def __init__(self, center, R, r):
        super().__init__()
        self.center = torch.tensor(center, dtype=torch.float32)
        self.R = R
        self.r = r

    def _compute(self, queries: torch.Tensor) -> torch.Tensor:
        p = queries - self.center.to(queries.dtype)
        q = torch.stack(
            [torch.sqrt(p[:, 0] ** 2 + p[:, 1] ** 2) - self.R, p[:, 2]], dim=1
        )
        dist = torch.linalg.norm(q, dim=1) - self.r
        return dist.reshape(-1, 1)

    def _get_domain_bounds(self) -> torch.Tensor:
        return _bounds(self.center, [self.R + self.r, self.R + self.r, self.r])
