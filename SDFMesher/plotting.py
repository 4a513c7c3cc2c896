"""
Visualization and Plotting Utilities
=====================================

This module provides utilities for visualizing SDFs and the debug output of
the isosurface extractor.

Functions
---------
plot_slice
    Create a contour plot of an SDF on a 2D plane slice.
generate_plane_points
    Generate a regular grid of points on a plane in 3D space.
plot_octree_boxes
    Draw the octree nodes collected in ``IsosurfaceParams.octree_boxes``.
plot_error_points
    Scatter the voxels collected in ``IsosurfaceParams.error_points``.
"""

import matplotlib.pyplot as plt
import numpy as np
import torch
from mpl_toolkits.mplot3d.art3d import Line3DCollection

# corner index pairs of the 12 box edges, corners enumerated x fastest
_BOX_EDGES = (
    (0, 1), (2, 3), (4, 5), (6, 7),
    (0, 2), (1, 3), (4, 6), (5, 7),
    (0, 4), (1, 5), (2, 6), (3, 7),
)


def plot_slice(
    fun,
    origin=(0, 0, 0),
    normal=(0, 0, 1),
    res=(100, 100),
    ax=None,
    xlim=(-1, 1),
    ylim=(-1, 1),
    clim=(-1, 1),
    cmap="seismic",
    show_zero_level=True,
):
    """Plot a 2D slice through an SDF as a contour plot.

    Parameters
    ----------
    fun : callable
        The SDF to visualize. Either an ``SDFBase`` (called with a
        torch.Tensor of shape (N, 3)) or an ``SDFSampler`` (called once per
        point).
    origin : tuple of float, default (0, 0, 0)
        A point on the slice plane.
    normal : tuple of float, default (0, 0, 1)
        Normal vector of the slice plane. Only axis-aligned planes are
        supported.
    res : tuple of int, default (100, 100)
        Resolution of the slice grid.
    ax : matplotlib.axes.Axes, optional
        Axes to plot on. If None, creates a new figure.
    xlim, ylim : tuple of float, default (-1, 1)
        Range along the plane axes.
    clim : tuple of float, default (-1, 1)
        Color map limits for distance values.
    cmap : str, default 'seismic'
        Matplotlib colormap name.
    show_zero_level : bool, default True
        If True, draws a black contour line at distance=0 (the surface).

    Returns
    -------
    fig, ax : matplotlib.figure.Figure, matplotlib.axes.Axes
        Only returned if ax was None (i.e., a new figure was created).

    Examples
    --------
    >>> from SDFMesher.sdf_primitives import SphereSDF
    >>> sphere = SphereSDF(center=[0, 0, 0], radius=0.5)
    >>> fig, ax = plot_slice(sphere, res=(200, 200))
    """
    plt_show = False
    if ax is None:
        fig, ax = plt.subplots()
        plt_show = True

    points, u, v = generate_plane_points(origin, normal, res, xlim, ylim)

    if hasattr(fun, "sample"):
        sdf = np.array([fun.sample(p).distance for p in points])
    else:
        sdf = fun(torch.from_numpy(points).to(torch.float32))
    if isinstance(sdf, torch.Tensor):
        sdf = sdf.detach().cpu().numpy()
    sdf = sdf.reshape((res[0], res[1]))
    X = u.reshape((res[0], res[1]))
    Y = v.reshape((res[0], res[1]))

    cbar = ax.contourf(X, Y, sdf, cmap=cmap, levels=10)
    if show_zero_level and sdf.min() < 0.0 < sdf.max():
        ax.contour(X, Y, sdf, levels=[0], colors="black", linewidths=0.5)
    cbar.set_clim(clim[0], clim[1])
    ax.set_xticks([])
    ax.set_yticks([])
    ax.set_aspect(1)
    if plt_show:
        plt.show()
        return fig, ax


def generate_plane_points(origin, normal, res, xlim, ylim):
    """Generate evenly spaced points on an axis-aligned plane.

    Returns
    -------
    points : np.ndarray of shape (res[0] * res[1], 3)
    u, v : np.ndarray of shape (res[0] * res[1],)
        Plane coordinates of each point.

    Raises
    ------
    NotImplementedError
        If normal is not axis-aligned.
    """
    normal = np.array(normal, dtype=np.float64)
    normal = normal / np.linalg.norm(normal)
    origin = np.array(origin, dtype=np.float64)
    if np.allclose(normal, [0, 0, 1]):
        u = np.array([1, 0, 0])
        v = np.array([0, 1, 0])
    elif np.allclose(normal, [0, 1, 0]):
        u = np.array([1, 0, 0])
        v = np.array([0, 0, 1])
    elif np.allclose(normal, [1, 0, 0]):
        u = np.array([0, 1, 0])
        v = np.array([0, 0, 1])
    else:
        raise NotImplementedError(
            "Normal vector other than [1,0,0], [0,1,0] and [0,0,1] not supported yet."
        )

    u_coords = np.linspace(xlim[0], xlim[1], res[0])
    v_coords = np.linspace(ylim[0], ylim[1], res[1])
    U, V = np.meshgrid(u_coords, v_coords, indexing="ij")
    u_exp = U.reshape(-1)
    v_exp = V.reshape(-1)
    points = origin + u_exp[:, None] * u + v_exp[:, None] * v
    return points, u_exp, v_exp


def _axes_3d(ax):
    if ax is None:
        fig = plt.figure()
        ax = fig.add_subplot(projection="3d")
    return ax


def plot_octree_boxes(boxes, ax=None, color="tab:blue", linewidth=0.3):
    """Draw wireframes of octree nodes.

    Parameters
    ----------
    boxes : list of AABB
        Typically the ``octree_boxes`` sink filled during a pass.
    ax : mpl_toolkits.mplot3d.Axes3D, optional
        Axes to draw into. A new 3D figure is created if None.

    Returns
    -------
    ax : mpl_toolkits.mplot3d.Axes3D
    """
    ax = _axes_3d(ax)
    segments = []
    for box in boxes:
        corners = [
            (
                box.max[0] if i & 1 else box.min[0],
                box.max[1] if i & 2 else box.min[1],
                box.max[2] if i & 4 else box.min[2],
            )
            for i in range(8)
        ]
        segments.extend((corners[a], corners[b]) for a, b in _BOX_EDGES)
    if segments:
        ax.add_collection3d(
            Line3DCollection(segments, colors=color, linewidths=linewidth)
        )
        points = np.array(segments).reshape(-1, 3)
        ax.set_xlim(points[:, 0].min(), points[:, 0].max())
        ax.set_ylim(points[:, 1].min(), points[:, 1].max())
        ax.set_zlim(points[:, 2].min(), points[:, 2].max())
    return ax


def plot_error_points(points, ax=None, color="tab:red", size=4):
    """Scatter voxels flagged as violating the distance bound of an SDF."""
    ax = _axes_3d(ax)
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if len(points):
        ax.scatter(points[:, 0], points[:, 1], points[:, 2], c=color, s=size)
    return ax
