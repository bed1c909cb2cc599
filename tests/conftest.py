"""Shared mesh fixtures for hydrology tests."""

import numpy as np
import pytest

from py_hydro.core.mesh import HydroMesh, build_mesh


def make_mesh(neighbors, heights, precipitation=None, border=None, points=None):
    """Build a HydroMesh from an explicit adjacency list."""
    n_cells = len(heights)
    if points is None:
        points = np.column_stack([np.arange(n_cells, dtype=float), np.zeros(n_cells)])
    if precipitation is None:
        precipitation = np.ones(n_cells)
    if border is None:
        border = np.zeros(n_cells, dtype=np.uint8)

    return HydroMesh(
        points=np.asarray(points, dtype=float),
        cell_neighbors=[sorted(n) for n in neighbors],
        cell_border_flags=np.asarray(border, dtype=np.uint8),
        heights=np.asarray(heights, dtype=np.float64),
        precipitation=np.asarray(precipitation, dtype=np.float64),
    )


def grid_neighbors(rows, cols):
    """4-connected adjacency for a rows x cols grid, cell id = r * cols + c."""
    neighbors = [[] for _ in range(rows * cols)]
    for r in range(rows):
        for c in range(cols):
            i = r * cols + c
            if r > 0:
                neighbors[i].append(i - cols)
            if r < rows - 1:
                neighbors[i].append(i + cols)
            if c > 0:
                neighbors[i].append(i - 1)
            if c < cols - 1:
                neighbors[i].append(i + 1)
    return neighbors


@pytest.fixture
def mesh_factory():
    """Factory for hand-built meshes."""
    return make_mesh


@pytest.fixture
def converging_mesh():
    """
    Two arms meeting at a midstream cell before reaching the sea.

    A1(0) -> A2(1) -> M(4) -> D1(5) -> D2(6) -> ocean(7)
    B1(2) -> B2(3) -> M(4)
    """
    neighbors = [
        [1],        # A1
        [0, 4],     # A2
        [3],        # B1
        [2, 4],     # B2
        [1, 3, 5],  # M
        [4, 6],     # D1
        [5, 7],     # D2
        [6],        # ocean
    ]
    heights = [90, 80, 85, 75, 60, 50, 40, 5]
    border = [0, 0, 0, 0, 0, 0, 0, 1]
    return make_mesh(neighbors, heights, border=border)


@pytest.fixture
def radial_island():
    """Jittered grid island sloping from 80 at the centre to sea at the edge."""
    rng = np.random.default_rng(42)
    xs, ys = np.meshgrid(np.linspace(0, 1, 30), np.linspace(0, 1, 30))
    points = np.column_stack([xs.ravel(), ys.ravel()])
    points += rng.uniform(-0.01, 0.01, points.shape)

    r = np.hypot(points[:, 0] - 0.5, points[:, 1] - 0.5)
    heights = np.clip(80.0 * (1.0 - r / 0.45), 0.0, 80.0)
    return build_mesh(points, heights, np.ones(len(points)))
