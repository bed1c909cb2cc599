"""Cell mesh container shared by the hydrology stages."""

import numpy as np
from scipy.spatial import Delaunay, QhullError
from typing import List, Optional
from dataclasses import dataclass, field
import structlog

logger = structlog.get_logger()

SEA_LEVEL = 20  # cells at or above this height are land


@dataclass
class HydroMesh:
    """Irregular cell mesh with per-cell hydrology inputs and outputs.

    Geometry (points, neighbors, border flags) is owned by the caller and is
    never modified. The hydrology engine raises ``heights`` while filling pits
    and writes the output arrays in place.
    """
    # Geometry
    points: np.ndarray                 # cells.p[i] = [x, y] cell centre
    cell_neighbors: List[List[int]]    # cells.c[i] = list of neighbor cell IDs
    cell_border_flags: np.ndarray      # cells.b[i] = 1 if border cell, 0 otherwise

    # Inputs
    heights: np.ndarray                # cells.h[i] = height value 0-100
    precipitation: np.ndarray          # cells.prec[i] = precipitation 0-2

    # Outputs
    has_river: Optional[np.ndarray] = field(default=None)
    river_ids: Optional[np.ndarray] = field(default=None)     # -1 = no river
    flux: Optional[np.ndarray] = field(default=None)          # accumulated discharge
    feature_ids: Optional[np.ndarray] = field(default=None)   # lake id, 0 = unmarked

    def __post_init__(self):
        if self.has_river is None or self.river_ids is None or self.flux is None or self.feature_ids is None:
            self.reset_outputs()

    @property
    def n_cells(self) -> int:
        return len(self.heights)

    @property
    def is_land(self) -> np.ndarray:
        return self.heights >= SEA_LEVEL

    @property
    def is_ocean(self) -> np.ndarray:
        return self.heights < SEA_LEVEL

    def reset_outputs(self) -> None:
        """Clear every array the hydrology engine writes."""
        n = self.n_cells
        self.has_river = np.zeros(n, dtype=bool)
        self.river_ids = np.full(n, -1, dtype=np.int32)
        self.flux = np.zeros(n, dtype=np.int64)
        self.feature_ids = np.zeros(n, dtype=np.int32)


def build_cell_connectivity(points: np.ndarray) -> List[List[int]]:
    """
    Build symmetric cell adjacency from a Delaunay triangulation.

    Two cells are neighbors when they share a Delaunay edge, which is the
    same relation as sharing a Voronoi ridge.

    Args:
        points: Array of [x, y] cell centres

    Returns:
        Sorted neighbor list for every cell
    """
    n_points = len(points)
    cell_neighbors = [[] for _ in range(n_points)]
    if n_points < 3:
        return cell_neighbors

    try:
        tri = Delaunay(points)
    except QhullError:
        # Collinear or duplicate points: no usable triangulation
        logger.warning("Delaunay triangulation failed, mesh has no adjacency", points=n_points)
        return cell_neighbors

    indptr, indices = tri.vertex_neighbor_vertices
    for i in range(n_points):
        cell_neighbors[i] = sorted(int(j) for j in indices[indptr[i]:indptr[i + 1]])

    return cell_neighbors


def build_border_flags(points: np.ndarray) -> np.ndarray:
    """Flag cells on the convex hull of the point cloud as border cells."""
    border_flags = np.zeros(len(points), dtype=np.uint8)
    if len(points) < 3:
        border_flags[:] = 1
        return border_flags

    try:
        tri = Delaunay(points)
    except QhullError:
        border_flags[:] = 1
        return border_flags

    border_flags[np.unique(tri.convex_hull)] = 1
    return border_flags


def build_mesh(points, heights, precipitation=None) -> HydroMesh:
    """
    Assemble a HydroMesh from cell centres and per-cell fields.

    Args:
        points: Array-like of [x, y] cell centres
        heights: Per-cell heights (0-100)
        precipitation: Per-cell precipitation (0-2), defaults to 1.0 everywhere

    Returns:
        HydroMesh ready for the hydrology engine
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    heights = np.asarray(heights).copy()
    if precipitation is None:
        precipitation = np.ones(len(points), dtype=np.float64)
    precipitation = np.asarray(precipitation, dtype=np.float64).copy()

    mesh = HydroMesh(
        points=points,
        cell_neighbors=build_cell_connectivity(points),
        cell_border_flags=build_border_flags(points),
        heights=heights,
        precipitation=precipitation,
    )
    logger.info("Mesh built", cells=mesh.n_cells,
                border_cells=int(np.sum(mesh.cell_border_flags)))
    return mesh
