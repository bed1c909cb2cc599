"""
Lake identification.

Lakes are flat enclosed land regions left behind by pit filling: connected
cells at one elevation, without rivers, whose neighbors are all at least as
high.
"""

from collections import defaultdict, deque
from typing import Dict, List, Set

import numpy as np
import structlog

from .models import Lake, LakeType, raise_if_cancelled

logger = structlog.get_logger()

MIN_LAKE_CELLS = 3


def find_lake_candidates(mesh) -> Dict[float, List[int]]:
    """Group land cells without rivers that no neighbor lies below, by height."""
    heights = mesh.heights.astype(np.float64)
    land = mesh.is_land
    candidates = defaultdict(list)

    for cell_idx in range(mesh.n_cells):
        if not land[cell_idx] or mesh.has_river[cell_idx]:
            continue
        height = heights[cell_idx]
        if all(heights[n] >= height for n in mesh.cell_neighbors[cell_idx]):
            candidates[height].append(cell_idx)

    return candidates


def identify_lakes(mesh, flux: np.ndarray, precipitation_scale: float = 50.0,
                   evaporation_rate: float = 0.1, should_cancel=None) -> List[Lake]:
    """
    Flood fill lake candidates into lakes and mark them on the mesh.

    Accepted lakes get a 1-based id written to mesh.feature_ids.

    Args:
        mesh: HydroMesh with rivers applied
        flux: Discharge per cell
        precipitation_scale: Precipitation to discharge factor
        evaporation_rate: Evaporation per lake cell, in precipitation units
        should_cancel: Optional callable polled per elevation group

    Returns:
        List of Lake objects
    """
    logger.info("Identifying lakes")

    lakes = []
    for elevation, cells in sorted(find_lake_candidates(mesh).items()):
        raise_if_cancelled(should_cancel)
        remaining = set(cells)

        for seed in cells:
            if seed not in remaining:
                continue
            lake_cells = _flood_fill_lake(mesh, seed, remaining)
            if len(lake_cells) < MIN_LAKE_CELLS:
                continue

            lake = _build_lake(mesh, len(lakes) + 1, lake_cells, elevation, flux,
                               precipitation_scale, evaporation_rate)
            mesh.feature_ids[lake.cells] = lake.id
            lakes.append(lake)

    logger.info("Lakes identified", count=len(lakes))
    return lakes


def _flood_fill_lake(mesh, seed: int, remaining: Set[int]) -> List[int]:
    """Collect candidates connected to seed. Removes them from remaining."""
    lake_cells = []
    queue = deque([seed])
    remaining.discard(seed)

    while queue:
        cell_idx = queue.popleft()
        lake_cells.append(cell_idx)
        for neighbor_idx in mesh.cell_neighbors[cell_idx]:
            if neighbor_idx in remaining:
                remaining.discard(neighbor_idx)
                queue.append(neighbor_idx)

    return sorted(lake_cells)


def _build_lake(mesh, lake_id: int, cells: List[int], elevation: float, flux: np.ndarray,
                precipitation_scale: float, evaporation_rate: float) -> Lake:
    members = set(cells)
    shoreline = sorted({n for c in cells for n in mesh.cell_neighbors[c] if n not in members})

    outlet_cell = -1
    if shoreline:
        outlet_cell = min(shoreline, key=lambda c: (float(mesh.heights[c]), c))

    lake = Lake(
        id=lake_id,
        cells=cells,
        water_level=float(elevation),
        shoreline=shoreline,
        outlet_cell=outlet_cell,
        inflow=float(np.sum(flux[cells])),
        evaporation=len(cells) * evaporation_rate * precipitation_scale,
    )
    lake.type = LakeType.SALTWATER if lake.closed else LakeType.FRESHWATER
    return lake
