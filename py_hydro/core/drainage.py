"""
Drainage preparation for river generation.

This module implements:
- Priority-Flood pit filling
- Steepest-descent flow routing with flat resolution
- Flow accumulation in topological order
"""

import numpy as np
from typing import List, NamedTuple
from collections import deque
import heapq
import structlog

from .models import raise_if_cancelled

logger = structlog.get_logger()

SIGNIFICANT_FILL = 2  # Raises above this many height units count as filled lakes


class PitFillResult(NamedTuple):
    """Outcome of pit filling."""
    filled_cells: List[int]  # Cells whose height was raised
    significant_fills: int  # Raises greater than SIGNIFICANT_FILL
    reached_at: np.ndarray  # Flood level at which each cell was processed, NaN if never


class FlowRouting(NamedTuple):
    """Flow directions plus the order in which to accumulate along them."""
    directions: np.ndarray  # Downhill neighbor per cell, -1 for ocean and sinks
    order: np.ndarray  # Land cells, every cell before its downhill target
    flat_distance: np.ndarray  # Steps to the exit of a flat, 0 off flats


def fill_pits(mesh, should_cancel=None) -> PitFillResult:
    """
    Fill depressions so every reachable land cell can drain to the sea.

    Priority-Flood: the queue is seeded with ocean and border cells at their
    own elevation. Cells are processed lowest first and raised to the level of
    the flood front that reached them. Cells no seed can reach keep their
    height.

    Args:
        mesh: HydroMesh, heights are modified in place
        should_cancel: Optional callable polled while flooding

    Returns:
        PitFillResult
    """
    logger.info("Filling pits")

    heights = mesh.heights
    n_cells = mesh.n_cells
    is_ocean = mesh.is_ocean

    # Priority queue: (elevation, cell_index)
    pq = []
    processed = np.zeros(n_cells, dtype=bool)
    reached_at = np.full(n_cells, np.nan)

    for i in range(n_cells):
        if is_ocean[i] or mesh.cell_border_flags[i]:
            heapq.heappush(pq, (float(heights[i]), i))

    filled_cells = []
    significant_fills = 0

    while pq:
        elevation, cell_idx = heapq.heappop(pq)
        if processed[cell_idx]:
            continue

        raise_if_cancelled(should_cancel)
        processed[cell_idx] = True
        reached_at[cell_idx] = elevation

        original_height = float(heights[cell_idx])
        if original_height < elevation:
            heights[cell_idx] = elevation
            filled_cells.append(cell_idx)
            if elevation - original_height > SIGNIFICANT_FILL:
                significant_fills += 1

        current_height = float(heights[cell_idx])
        for neighbor_idx in mesh.cell_neighbors[cell_idx]:
            if not processed[neighbor_idx]:
                priority = max(float(heights[neighbor_idx]), current_height)
                heapq.heappush(pq, (priority, neighbor_idx))

    unreached = int(np.sum(~processed))
    if unreached:
        logger.warning("Cells not reachable from ocean or border left unfilled", cells=unreached)

    logger.info("Pit filling completed",
                cells_filled=len(filled_cells),
                significant_fills=significant_fills)

    return PitFillResult(filled_cells, significant_fills, reached_at)


def route_flow(mesh, should_cancel=None) -> FlowRouting:
    """
    Calculate the downhill neighbor of every land cell.

    Fallback chain for cells without a strictly lower neighbor:
    1. A same-height neighbor closer to the edge of the flat (breadth-first
       from the cells that do have a lower neighbor)
    2. A same-height neighbor inside an enclosed flat, converging on one sink
    3. -1 when no neighbor is lower or level

    Args:
        mesh: HydroMesh with filled heights
        should_cancel: Optional callable polled per cell

    Returns:
        FlowRouting with directions and accumulation order
    """
    logger.info("Calculating flow directions")

    n_cells = mesh.n_cells
    heights = mesh.heights.astype(np.float64).tolist()
    land = mesh.is_land
    neighbors = mesh.cell_neighbors

    directions = np.full(n_cells, -1, dtype=np.int32)
    flat_distance = np.zeros(n_cells, dtype=np.int32)
    resolved = np.zeros(n_cells, dtype=bool)

    # Steepest descent
    for cell_idx in range(n_cells):
        if not land[cell_idx]:
            continue
        raise_if_cancelled(should_cancel)

        current_height = heights[cell_idx]
        steepest = -1
        max_drop = 0.0
        for neighbor_idx in neighbors[cell_idx]:
            drop = current_height - heights[neighbor_idx]
            if drop > max_drop:
                max_drop = drop
                steepest = neighbor_idx

        if steepest != -1:
            directions[cell_idx] = steepest
            resolved[cell_idx] = True

    # Flats with an exit: spread outward from the cells that drain
    queue = deque(i for i in range(n_cells) if resolved[i])
    _resolve_flat(queue, heights, land, neighbors, directions, flat_distance, resolved)

    # Enclosed flats: each connected flat drains into its lowest-id cell
    for cell_idx in range(n_cells):
        if not land[cell_idx] or resolved[cell_idx]:
            continue
        raise_if_cancelled(should_cancel)
        resolved[cell_idx] = True
        _resolve_flat(deque([cell_idx]), heights, land, neighbors,
                      directions, flat_distance, resolved)

    land_ids = np.flatnonzero(land)
    land_heights = np.asarray(heights, dtype=np.float64)[land_ids]
    order = land_ids[np.lexsort((land_ids, -flat_distance[land_ids], -land_heights))]

    logger.info("Flow directions calculated",
                land_cells=len(land_ids),
                sinks=int(np.sum(directions[land_ids] == -1)),
                flat_cells=int(np.sum(flat_distance > 0)))

    return FlowRouting(directions, order, flat_distance)


def _resolve_flat(queue, heights, land, neighbors, directions, flat_distance, resolved) -> None:
    """Point unresolved same-height land neighbors back along a BFS tree."""
    while queue:
        cell_idx = queue.popleft()
        for neighbor_idx in neighbors[cell_idx]:
            if (land[neighbor_idx] and not resolved[neighbor_idx]
                    and heights[neighbor_idx] == heights[cell_idx]):
                directions[neighbor_idx] = cell_idx
                flat_distance[neighbor_idx] = flat_distance[cell_idx] + 1
                resolved[neighbor_idx] = True
                queue.append(neighbor_idx)


def base_discharge(mesh, precipitation_scale: float) -> np.ndarray:
    """Discharge each cell contributes on its own: precipitation on land, 0 at sea."""
    precipitation = np.maximum(np.asarray(mesh.precipitation, dtype=np.float64), 0.0)
    base = np.maximum(1, np.round(precipitation * precipitation_scale)).astype(np.int64)
    return np.where(mesh.is_land, base, 0).astype(np.int64)


def accumulate_flow(mesh, routing: FlowRouting, precipitation_scale: float,
                    should_cancel=None) -> np.ndarray:
    """
    Accumulate discharge downstream along the flow directions.

    Cells are visited in routing.order so each cell's discharge is complete
    before it is passed to its downhill neighbor. Ocean targets absorb water
    without accumulating it.

    Args:
        mesh: HydroMesh with precipitation populated
        routing: Result of route_flow
        precipitation_scale: Precipitation to discharge factor

    Returns:
        Discharge per cell
    """
    logger.info("Accumulating flow")

    flux = base_discharge(mesh, precipitation_scale).tolist()
    directions = routing.directions.tolist()
    land = mesh.is_land

    for cell_idx in routing.order.tolist():
        raise_if_cancelled(should_cancel)
        target = directions[cell_idx]
        if target != -1 and land[target]:
            flux[target] += flux[cell_idx]

    flux = np.asarray(flux, dtype=np.int64)
    logger.info("Flow accumulation completed",
                max_flow=int(flux.max()) if len(flux) else 0,
                total_flow=int(flux.sum()))
    return flux
