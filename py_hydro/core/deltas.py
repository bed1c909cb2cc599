"""River deltas: distributary channels at high-discharge river mouths."""

from collections import deque
from typing import List

import numpy as np
import structlog

from .models import River

logger = structlog.get_logger()

COASTAL_SEARCH_RADIUS = 5
MIN_CHANNELS = 2
MAX_CHANNELS = 4
DISCHARGE_PER_CHANNEL = 1000  # Extra channel per this much mouth discharge
MAX_CHANNEL_STEPS = 20


def generate_deltas(mesh, rivers: List[River], flux: np.ndarray,
                    min_discharge: int = 500) -> int:
    """
    Split large river mouths into distributary channels.

    Only rivers that reach the ocean get a delta.

    Channel cells are marked on mesh.has_river and recorded on
    river.distributaries; the river's own cell list is left alone.

    Args:
        mesh: HydroMesh
        rivers: Accepted rivers
        flux: Discharge per cell
        min_discharge: Mouth discharge needed to form a delta

    Returns:
        Number of deltas created
    """
    ocean = mesh.is_ocean
    deltas = 0
    for river in rivers:
        # Tributaries end at a confluence on land
        if not ocean[river.mouth]:
            continue

        mouth = river.mouth_cell
        mouth_discharge = int(flux[mouth])
        if mouth_discharge < min_discharge:
            continue

        coastal = [c for c in find_coastal_cells(mesh, mouth, COASTAL_SEARCH_RADIUS) if c != mouth]
        channel_count = min(len(coastal), MIN_CHANNELS + mouth_discharge // DISCHARGE_PER_CHANNEL,
                            MAX_CHANNELS)

        for target in coastal[:channel_count]:
            river.distributaries.append(create_delta_channel(mesh, mouth, target))

        if channel_count:
            deltas += 1

    logger.info("Deltas generated", count=deltas)
    return deltas


def find_coastal_cells(mesh, center: int, radius: int) -> List[int]:
    """
    Breadth-first search around center for land cells next to the ocean.

    Returns:
        Coastal cells in order of distance from center
    """
    land = mesh.is_land
    coastal = []
    visited = {center}
    queue = deque([center])

    for _ in range(radius):
        if not queue:
            break
        for _ in range(len(queue)):
            cell_idx = queue.popleft()
            neighbors = mesh.cell_neighbors[cell_idx]

            if land[cell_idx] and any(not land[n] for n in neighbors):
                coastal.append(cell_idx)

            for neighbor_idx in neighbors:
                if neighbor_idx not in visited:
                    visited.add(neighbor_idx)
                    queue.append(neighbor_idx)

    return coastal


def create_delta_channel(mesh, start: int, target: int) -> List[int]:
    """
    Walk greedily from start toward target, marking land cells as river.

    Each step moves to the unvisited neighbor nearest the target. The walk
    gives up after MAX_CHANNEL_STEPS or when boxed in.

    Returns:
        Land cells of the channel, start first
    """
    land = mesh.is_land
    points = mesh.points
    target_point = points[target]

    channel = []
    visited = set()
    current = start

    while current != target and len(visited) < MAX_CHANNEL_STEPS:
        visited.add(current)
        if land[current]:
            mesh.has_river[current] = True
            channel.append(current)

        next_cell = -1
        min_distance = float("inf")
        for neighbor_idx in mesh.cell_neighbors[current]:
            if neighbor_idx in visited:
                continue
            distance = float(np.hypot(*(points[neighbor_idx] - target_point)))
            if distance < min_distance:
                min_distance = distance
                next_cell = neighbor_idx

        if next_cell == -1:
            break
        current = next_cell

    if current == target and land[target]:
        mesh.has_river[target] = True
        channel.append(target)

    return channel
