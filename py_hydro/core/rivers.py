"""
River tracing and classification.

Rivers are formed in two layers. form_rivers() is a pure function that
traces every source at a given discharge threshold and returns the
candidate river set. trace_rivers() drives it, relaxing the threshold until
enough rivers form, and only the accepted set is written to the mesh.
"""

import math
from typing import Dict, List, NamedTuple, Set

import numpy as np
import structlog

from .models import ConfluencePolicy, River, RiverType, SourcePolicy, raise_if_cancelled

logger = structlog.get_logger()

MAX_SOURCES = 500  # Channel heads considered per attempt
MAX_TRACE_STEPS = 1000  # Guards tracing against residual cycles
MAX_THRESHOLD_ATTEMPTS = 5
THRESHOLD_RELAXATION = 0.8


class RiverFormation(NamedTuple):
    """Rivers formed at one discharge threshold."""
    rivers: List[River]
    candidate_sources: int
    rejected: int
    threshold: int
    attempts: int = 1


def river_threshold(n_cells: int, min_flux: int, min_threshold: int) -> int:
    """Discharge needed to form a river, normalized to mesh density."""
    cells_number_modifier = (n_cells / 10000) ** 0.25
    return max(min_threshold, int(min_flux * cells_number_modifier))


def find_river_sources(directions: np.ndarray, flux: np.ndarray, land: np.ndarray,
                       threshold: int,
                       source_policy: SourcePolicy = SourcePolicy.THRESHOLD) -> List[int]:
    """
    Select the cells river traces start from.

    Under SourcePolicy.THRESHOLD every land cell carrying at least threshold
    discharge is a source; under SourcePolicy.CHANNEL_HEADS only the
    upstream-most of those cells are.

    Returns:
        Source cell ids, highest discharge first, ties by id, at most MAX_SOURCES
    """
    if source_policy is SourcePolicy.CHANNEL_HEADS:
        return find_channel_heads(directions, flux, land, threshold)

    sources = np.flatnonzero(land & (flux >= threshold))
    sources = sources[np.lexsort((sources, -flux[sources]))]
    return sources[:MAX_SOURCES].tolist()


def find_channel_heads(directions: np.ndarray, flux: np.ndarray, land: np.ndarray,
                       threshold: int) -> List[int]:
    """
    Find the upstream-most cells of every channel at the threshold.

    A channel head carries at least threshold discharge while no cell
    draining into it does.

    Returns:
        Head cell ids, highest discharge first, ties by id
    """
    channel = land & (flux >= threshold)
    fed_by_channel = np.zeros(len(flux), dtype=bool)
    upstream = np.flatnonzero(channel & (directions >= 0))
    fed_by_channel[directions[upstream]] = True

    heads = np.flatnonzero(channel & ~fed_by_channel)
    heads = heads[np.lexsort((heads, -flux[heads]))]
    return heads[:MAX_SOURCES].tolist()


def form_rivers(mesh, directions: np.ndarray, flux: np.ndarray, threshold: int,
                min_river_length: int = 3,
                confluence_policy: ConfluencePolicy = ConfluencePolicy.REJECT,
                source_policy: SourcePolicy = SourcePolicy.THRESHOLD,
                should_cancel=None) -> RiverFormation:
    """
    Trace rivers from every source at a threshold.

    Every traced cell is marked visited, whether or not its trace is
    accepted, and sources already visited are skipped. Does not modify the
    mesh.

    Args:
        mesh: HydroMesh
        directions: Flow direction per cell
        flux: Discharge per cell
        threshold: Minimum discharge of a source
        min_river_length: Minimum cells for an accepted river
        confluence_policy: Reject or merge traces that reach a river cell
        source_policy: Which cells above the threshold start a trace
        should_cancel: Optional callable polled per source

    Returns:
        RiverFormation
    """
    land = mesh.is_land
    sources = find_river_sources(directions, flux, land, threshold, source_policy)
    direction_list = directions.tolist()

    visited: Set[int] = set()
    claimed: Dict[int, int] = {}  # cell -> accepted river id
    rivers = []
    rejected = 0

    for source in sources:
        if source in visited:
            continue
        raise_if_cancelled(should_cancel)

        cells, mouth, collision = _trace_river_path(source, direction_list, land, visited)

        parent_id = None
        if collision != -1:
            # Only a cell of an accepted river can become a confluence
            if confluence_policy is ConfluencePolicy.REJECT or collision not in claimed:
                rejected += 1
                continue
            parent_id = claimed[collision]
            cells.append(collision)
            mouth = collision

        if len(cells) < min_river_length:
            rejected += 1
            continue

        river = River(
            id=len(rivers),
            cells=cells,
            source=source,
            mouth=mouth,
            length=len(cells),
            parent_id=parent_id,
        )
        rivers.append(river)
        for cell in cells:
            claimed.setdefault(cell, river.id)

    return RiverFormation(rivers, len(sources), rejected, threshold)


def _trace_river_path(source: int, directions: List[int], land: np.ndarray,
                      visited: Set[int]):
    """
    Follow flow directions from a source, adding each cell to visited.

    Returns:
        Tuple of (cells, mouth, collision). mouth is the ocean cell reached
        or the last cell of the path; collision is the visited cell the trace
        ran into, including a cell of its own path, or -1.
    """
    cells = []
    current = source

    while len(cells) < MAX_TRACE_STEPS:
        if current in visited:
            return cells, cells[-1], current
        if not land[current]:
            return cells, current, -1

        cells.append(current)
        visited.add(current)

        current = directions[current]
        if current == -1:
            break

    return cells, cells[-1], -1


def trace_rivers(mesh, directions: np.ndarray, flux: np.ndarray, options,
                 should_cancel=None) -> RiverFormation:
    """
    Form rivers, relaxing the threshold until the target count is reached.

    Each attempt multiplies the threshold by 0.8, never going below
    options.min_threshold, for at most MAX_THRESHOLD_ATTEMPTS attempts.

    Args:
        mesh: HydroMesh
        directions: Flow direction per cell
        flux: Discharge per cell
        options: HydrologyOptions

    Returns:
        RiverFormation of the final attempt
    """
    threshold = river_threshold(mesh.n_cells, options.min_flux, options.min_threshold)
    logger.info("Tracing rivers", threshold=threshold, cells=mesh.n_cells)

    attempts = 0
    while True:
        raise_if_cancelled(should_cancel)
        formation = form_rivers(mesh, directions, flux, threshold,
                                options.min_river_length, options.confluence_policy,
                                options.source_policy, should_cancel)
        attempts += 1

        if not options.auto_adjust:
            break
        if len(formation.rivers) >= options.target_rivers:
            break
        if threshold <= options.min_threshold or attempts >= MAX_THRESHOLD_ATTEMPTS:
            break

        threshold = max(options.min_threshold, int(math.floor(threshold * THRESHOLD_RELAXATION)))
        logger.debug("Relaxing river threshold",
                     rivers=len(formation.rivers),
                     target=options.target_rivers,
                     threshold=threshold)

    logger.info("Rivers traced",
                count=len(formation.rivers),
                rejected=formation.rejected,
                threshold=threshold,
                attempts=attempts)
    return formation._replace(attempts=attempts)


def apply_rivers(mesh, rivers: List[River]) -> None:
    """Mark accepted river cells on the mesh."""
    mesh.has_river[:] = False
    mesh.river_ids[:] = -1
    for river in rivers:
        for cell in river.cells:
            mesh.has_river[cell] = True
            if mesh.river_ids[cell] == -1:
                mesh.river_ids[cell] = river.id


def classify_river_widths(rivers: List[River], flux: np.ndarray) -> None:
    """
    Derive width, length and type from peak discharge along each river.

    A tributary's last cell is its confluence with the parent river and is
    left out of its peak discharge.
    """
    for river in rivers:
        own_cells = river.cells[:-1] if river.parent_id is not None else river.cells
        river.discharge = int(max(flux[cell] for cell in own_cells))

        # Logarithmic scaling: streams 1-2, major rivers 9-20
        width = math.log10(river.discharge + 1) * 5
        river.width = int(min(max(width, 1), 20))
        river.length = len(river.cells)

        if river.width <= 2:
            river.type = RiverType.STREAM
        elif river.width <= 8:
            river.type = RiverType.RIVER
        else:
            river.type = RiverType.MAJOR_RIVER


def classify_seasonal_rivers(rivers: List[River], mesh, precipitation_scale: float,
                             seasonal_precipitation: float = 30.0) -> int:
    """
    Flag rivers in dry regions as seasonal and halve their width.

    Precipitation is compared in discharge units (precipitation * scale).

    Returns:
        Number of seasonal rivers
    """
    seasonal = 0
    for river in rivers:
        average = float(np.mean(mesh.precipitation[river.cells])) * precipitation_scale
        river.is_seasonal = average < seasonal_precipitation
        if river.is_seasonal:
            river.width = max(1, int(river.width * 0.5))
            seasonal += 1
    return seasonal
