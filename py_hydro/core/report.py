"""Diagnostics report for a hydrology run."""

from typing import List

import numpy as np

from .models import HydrologyReport, Lake, River

QUANTILES = (0.05, 0.25, 0.50, 0.75, 0.95)
TOP_SOURCES = 20


def build_report(mesh, directions: np.ndarray, flux: np.ndarray, formation,
                 rivers: List[River], lakes: List[Lake],
                 lakes_filled: int) -> HydrologyReport:
    """Summarize thresholds, counts and discharge distribution."""
    land = mesh.is_land
    land_flux = np.sort(flux[land])

    report = HydrologyReport(
        river_threshold=formation.threshold,
        threshold_attempts=formation.attempts,
        candidate_sources=formation.candidate_sources,
        rivers_generated=len(rivers),
        rivers_rejected=formation.rejected,
        lakes_filled=lakes_filled,
        lakes_identified=len(lakes),
        total_land_cells=int(np.sum(land)),
        downhill_assigned=int(np.sum(land & (directions >= 0))),
    )

    if len(land_flux):
        last = len(land_flux) - 1
        report.discharge_quantiles = [
            int(land_flux[min(max(int(round(q * last)), 0), last)]) for q in QUANTILES
        ]

    # Stable: highest discharge first, ties by id
    ids = np.arange(len(flux))
    top = np.lexsort((ids, -flux))[:TOP_SOURCES]
    report.top_sources = [(int(i), int(flux[i])) for i in top]

    report.rivers = [(river.id, len(river.cells), river.discharge) for river in rivers]
    return report
