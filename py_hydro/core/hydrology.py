"""
Hydrology system for river generation and water flow simulation.

This module implements the full pass over a mesh:
- Pit filling (Priority-Flood)
- Flow directions and accumulation
- River tracing with threshold relaxation
- Lake detection in filled basins
- River widths, deltas and seasonal rivers
- River naming and diagnostics
"""

from typing import Callable, List, Optional

import structlog

from .alea_prng import AleaPRNG
from .deltas import generate_deltas
from .drainage import accumulate_flow, fill_pits, route_flow
from .lakes import identify_lakes
from .models import (
    ConfluencePolicy,
    HydrologyCancelled,
    HydrologyOptions,
    HydrologyReport,
    Lake,
    LakeType,
    River,
    RiverType,
    SourcePolicy,
)
from .report import build_report
from .river_names import name_rivers
from .rivers import (
    apply_rivers,
    classify_river_widths,
    classify_seasonal_rivers,
    trace_rivers,
)

logger = structlog.get_logger()

__all__ = [
    "Hydrology",
    "HydrologyOptions",
    "HydrologyReport",
    "HydrologyCancelled",
    "ConfluencePolicy",
    "River",
    "RiverType",
    "SourcePolicy",
    "Lake",
    "LakeType",
]


class Hydrology:
    """Handles water flow simulation and river generation."""

    def __init__(self, mesh, options: Optional[HydrologyOptions] = None,
                 should_cancel: Optional[Callable[[], bool]] = None):
        """
        Initialize hydrology system.

        Args:
            mesh: HydroMesh with heights and precipitation populated
            options: Hydrology calculation options
            should_cancel: Optional callable; when it returns True the run
                stops with HydrologyCancelled
        """
        self.mesh = mesh
        self.options = options or HydrologyOptions()
        self.should_cancel = should_cancel

        # Water flow arrays
        self.pit_fill = None
        self.routing = None
        self.flow_directions = None  # Downhill neighbor for each cell
        self.water_flux = None  # Discharge accumulated at each cell

        # Generated features
        self.formation = None
        self.rivers: List[River] = []
        self.lakes: List[Lake] = []
        self.report: Optional[HydrologyReport] = None

    def fill_depressions(self) -> None:
        """Raise enclosed depressions so every reachable cell drains."""
        self.pit_fill = fill_pits(self.mesh, self.should_cancel)

    def calculate_flow_directions(self) -> None:
        """Calculate the downhill neighbor of each land cell."""
        if self.pit_fill is None:
            self.fill_depressions()

        self.routing = route_flow(self.mesh, self.should_cancel)
        self.flow_directions = self.routing.directions

    def simulate_water_flow(self) -> None:
        """Accumulate precipitation-derived discharge downstream."""
        if self.routing is None:
            self.calculate_flow_directions()

        self.water_flux = accumulate_flow(self.mesh, self.routing,
                                          self.options.precipitation_scale,
                                          self.should_cancel)
        self.mesh.flux[:] = self.water_flux

    def generate_rivers(self) -> List[River]:
        """
        Trace rivers from high-discharge channel heads.

        The threshold is relaxed until options.target_rivers form; only the
        final river set is written to the mesh.
        """
        if self.water_flux is None:
            self.simulate_water_flow()

        self.formation = trace_rivers(self.mesh, self.flow_directions, self.water_flux,
                                      self.options, self.should_cancel)
        self.rivers = self.formation.rivers
        apply_rivers(self.mesh, self.rivers)
        return self.rivers

    def detect_lakes(self) -> List[Lake]:
        """Detect lakes in flat enclosed regions without rivers."""
        if self.water_flux is None:
            self.simulate_water_flow()

        self.lakes = identify_lakes(self.mesh, self.water_flux,
                                    self.options.precipitation_scale,
                                    self.options.evaporation_rate,
                                    self.should_cancel)
        return self.lakes

    def define_rivers(self) -> None:
        """Define river width, length and type, then deltas and seasonality."""
        classify_river_widths(self.rivers, self.water_flux)
        generate_deltas(self.mesh, self.rivers, self.water_flux,
                        self.options.delta_min_discharge)
        seasonal = classify_seasonal_rivers(self.rivers, self.mesh,
                                            self.options.precipitation_scale,
                                            self.options.seasonal_precipitation)
        name_rivers(self.rivers, AleaPRNG(self.options.name_seed))
        logger.info("River properties defined", rivers=len(self.rivers), seasonal=seasonal)

    def generate(self) -> List[River]:
        """
        Run the complete hydrology simulation pipeline.

        This executes all steps in order:
        1. Fill pits
        2. Calculate flow directions
        3. Accumulate flow
        4. Trace rivers
        5. Detect lakes
        6. Widths, deltas, seasonal rivers and names
        7. Diagnostics report

        Returns:
            Accepted rivers
        """
        logger.info("Starting hydrology generation", cells=self.mesh.n_cells)

        self.mesh.reset_outputs()
        self.fill_depressions()
        self.calculate_flow_directions()
        self.simulate_water_flow()
        self.generate_rivers()
        self.detect_lakes()
        self.define_rivers()

        self.report = build_report(self.mesh, self.flow_directions, self.water_flux,
                                   self.formation, self.rivers, self.lakes,
                                   self.pit_fill.significant_fills)

        logger.info("Hydrology generation completed",
                    rivers=len(self.rivers),
                    lakes=len(self.lakes),
                    threshold=self.report.river_threshold)
        return self.rivers

    run_full_simulation = generate

