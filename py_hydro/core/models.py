"""
Hydrology data structures and options.

Rivers and lakes produced by the engine, the diagnostics report, and the
options that tune river formation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class HydrologyCancelled(Exception):
    """Raised when a caller's cancellation check fires mid-generation."""


class RiverType(Enum):
    """River size band derived from width."""

    STREAM = "stream"
    RIVER = "river"
    MAJOR_RIVER = "major_river"


class LakeType(Enum):
    """Lake classification based on outflow."""

    FRESHWATER = "freshwater"  # drains through an outlet
    SALTWATER = "saltwater"  # evaporation consumes all inflow


class ConfluencePolicy(Enum):
    """What a river trace does when it runs into an already claimed cell."""

    REJECT = "reject"  # discard the trace
    MERGE = "merge"  # keep the trace as a tributary ending at the confluence


class SourcePolicy(Enum):
    """Which cells above the discharge threshold start a river trace."""

    THRESHOLD = "threshold"  # every land cell at or above the threshold
    CHANNEL_HEADS = "channel_heads"  # only the upstream-most cells of each channel


@dataclass
class HydrologyOptions:
    """Hydrology calculation options."""
    precipitation_scale: float = 50.0  # Precipitation to base discharge factor
    min_flux: int = 30  # Base discharge needed to form a river
    min_river_length: int = 3  # Minimum cells for an accepted river
    auto_adjust: bool = True  # Relax threshold until target_rivers is reached
    target_rivers: int = 10  # River count the threshold relaxation aims for
    min_threshold: int = 8  # Floor for the relaxed threshold
    confluence_policy: ConfluencePolicy = ConfluencePolicy.REJECT
    source_policy: SourcePolicy = SourcePolicy.THRESHOLD
    delta_min_discharge: int = 500  # Mouth discharge needed to form a delta
    seasonal_precipitation: float = 30.0  # Below this (discharge units) rivers are seasonal
    evaporation_rate: float = 0.1  # Lake evaporation per cell, in precipitation units
    name_seed: str = "default"  # Seed for river naming

    def __post_init__(self):
        self.min_river_length = max(1, int(self.min_river_length))
        self.target_rivers = max(0, int(self.target_rivers))
        self.min_threshold = max(1, int(self.min_threshold))
        if not isinstance(self.confluence_policy, ConfluencePolicy):
            self.confluence_policy = ConfluencePolicy(self.confluence_policy)
        if not isinstance(self.source_policy, SourcePolicy):
            self.source_policy = SourcePolicy(self.source_policy)

    @classmethod
    def from_settings(cls, settings) -> "HydrologyOptions":
        """Build options from application settings."""
        return cls(
            precipitation_scale=settings.precipitation_scale,
            min_flux=settings.min_flux,
            min_river_length=settings.min_river_length,
            auto_adjust=settings.auto_adjust,
            target_rivers=settings.target_rivers,
            min_threshold=settings.min_threshold,
            confluence_policy=settings.confluence_policy,
            source_policy=settings.source_policy,
            delta_min_discharge=settings.delta_min_discharge,
            seasonal_precipitation=settings.seasonal_precipitation,
            evaporation_rate=settings.evaporation_rate,
            name_seed=settings.name_seed,
        )


@dataclass
class River:
    """Represents a river with its properties."""
    id: int
    cells: List[int]  # Cell indices from source to mouth
    source: int  # Source cell index
    mouth: int  # Ocean cell reached, or last cell when the trace ended on land
    width: int = 1
    length: int = 0  # Cell count
    type: RiverType = RiverType.STREAM
    is_seasonal: bool = False
    name: str = ""
    discharge: int = 0  # Peak discharge along the river
    parent_id: Optional[int] = None  # River joined at a confluence (merge policy)
    distributaries: List[List[int]] = field(default_factory=list)  # Delta channels

    @property
    def mouth_cell(self) -> int:
        """Last land cell of the river."""
        return self.cells[-1]


@dataclass
class Lake:
    """Represents a lake with its properties."""
    id: int
    cells: List[int]  # Cell indices forming the lake
    water_level: float  # Shared height of the lake cells
    shoreline: List[int] = field(default_factory=list)  # Adjacent non-lake cells
    outlet_cell: int = -1  # Lowest shoreline cell, -1 if none
    inflow: float = 0.0  # Discharge collected by the lake cells
    evaporation: float = 0.0
    type: LakeType = LakeType.FRESHWATER

    @property
    def closed(self) -> bool:
        """True if evaporation consumes all inflow."""
        return self.evaporation >= self.inflow


@dataclass
class HydrologyReport:
    """Diagnostics collected during a hydrology run. Informational only."""
    river_threshold: int = 0
    threshold_attempts: int = 0
    candidate_sources: int = 0
    rivers_generated: int = 0
    rivers_rejected: int = 0
    lakes_filled: int = 0
    lakes_identified: int = 0
    total_land_cells: int = 0
    downhill_assigned: int = 0
    discharge_quantiles: List[int] = field(default_factory=list)
    top_sources: List[Tuple[int, int]] = field(default_factory=list)
    rivers: List[Tuple[int, int, int]] = field(default_factory=list)  # (id, cells, peak discharge)


def raise_if_cancelled(should_cancel) -> None:
    """Raise HydrologyCancelled if the caller's cancellation check fires."""
    if should_cancel is not None and should_cancel():
        raise HydrologyCancelled("Hydrology generation cancelled")
