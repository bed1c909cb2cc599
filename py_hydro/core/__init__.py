"""
Core hydrology functionality.
"""

from .mesh import HydroMesh, build_mesh, SEA_LEVEL
from .hydrology import Hydrology
from .models import (
    HydrologyOptions, HydrologyReport, HydrologyCancelled, ConfluencePolicy, SourcePolicy,
    River, RiverType, Lake, LakeType,
)

__all__ = ['HydroMesh', 'build_mesh', 'SEA_LEVEL', 'Hydrology',
           'HydrologyOptions', 'HydrologyReport', 'HydrologyCancelled', 'ConfluencePolicy', 'SourcePolicy',
           'River', 'RiverType', 'Lake', 'LakeType']
