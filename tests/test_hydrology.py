"""Tests for hydrology module."""

import pytest
import numpy as np

from py_hydro.core.hydrology import Hydrology, HydrologyOptions, HydrologyCancelled, River, Lake
from py_hydro.core.mesh import build_mesh
from py_hydro.core.models import SourcePolicy
from py_hydro.core.rivers import MAX_SOURCES, MAX_THRESHOLD_ATTEMPTS
from py_hydro.core.river_names import MAX_NAMED_RIVERS


class TestHydrology:
    """Test hydrology calculations."""

    @pytest.fixture
    def valley_mesh(self):
        """Create a simple test mesh with varied terrain."""
        rng = np.random.default_rng(11)
        xs, ys = np.meshgrid(np.linspace(0, 200, 20), np.linspace(0, 200, 20))
        points = np.column_stack([xs.ravel(), ys.ravel()])
        points += rng.uniform(-2, 2, points.shape)

        n_cells = len(points)
        heights = np.full(n_cells, 50, dtype=np.uint8)  # Default elevation
        precipitation = np.ones(n_cells)

        for i in range(n_cells):
            x, y = points[i]

            # Valley in the middle, descending north to south
            if 80 < x < 120:
                heights[i] = int(45 - (y / 200) * 20)

            # Mountains on the sides, with more precipitation
            elif x < 50 or x > 150:
                heights[i] = 80
                precipitation[i] = 1.6

            # Water at the bottom
            if y > 180:
                heights[i] = 5

        return build_mesh(points, heights, precipitation)

    @pytest.fixture
    def depression_mesh(self):
        """Create a mesh with an enclosed depression."""
        rng = np.random.default_rng(5)
        points = rng.uniform(0, 100, (300, 2))

        center = np.array([50, 50])
        distance = np.hypot(*(points - center).T)
        heights = np.where(distance < 20, np.maximum(30 - (20 - distance).astype(int), 22), 50)
        heights = np.where(distance > 45, 5, heights)
        return build_mesh(points, heights)

    def test_depression_filling(self, depression_mesh):
        """Test depression filling raises the basin and leaves no internal sinks."""
        original = depression_mesh.heights.copy()

        hydrology = Hydrology(depression_mesh)
        hydrology.fill_depressions()
        hydrology.calculate_flow_directions()

        assert np.all(depression_mesh.heights >= original)
        assert np.sum(depression_mesh.heights > original) > 0
        assert hydrology.pit_fill.significant_fills > 0

        land = depression_mesh.is_land
        assert np.all(hydrology.flow_directions[land] != -1)

    def test_water_flow_simulation(self, valley_mesh):
        """Test water flow simulation."""
        mountains = valley_mesh.heights > 70
        valley = (valley_mesh.heights < 50) & valley_mesh.is_land

        hydrology = Hydrology(valley_mesh)
        hydrology.simulate_water_flow()

        assert len(hydrology.water_flux) == valley_mesh.n_cells
        assert np.all(hydrology.water_flux[valley_mesh.is_land] > 0)
        np.testing.assert_array_equal(valley_mesh.flux, hydrology.water_flux)

        # Valley should accumulate more water
        assert hydrology.water_flux[valley].mean() > hydrology.water_flux[mountains].mean()

    def test_river_generation(self, valley_mesh):
        """Test river generation runs its prerequisites on demand."""
        options = HydrologyOptions(source_policy=SourcePolicy.CHANNEL_HEADS)
        hydrology = Hydrology(valley_mesh, options)
        rivers = hydrology.generate_rivers()

        assert len(rivers) > 0
        for river in rivers:
            assert isinstance(river, River)
            assert len(river.cells) >= hydrology.options.min_river_length
            assert river.source == river.cells[0]
            assert np.all(valley_mesh.has_river[river.cells])
            # Rivers never flow uphill
            assert valley_mesh.heights[river.source] >= valley_mesh.heights[river.mouth_cell]

    def test_full_pipeline(self, valley_mesh):
        """Test the complete pipeline and its report."""
        options = HydrologyOptions(source_policy=SourcePolicy.CHANNEL_HEADS)
        hydrology = Hydrology(valley_mesh, options)
        rivers = hydrology.generate()

        report = hydrology.report
        assert report.rivers_generated == len(rivers)
        assert report.total_land_cells == int(np.sum(valley_mesh.is_land))
        assert report.downhill_assigned == report.total_land_cells
        assert 1 <= report.threshold_attempts <= MAX_THRESHOLD_ATTEMPTS
        assert report.discharge_quantiles == sorted(report.discharge_quantiles)
        assert len(report.discharge_quantiles) == 5
        assert len(report.top_sources) == 20
        assert [f for _, f in report.top_sources] == sorted((f for _, f in report.top_sources),
                                                            reverse=True)
        assert report.rivers == [(r.id, len(r.cells), r.discharge) for r in rivers]

        for river in rivers:
            assert 1 <= river.width <= 20
            assert river.length == len(river.cells)
        named = [r for r in rivers if r.name]
        assert len(named) == min(len(rivers), MAX_NAMED_RIVERS)

        for lake in hydrology.lakes:
            assert isinstance(lake, Lake)
            assert np.all(valley_mesh.feature_ids[lake.cells] == lake.id)

    def test_default_sources_cover_threshold_cells(self, valley_mesh):
        """Test every land cell at the final threshold is reported as a candidate source."""
        hydrology = Hydrology(valley_mesh)
        hydrology.generate()

        report = hydrology.report
        above = valley_mesh.is_land & (hydrology.water_flux >= report.river_threshold)
        assert report.candidate_sources == min(int(np.sum(above)), MAX_SOURCES)
        assert report.rivers_generated + report.rivers_rejected <= report.candidate_sources

    def test_pipeline_is_repeatable(self, valley_mesh):
        """Test a second run on the same mesh gives the same rivers."""
        first = [(r.cells, r.name) for r in Hydrology(valley_mesh).generate()]
        second = [(r.cells, r.name) for r in Hydrology(valley_mesh).run_full_simulation()]
        assert first == second

    def test_all_ocean_map(self):
        """Test a map without land produces nothing."""
        rng = np.random.default_rng(1)
        mesh = build_mesh(rng.uniform(0, 10, (50, 2)), np.full(50, 5))

        hydrology = Hydrology(mesh)
        rivers = hydrology.generate()

        assert rivers == []
        assert hydrology.lakes == []
        assert hydrology.report.total_land_cells == 0
        assert hydrology.report.discharge_quantiles == []
        assert not np.any(mesh.has_river)

    def test_options_flow_through(self, valley_mesh):
        """Test disabling auto adjust keeps a single attempt."""
        options = HydrologyOptions(min_flux=100000, auto_adjust=False)
        hydrology = Hydrology(valley_mesh, options)
        hydrology.generate()

        assert hydrology.report.threshold_attempts == 1
        assert hydrology.rivers == []

    def test_cancellation(self, valley_mesh):
        """Test a cancellation request stops generation."""
        calls = []

        def should_cancel():
            calls.append(1)
            return len(calls) > 50

        with pytest.raises(HydrologyCancelled):
            Hydrology(valley_mesh, should_cancel=should_cancel).generate()

        with pytest.raises(HydrologyCancelled):
            Hydrology(valley_mesh, should_cancel=lambda: True).generate()
