"""Tests for configuration and result containers."""

import pytest
from omegaconf import OmegaConf
from omegaconf.errors import ConfigKeyError

from nsfd import ConfigurationError, Metrics, Parameters, ProcessIdentity, TimeSeries
from nsfd.datastructures import BoundaryType


def config(**sections):
    base = {"experiment_name": "test", "mlflow": {"tracking_uri": "./mlruns"}}
    base.update(sections)
    return OmegaConf.create(base)


class TestParameters:
    """Tests for building parameters from a Hydra config."""

    def test_defaults(self):
        params = Parameters.from_config(config())
        assert params.dim == 2
        assert params.walls.left.type == BoundaryType.DIRICHLET
        assert params.solver.linear_solver == "scipy"

    def test_sections_are_merged(self):
        cfg = config(
            geometry={"dim": 3, "size": [8, 4, 2]},
            walls={"right": {"type": "NEUMANN"}, "top": {"velocity": [1.0, 0.0, 0.0]}},
            simulation={"scenario": "channel"},
        )
        params = Parameters.from_config(cfg)
        assert params.dim == 3
        assert params.geometry.size == [8, 4, 2]
        assert params.walls.right.type == BoundaryType.NEUMANN
        assert params.walls.top.velocity == [1.0, 0.0, 0.0]
        assert params.simulation.scenario == "channel"

    def test_invalid_dimension(self):
        with pytest.raises(ConfigurationError, match="dimension"):
            Parameters.from_config(config(geometry={"dim": 4}))

    def test_unknown_scenario(self):
        with pytest.raises(ConfigurationError, match="Unknown scenario"):
            Parameters.from_config(config(simulation={"scenario": "pipe"}))

    def test_iteration_limits(self):
        with pytest.raises(ConfigurationError, match="min_iterations"):
            Parameters.from_config(config(solver={"min_iterations": 50, "max_iterations": 10}))

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigKeyError):
            Parameters.from_config(config(flow={"viscosity": 1.0}))

    def test_to_mlflow_is_flat(self):
        params = Parameters()
        flat = params.to_mlflow()
        assert flat["flow.Re"] == 100.0
        assert flat["geometry.size"] == "16,16,1"
        assert flat["walls.left.type"] == "DIRICHLET"
        assert flat["walls.top.velocity"] == "0.0,0.0,0.0"
        assert all(not isinstance(v, (list, dict)) for v in flat.values())

    def test_to_dataframe(self):
        df = Parameters().to_dataframe()
        assert len(df) == 1
        assert "solver.gamma" in df.columns


class TestResults:
    """Tests for identity, metrics and time series."""

    def test_serial_identity(self):
        assert ProcessIdentity.serial() == ProcessIdentity(rank=0, size=1)

    def test_metrics_to_mlflow(self):
        metrics = Metrics(steps=3, final_time=0.3)
        values = metrics.to_mlflow()
        assert values["steps"] == 3.0
        assert all(isinstance(v, float) for v in values.values())

    def test_time_series(self):
        series = TimeSeries()
        series.append(0.1, 0.1, 12, 1e-7, 1.0)
        series.append(0.2, 0.1, 9, 2e-7, 1.1)
        assert len(series) == 2

        df = series.to_dataframe()
        assert list(df["pressure_iterations"]) == [12, 9]

        batch = series.to_mlflow_batch()
        assert len(batch) == 8
        assert {m.key for m in batch} == {"dt", "pressure_iterations", "pressure_error", "max_velocity"}
        assert {m.step for m in batch} == {0, 1}
