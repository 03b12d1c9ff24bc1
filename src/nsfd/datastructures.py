"""Data structures for solver configuration and results.

This module defines the configuration tree consumed by every stencil and
the result containers filled by the simulation driver.

Structure:
- Parameters: Input configuration (logged to MLflow at start)
- ProcessIdentity: Rank/size of this process (obtained once at startup)
- Metrics: Output results (logged to MLflow at end)
- TimeSeries: Per-step history
"""

from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import List

import pandas as pd
from omegaconf import DictConfig, OmegaConf

from .errors import ConfigurationError

SCENARIOS = ("cavity", "channel", "step")


class BoundaryType(Enum):
    """Boundary condition applied on a domain wall."""

    DIRICHLET = 0
    NEUMANN = 1
    PERIODIC = 2


# ========================================================
# Parameters (Input Configuration)
# ========================================================


@dataclass
class GeometryParameters:
    dim: int = 2
    size: List[int] = field(default_factory=lambda: [16, 16, 1])
    length: List[float] = field(default_factory=lambda: [1.0, 1.0, 1.0])
    mesh: str = "uniform"  # "uniform" or "stretched"
    stretch: List[bool] = field(default_factory=lambda: [False, False, False])


@dataclass
class FlowParameters:
    Re: float = 100.0


@dataclass
class SolverParameters:
    """Momentum discretisation and pressure solver settings."""

    gamma: float = 0.5  # donor-cell blending
    linear_solver: str = "scipy"  # "scipy" or "petsc"
    tolerance: float = 1e-6
    initial_iterations: int = 200
    min_iterations: int = 10
    max_iterations: int = 1000
    iteration_step: float = 0.1  # fraction of the current budget
    lower_error_threshold: float = 1e-6
    check_derivatives: bool = False


@dataclass
class TimestepParameters:
    dt: float = 0.01
    tau: float = 0.5  # safety factor, <= 0 keeps dt fixed
    final_time: float = 1.0


@dataclass
class EnvironmentParameters:
    gx: float = 0.0
    gy: float = 0.0
    gz: float = 0.0


@dataclass
class WallCondition:
    type: BoundaryType = BoundaryType.DIRICHLET
    velocity: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])


@dataclass
class WallParameters:
    left: WallCondition = field(default_factory=WallCondition)
    right: WallCondition = field(default_factory=WallCondition)
    bottom: WallCondition = field(default_factory=WallCondition)
    top: WallCondition = field(default_factory=WallCondition)
    front: WallCondition = field(default_factory=WallCondition)
    back: WallCondition = field(default_factory=WallCondition)


@dataclass
class ParallelParameters:
    num_processors: List[int] = field(default_factory=lambda: [1, 1, 1])


@dataclass
class TurbulenceParameters:
    on: bool = False
    kappa: float = 0.41
    delta99: float = 0.1  # boundary layer thickness


@dataclass
class SimulationParameters:
    scenario: str = "cavity"


@dataclass
class BFStepParameters:
    x_ratio: float = 0.0
    y_ratio: float = 0.0


@dataclass
class VTKParameters:
    enabled: bool = False
    prefix: str = "nsfd"
    interval: float = 0.1
    output_dir: str = "vtk"


@dataclass
class Parameters:
    """Solver parameters - input configuration for a simulation."""

    geometry: GeometryParameters = field(default_factory=GeometryParameters)
    flow: FlowParameters = field(default_factory=FlowParameters)
    solver: SolverParameters = field(default_factory=SolverParameters)
    timestep: TimestepParameters = field(default_factory=TimestepParameters)
    environment: EnvironmentParameters = field(default_factory=EnvironmentParameters)
    walls: WallParameters = field(default_factory=WallParameters)
    parallel: ParallelParameters = field(default_factory=ParallelParameters)
    turbulence: TurbulenceParameters = field(default_factory=TurbulenceParameters)
    simulation: SimulationParameters = field(default_factory=SimulationParameters)
    bfstep: BFStepParameters = field(default_factory=BFStepParameters)
    vtk: VTKParameters = field(default_factory=VTKParameters)

    @property
    def dim(self) -> int:
        return self.geometry.dim

    @classmethod
    def from_config(cls, cfg: DictConfig) -> "Parameters":
        """Merge a Hydra/OmegaConf config onto the structured defaults.

        Only the top-level sections known to ``Parameters`` are taken from
        ``cfg``; other keys (mlflow, experiment_name, ...) belong to the
        runner. Unknown keys inside a section are rejected by OmegaConf.
        """
        names = [f.name for f in fields(cls)]
        sections = {name: cfg[name] for name in names if name in cfg}
        merged = OmegaConf.merge(OmegaConf.structured(cls), sections)
        params = OmegaConf.to_object(merged)
        params.validate()
        return params

    def validate(self):
        """Fail fast on configurations no stencil can handle."""
        dim = self.geometry.dim
        if dim not in (2, 3):
            raise ConfigurationError(f"Geometry dimension must be 2 or 3, got {dim}")
        for name in ("size", "length", "stretch"):
            if len(getattr(self.geometry, name)) < dim:
                raise ConfigurationError(f"geometry.{name} needs {dim} entries")
        if any(n < 1 for n in self.geometry.size[:dim]):
            raise ConfigurationError(f"Grid size must be positive, got {self.geometry.size[:dim]}")
        if len(self.parallel.num_processors) < dim or any(p < 1 for p in self.parallel.num_processors[:dim]):
            raise ConfigurationError(
                f"parallel.num_processors needs {dim} positive entries, got {self.parallel.num_processors}"
            )
        if self.geometry.mesh not in ("uniform", "stretched"):
            raise ConfigurationError(f"Unknown mesh kind '{self.geometry.mesh}'")
        if self.simulation.scenario not in SCENARIOS:
            raise ConfigurationError(
                f"Unknown scenario '{self.simulation.scenario}', expected one of {SCENARIOS}"
            )
        if self.solver.min_iterations > self.solver.max_iterations:
            raise ConfigurationError("solver.min_iterations exceeds solver.max_iterations")

    def _flat(self) -> dict:
        flat = pd.json_normalize(asdict(self), sep=".").iloc[0].to_dict()
        out = {}
        for key, value in flat.items():
            if isinstance(value, Enum):
                value = value.name
            elif isinstance(value, list):
                value = ",".join(str(v) for v in value)
            out[key] = value
        return out

    def to_mlflow(self) -> dict:
        """Flatten to ``section.key -> scalar`` for ``mlflow.log_params``."""
        return self._flat()

    def to_dataframe(self):
        return pd.DataFrame([self._flat()])


@dataclass(frozen=True)
class ProcessIdentity:
    """Rank and communicator size of this process.

    Queried once at startup and passed explicitly to every component that
    needs it.
    """

    rank: int = 0
    size: int = 1

    @classmethod
    def serial(cls) -> "ProcessIdentity":
        return cls(rank=0, size=1)

    @classmethod
    def from_mpi(cls, comm=None) -> "ProcessIdentity":
        if comm is None:
            from mpi4py import MPI

            comm = MPI.COMM_WORLD
        return cls(rank=comm.Get_rank(), size=comm.Get_size())


# ========================================================
# Metrics (Output Results)
# ========================================================


@dataclass
class Metrics:
    """Simulation metrics - output results computed during/after the run."""

    steps: int = 0
    final_time: float = 0.0
    wall_time_seconds: float = 0.0
    pressure_iterations: int = 0
    unconverged_solves: int = 0
    final_pressure_error: float = float("inf")
    max_velocity: float = 0.0

    def to_mlflow(self) -> dict:
        return {k: float(v) for k, v in asdict(self).items()}

    def to_dataframe(self):
        return pd.DataFrame([asdict(self)])


# ========================================================
# Time Series (Per-step History)
# ========================================================


@dataclass
class TimeSeries:
    """History with one value per time step."""

    time: List[float] = field(default_factory=list)
    dt: List[float] = field(default_factory=list)
    pressure_iterations: List[int] = field(default_factory=list)
    pressure_error: List[float] = field(default_factory=list)
    max_velocity: List[float] = field(default_factory=list)

    def append(self, time, dt, iterations, error, max_velocity):
        self.time.append(time)
        self.dt.append(dt)
        self.pressure_iterations.append(iterations)
        self.pressure_error.append(error)
        self.max_velocity.append(max_velocity)

    def __len__(self):
        return len(self.time)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to DataFrame with one row per step."""
        return pd.DataFrame(asdict(self))

    def to_mlflow_batch(self):
        """Per-step metrics as ``mlflow.entities.Metric`` for ``log_batch``."""
        from mlflow.entities import Metric

        batch = []
        for step, row in self.to_dataframe().iterrows():
            for key in ("dt", "pressure_iterations", "pressure_error", "max_velocity"):
                batch.append(Metric(key=key, value=float(row[key]), timestamp=0, step=int(step)))
        return batch
