"""Time stepping driver.

Wires decomposition, mesh, flow field, stencils and the pressure solver of
one process together and advances the flow to the final time. In a
decomposed run every rank drives its own ``Simulation``; the time step, halo
exchanges and pressure solve are collective.
"""

import logging
import time

import mlflow
import numpy as np

from .datastructures import Metrics, ProcessIdentity, TimeSeries
from .flowfield import FlowField, build_flags
from .meshing import create_meshsize
from .output import VTKWriter
from .parallel import Decomposition, create_exchanger
from .solvers import compute_pressure_rhs, create_pressure_solver, update_velocity
from .stencils import BoundaryConditions, DistanceStencil, compute_eddy_viscosity, compute_fgh

log = logging.getLogger(__name__)


def stable_timestep(parameters, meshsize, max_velocity):
    """Time step from the diffusive and convective (CFL) limits.

    Returns ``parameters.timestep.dt`` unchanged when ``tau <= 0``.
    """
    ts = parameters.timestep
    if ts.tau <= 0:
        return ts.dt
    dim = parameters.dim
    min_spacing = [meshsize.min_spacing(a) for a in range(dim)]
    factor = sum(1.0 / (h * h) for h in min_spacing)
    limit = parameters.flow.Re / 2.0 / factor
    for h, u in zip(min_spacing, max_velocity[:dim]):
        if u > 0:
            limit = min(limit, h / u)
    return ts.tau * limit


class Simulation:
    """Navier-Stokes simulation of the local subdomain.

    Parameters
    ----------
    parameters : Parameters
        Validated configuration.
    identity : ProcessIdentity, optional
        Rank and size of this process; serial if omitted.
    comm : mpi4py.MPI.Comm, optional
        Communicator of a decomposed run; defaults to ``MPI.COMM_WORLD``.
    proc_null : int, optional
        Rank standing for a missing neighbour; defaults to ``MPI.PROC_NULL``.
    """

    def __init__(self, parameters, identity=None, comm=None, proc_null=None):
        self.parameters = parameters
        self.identity = identity or ProcessIdentity.serial()
        if self.identity.size > 1 and comm is None:
            from mpi4py import MPI

            comm, proc_null = MPI.COMM_WORLD, MPI.PROC_NULL
        self.comm = comm if self.identity.size > 1 else None
        self.decomposition = Decomposition.create(parameters, self.identity)
        self.meshsize = create_meshsize(parameters, self.decomposition)
        self.field = FlowField(parameters, self.decomposition)
        build_flags(parameters, self.field, self.meshsize)
        self.spacing = self.meshsize.spacing_arrays(self.field.cells)

        self.boundaries = BoundaryConditions(parameters, self.decomposition)
        self.exchanger = create_exchanger(
            parameters, self.decomposition, self.identity, comm=self.comm, proc_null=proc_null
        )
        self.pressure_solver = create_pressure_solver(
            parameters, self.meshsize, self.field, self.decomposition, self.identity, comm=self.comm
        )

        self.distance = DistanceStencil(parameters, self.decomposition, self.meshsize, self.field.cells)
        if parameters.turbulence.on:
            self.distance.compute_wall_distance(self.field)

        self.vtk = VTKWriter(parameters, self.meshsize, self.identity) if parameters.vtk.enabled else None

        self.time = 0.0
        self.dt = parameters.timestep.dt
        self.metrics = Metrics()
        self.time_series = TimeSeries()

        self.boundaries.apply_velocity(self.field)

    def compute_timestep(self):
        max_velocity = self.field.max_velocity()
        if self.comm is not None:
            max_velocity = np.max(self.comm.allgather(max_velocity), axis=0)
        self.dt = stable_timestep(self.parameters, self.meshsize, max_velocity)
        return self.dt

    def step(self):
        """Advance one time step.

        Returns
        -------
        SolveInfo
            Outcome of the pressure solve of this step.
        """
        field, dt = self.field, self.compute_timestep()

        compute_eddy_viscosity(field, self.parameters, self.spacing)
        if self.parameters.turbulence.on:
            self.exchanger.exchange(field, ("eddy_viscosity",))
        compute_fgh(field, self.parameters, self.spacing, dt=dt)
        self.boundaries.apply_fgh(field)
        self.exchanger.exchange_fgh(field)

        compute_pressure_rhs(field, self.spacing, dt)
        info = self.pressure_solver.solve(field)
        self.exchanger.exchange_pressure(field)

        update_velocity(field, self.spacing, dt)
        self.exchanger.exchange_velocity(field)
        self.boundaries.apply_velocity(field)

        self.time += dt
        return info

    def run(self):
        """Advance to ``timestep.final_time``, recording metrics and writing VTK output."""
        final_time = self.parameters.timestep.final_time
        interval = self.parameters.vtk.interval
        next_output = interval

        time_start = time.time()
        mlflow_time = 0.0
        unconverged = 0
        info = None

        if self.vtk is not None:
            self.vtk.write(self.field, self.time)

        while self.time < final_time:
            info = self.step()
            unconverged += 0 if info.converged else 1
            umax = float(np.max(self.field.max_velocity()))
            self.time_series.append(self.time, self.dt, info.iterations, info.error, umax)
            n = len(self.time_series)

            if n % 50 == 0:
                log.info(f"Step {n}: t={self.time:.4f}, dt={self.dt:.3e}, umax={umax:.4e}")
                if mlflow.active_run():
                    t_log_start = time.time()
                    mlflow.log_metrics(
                        {"time": self.time, "dt": self.dt, "max_velocity": umax, "pressure_error": info.error},
                        step=n,
                    )
                    mlflow_time += time.time() - t_log_start

            if self.vtk is not None and self.time >= next_output:
                self.vtk.write(self.field, self.time)
                next_output += interval

        wall_time = time.time() - time_start - mlflow_time
        self.metrics = Metrics(
            steps=len(self.time_series),
            final_time=self.time,
            wall_time_seconds=wall_time,
            pressure_iterations=int(sum(self.time_series.pressure_iterations)),
            unconverged_solves=unconverged,
            final_pressure_error=info.error if info is not None else float("inf"),
            max_velocity=float(np.max(self.field.max_velocity())),
        )
        log.info(f"Simulation finished: {self.metrics.steps} steps in {wall_time:.2f}s")
        return self.metrics
