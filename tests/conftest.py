"""Pytest configuration and fixtures for the Navier-Stokes stencil tests."""

import collections
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from nsfd.datastructures import Parameters, ProcessIdentity  # noqa: E402
from nsfd.flowfield import FlowField, build_flags  # noqa: E402
from nsfd.meshing import create_meshsize  # noqa: E402
from nsfd.parallel import Decomposition  # noqa: E402


def make_parameters(dim=2, size=None, length=None, scenario="cavity"):
    """Parameters for a small single-process run."""
    params = Parameters()
    params.geometry.dim = dim
    params.geometry.size = list(size or ([8, 8, 1] if dim == 2 else [4, 4, 4]))
    if len(params.geometry.size) == 2:
        params.geometry.size.append(1)
    params.geometry.length = list(length or [1.0, 1.0, 1.0])
    if len(params.geometry.length) == 2:
        params.geometry.length.append(1.0)
    params.simulation.scenario = scenario
    return params


class Setup:
    """Decomposition, meshsize, flow field and spacing arrays of one process."""

    def __init__(self, params, identity=None):
        self.params = params
        self.identity = identity or ProcessIdentity.serial()
        self.decomposition = Decomposition.create(params, self.identity)
        self.meshsize = create_meshsize(params, self.decomposition)
        self.field = FlowField(params, self.decomposition)
        build_flags(params, self.field, self.meshsize)
        self.spacing = self.meshsize.spacing_arrays(self.field.cells)


@pytest.fixture
def parameters_2d():
    """8x8 unit cavity."""
    return make_parameters(dim=2)


@pytest.fixture
def parameters_3d():
    """4x4x4 unit cube."""
    return make_parameters(dim=3)


@pytest.fixture
def setup_2d(parameters_2d):
    return Setup(parameters_2d)


@pytest.fixture
def setup_3d(parameters_3d):
    return Setup(parameters_3d)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


class ThreadedWorld:
    """In-process stand-in for an MPI world whose ranks run as threads.

    Ranks take turns: each holds ``lock`` while it computes and releases it
    only while waiting for a message, so numba kernels never run
    concurrently. Messages are queued per ``(source, dest, tag)``.
    """

    PROC_NULL = -2

    def __init__(self, size, timeout=60.0):
        self.size = size
        self.timeout = timeout
        self.lock = threading.Condition()
        self.mail = collections.defaultdict(collections.deque)

    def comm(self, rank):
        return ThreadedComm(self, rank)

    def run(self, *tasks):
        """Run one callable per rank in its own thread and return their results."""

        def turn(task):
            with self.lock:
                return task()

        with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
            futures = [pool.submit(turn, task) for task in tasks]
            return [future.result() for future in futures]


class ThreadedComm:
    """The mpi4py calls used by the solver, for one rank of a ``ThreadedWorld``."""

    def __init__(self, world, rank):
        self.world = world
        self.rank = rank

    def Get_rank(self):
        return self.rank

    def Get_size(self):
        return self.world.size

    def _send(self, obj, dest, tag):
        self.world.mail[(self.rank, dest, tag)].append(obj)
        self.world.lock.notify_all()

    def _recv(self, source, tag):
        box = self.world.mail[(source, self.rank, tag)]
        if not self.world.lock.wait_for(lambda: len(box) > 0, timeout=self.world.timeout):
            raise TimeoutError(f"Rank {self.rank} got nothing from rank {source} with tag {tag}")
        return box.popleft()

    def Sendrecv(self, sendbuf, dest, sendtag, recvbuf, source, recvtag):
        if dest != self.world.PROC_NULL:
            self._send(np.array(sendbuf, copy=True), dest, sendtag)
        if source != self.world.PROC_NULL:
            recvbuf[...] = self._recv(source, recvtag)

    def gather(self, obj, root=0):
        if self.rank != root:
            self._send(obj, root, -1)
            return None
        return [obj if r == root else self._recv(r, -1) for r in range(self.world.size)]

    def scatter(self, objs, root=0):
        if self.rank == root:
            for r, obj in enumerate(objs):
                if r != root:
                    self._send(obj, r, -2)
            return objs[root]
        return self._recv(root, -2)

    def allgather(self, obj):
        for r in range(self.world.size):
            if r != self.rank:
                self._send(obj, r, -3)
        return [obj if r == self.rank else self._recv(r, -3) for r in range(self.world.size)]
