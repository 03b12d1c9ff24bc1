"""One-layer halo exchange of field quantities between processes.

Per axis the field holds ghost layers ``0, 1`` on the low side and ``n+2``
on the high side. The first inner layer (``2``) goes to the low neighbour,
which stores it in its high ghost ``n+2``; the last inner layer (``n+1``)
goes to the high neighbour, which stores it in its low ghost ``1``.
Slabs span the whole cross-section, ghosts included, so exchanging the axes
one after the other also fills edge and corner ghosts.
"""

import logging
from abc import ABC, abstractmethod

import numpy as np

from ..datastructures import BoundaryType
from ..flowfield import Wall
from .decomposition import NO_NEIGHBOR

log = logging.getLogger(__name__)

QUANTITIES = ("pressure", "velocity")


def _extent(field, axis):
    return (field.nx, field.ny, field.nz)[axis]


# Layer sent towards the neighbour behind each wall, and layer written with
# what arrives from it.
_SEND_LAYER = {
    Wall.LEFT: lambda n: 2,
    Wall.RIGHT: lambda n: n + 1,
    Wall.BOTTOM: lambda n: 2,
    Wall.TOP: lambda n: n + 1,
    Wall.FRONT: lambda n: 2,
    Wall.BACK: lambda n: n + 1,
}

_RECV_LAYER = {
    Wall.LEFT: lambda n: 1,
    Wall.RIGHT: lambda n: n + 2,
    Wall.BOTTOM: lambda n: 1,
    Wall.TOP: lambda n: n + 2,
    Wall.FRONT: lambda n: 1,
    Wall.BACK: lambda n: n + 2,
}


def _layer_index(axis, layer):
    index = [slice(None)] * 3
    index[axis] = layer
    return tuple(index)


def fill_buffers(field, wall, quantities=QUANTITIES):
    """Copy the layer destined for the neighbour behind ``wall`` into new buffers."""
    layer = _SEND_LAYER[wall](_extent(field, wall.axis))
    index = _layer_index(wall.axis, layer)
    return {name: np.ascontiguousarray(getattr(field, name)[index]) for name in quantities}


def read_buffers(field, wall, buffers):
    """Write buffers received from the neighbour behind ``wall`` into the ghost layer."""
    layer = _RECV_LAYER[wall](_extent(field, wall.axis))
    index = _layer_index(wall.axis, layer)
    for name, buffer in buffers.items():
        getattr(field, name)[index] = buffer


class HaloExchanger(ABC):
    """Exchanges ghost layers of a ``FlowField``."""

    @abstractmethod
    def exchange(self, field, quantities=QUANTITIES):
        """Fill the ghost layers of ``quantities`` from the neighbours."""

    def exchange_pressure(self, field):
        self.exchange(field, ("pressure",))

    def exchange_velocity(self, field):
        self.exchange(field, ("velocity",))

    def exchange_fgh(self, field):
        self.exchange(field, ("fgh",))


class SerialExchanger(HaloExchanger):
    """Single process: only periodic walls exchange, with the process itself.

    Velocity on periodic walls is handled by the boundary stencils, so only
    the pressure is copied here.
    """

    def __init__(self, parameters, decomposition):
        self.dim = parameters.dim
        self.periodic_axes = []
        for axis, (low, high) in enumerate(((Wall.LEFT, Wall.RIGHT), (Wall.BOTTOM, Wall.TOP), (Wall.FRONT, Wall.BACK))):
            if axis >= self.dim:
                break
            kinds = [getattr(parameters.walls, w.name.lower()).type for w in (low, high)]
            alone = all(decomposition.face_neighbor(axis, w.side) == NO_NEIGHBOR for w in (low, high))
            if alone and all(k == BoundaryType.PERIODIC for k in kinds):
                self.periodic_axes.append((low, high))

    def exchange(self, field, quantities=QUANTITIES):
        if "pressure" not in quantities:
            return
        for low, high in self.periodic_axes:
            # What leaves through one wall enters through the opposite one
            to_low = fill_buffers(field, high, ("pressure",))
            to_high = fill_buffers(field, low, ("pressure",))
            read_buffers(field, low, to_low)
            read_buffers(field, high, to_high)


class MPIExchanger(HaloExchanger):
    """Blocking ``Sendrecv`` exchange with the face neighbours of the decomposition.

    Parameters
    ----------
    decomposition : Decomposition
        Provides the face neighbour ranks.
    comm : mpi4py.MPI.Comm, optional
        Communicator; defaults to ``MPI.COMM_WORLD``.
    proc_null : int, optional
        Rank used for missing neighbours; defaults to ``MPI.PROC_NULL``.
    """

    def __init__(self, decomposition, comm=None, proc_null=None):
        if comm is None or proc_null is None:
            from mpi4py import MPI

            comm = MPI.COMM_WORLD if comm is None else comm
            proc_null = MPI.PROC_NULL if proc_null is None else proc_null
        self.comm = comm
        self.proc_null = proc_null
        self.decomposition = decomposition

    def _rank(self, wall):
        rank = self.decomposition.face_neighbor(wall.axis, wall.side)
        return self.proc_null if rank == NO_NEIGHBOR else rank

    def _sendrecv(self, field, name, send_wall, recv_wall, tag):
        send = fill_buffers(field, send_wall, (name,))[name]
        recv = np.empty_like(send)
        self.comm.Sendrecv(
            sendbuf=send,
            dest=self._rank(send_wall),
            sendtag=tag,
            recvbuf=recv,
            source=self._rank(recv_wall),
            recvtag=tag,
        )
        if self.decomposition.face_neighbor(recv_wall.axis, recv_wall.side) != NO_NEIGHBOR:
            read_buffers(field, recv_wall, {name: recv})

    def exchange(self, field, quantities=QUANTITIES):
        pairs = ((Wall.LEFT, Wall.RIGHT), (Wall.BOTTOM, Wall.TOP), (Wall.FRONT, Wall.BACK))
        for axis, (low, high) in enumerate(pairs[: field.dim]):
            for n, name in enumerate(quantities):
                tag = 10 * axis + 2 * n
                # Towards low neighbour, arriving from high neighbour
                self._sendrecv(field, name, low, high, tag)
                # Towards high neighbour, arriving from low neighbour
                self._sendrecv(field, name, high, low, tag + 1)
        log.debug(f"Rank {self.decomposition.rank} exchanged {', '.join(quantities)}")


def create_exchanger(parameters, decomposition, identity, comm=None, proc_null=None):
    """Serial exchanger for a single process, MPI otherwise."""
    if identity.size == 1:
        return SerialExchanger(parameters, decomposition)
    return MPIExchanger(decomposition, comm=comm, proc_null=proc_null)
