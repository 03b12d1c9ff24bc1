"""Domain decomposition and halo exchange."""

from .decomposition import (
    NO_NEIGHBOR,
    Decomposition,
    indices_to_rank,
    neighbor_rank,
    rank_to_indices,
    split_sizes,
)
from .halo import (
    HaloExchanger,
    MPIExchanger,
    SerialExchanger,
    create_exchanger,
    fill_buffers,
    read_buffers,
)

__all__ = [
    "NO_NEIGHBOR",
    "Decomposition",
    "HaloExchanger",
    "MPIExchanger",
    "SerialExchanger",
    "create_exchanger",
    "fill_buffers",
    "indices_to_rank",
    "neighbor_rank",
    "rank_to_indices",
    "read_buffers",
    "split_sizes",
]
