"""Block decomposition of the global grid over a Cartesian process grid.

Ranks are mapped to process-grid indices by mixed radix,
``rank = i + j*Px + k*Px*Py``. Each axis is split into contiguous blocks whose
sizes differ by at most one cell, the remainder going to the lowest indices.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np

from ..errors import ConfigurationError

log = logging.getLogger(__name__)

NO_NEIGHBOR = -1


def rank_to_indices(rank: int, num_processors) -> Tuple[int, ...]:
    """Process-grid index of ``rank`` (one entry per axis of ``num_processors``)."""
    px = num_processors[0]
    py = num_processors[1]
    indices = (rank % px, (rank // px) % py)
    if len(num_processors) == 3:
        indices += (rank // (px * py),)
    return indices


def indices_to_rank(indices, num_processors) -> int:
    rank = indices[0] + indices[1] * num_processors[0]
    if len(num_processors) == 3:
        rank += indices[2] * num_processors[0] * num_processors[1]
    return rank


def neighbor_rank(indices, offset, num_processors) -> int:
    """Rank of the process at ``indices + offset`` or ``NO_NEIGHBOR``."""
    candidate = tuple(i + o for i, o in zip(indices, offset))
    for c, p in zip(candidate, num_processors):
        if c < 0 or c >= p:
            return NO_NEIGHBOR
    return indices_to_rank(candidate, num_processors)


def split_sizes(global_size: int, processes: int) -> Tuple[int, ...]:
    """Block sizes along one axis; the first ``global_size % processes`` get one extra cell."""
    base, remainder = divmod(global_size, processes)
    return tuple(base + 1 if j < remainder else base for j in range(processes))


def padded_sizes(sizes) -> Tuple[int, ...]:
    """Size table with one extra ghost cell on the first and last block.

    A single block on an axis receives both cells.
    """
    padded = list(sizes)
    padded[0] += 1
    padded[-1] += 1
    return tuple(padded)


@dataclass(frozen=True)
class Decomposition:
    """Geometry of this process's subdomain and its neighbourhood.

    All per-axis tuples have ``dim`` entries. ``sizes`` holds, per axis, the
    size table of every process along that axis with the edge padding used
    for the pressure ghost layout; ``local_size`` and ``first_corner`` are
    derived from the unpadded split.
    """

    dim: int
    rank: int
    num_processors: Tuple[int, ...]
    indices: Tuple[int, ...]
    global_size: Tuple[int, ...]
    local_size: Tuple[int, ...]
    first_corner: Tuple[int, ...]
    sizes: Tuple[Tuple[int, ...], ...]
    neighbors: Dict[Tuple[int, ...], int]

    @classmethod
    def create(cls, parameters, identity) -> "Decomposition":
        dim = parameters.dim
        if dim not in (2, 3):
            raise ConfigurationError(f"Geometry dimension must be 2 or 3, got {dim}")

        num_processors = tuple(int(p) for p in parameters.parallel.num_processors[:dim])
        expected = int(np.prod(num_processors))
        if expected != identity.size:
            raise ConfigurationError(
                f"Process grid {num_processors} needs {expected} processes, "
                f"but {identity.size} were launched"
            )
        if not 0 <= identity.rank < identity.size:
            raise ConfigurationError(f"Rank {identity.rank} outside [0, {identity.size})")

        global_size = tuple(int(n) for n in parameters.geometry.size[:dim])
        indices = rank_to_indices(identity.rank, num_processors)

        splits = [split_sizes(g, p) for g, p in zip(global_size, num_processors)]
        local_size = tuple(split[idx] for split, idx in zip(splits, indices))
        first_corner = tuple(sum(split[:idx]) for split, idx in zip(splits, indices))
        # Edge padding is applied only after local size and corner are taken
        sizes = tuple(padded_sizes(split) for split in splits)

        neighbors = {
            offset: neighbor_rank(indices, offset, num_processors)
            for offset in itertools.product((-1, 0, 1), repeat=dim)
            if any(offset)
        }

        decomposition = cls(
            dim=dim,
            rank=identity.rank,
            num_processors=num_processors,
            indices=indices,
            global_size=global_size,
            local_size=local_size,
            first_corner=first_corner,
            sizes=sizes,
            neighbors=neighbors,
        )
        log.debug(
            f"Rank {identity.rank}: indices={indices}, local_size={local_size}, "
            f"first_corner={first_corner}, faces={decomposition.face_neighbors()}"
        )
        return decomposition

    def neighbor(self, offset) -> int:
        """Rank at a process-grid offset; z entries beyond ``dim`` must be zero."""
        offset = tuple(offset)
        if len(offset) > self.dim:
            if any(offset[self.dim:]):
                return NO_NEIGHBOR
            offset = offset[: self.dim]
        if not any(offset):
            return self.rank
        return self.neighbors[offset]

    def face_neighbor(self, axis: int, side: int) -> int:
        """Neighbour across the low (``side=-1``) or high (``side=+1``) face of ``axis``."""
        if axis >= self.dim:
            return NO_NEIGHBOR
        offset = [0] * self.dim
        offset[axis] = side
        return self.neighbors[tuple(offset)]

    def face_neighbors(self) -> Dict[str, int]:
        return {
            "left": self.left,
            "right": self.right,
            "bottom": self.bottom,
            "top": self.top,
            "front": self.front,
            "back": self.back,
        }

    @property
    def left(self):
        return self.face_neighbor(0, -1)

    @property
    def right(self):
        return self.face_neighbor(0, 1)

    @property
    def bottom(self):
        return self.face_neighbor(1, -1)

    @property
    def top(self):
        return self.face_neighbor(1, 1)

    @property
    def front(self):
        return self.face_neighbor(2, -1)

    @property
    def back(self):
        return self.face_neighbor(2, 1)

    # In-plane diagonals (x-y plane)

    @property
    def left_bottom(self):
        return self.neighbor((-1, -1, 0))

    @property
    def right_bottom(self):
        return self.neighbor((1, -1, 0))

    @property
    def left_top(self):
        return self.neighbor((-1, 1, 0))

    @property
    def right_top(self):
        return self.neighbor((1, 1, 0))

    def own_size_entry(self, axis: int) -> int:
        """This process's entry in the padded size table of ``axis``."""
        return self.sizes[axis][self.indices[axis]]
