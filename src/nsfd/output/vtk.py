"""VTK output of the cell-centred pressure and velocity.

Each process writes its own inner cells as a ``pyvista.RectilinearGrid``
placed at its first corner. Cell data is enumerated with x fastest, then y,
then z.
"""

import logging
from pathlib import Path

import numpy as np
import pyvista as pv

log = logging.getLogger(__name__)


def build_grid(field, meshsize) -> pv.RectilinearGrid:
    """Rectilinear grid of the inner cells with ``pressure`` and ``velocity`` cell data."""
    local = (field.nx, field.ny, field.nz)
    x = meshsize.edges(0, local[0])
    y = meshsize.edges(1, local[1])
    z = meshsize.edges(2, local[2]) if field.dim == 3 else np.zeros(1)
    grid = pv.RectilinearGrid(x, y, z)

    pressure = field.pressure[field.inner_slice()]
    velocity = field.cell_centred_velocity()
    grid.cell_data["pressure"] = pressure.ravel(order="F").copy()
    grid.cell_data["velocity"] = velocity.reshape(-1, 3, order="F").copy()
    return grid


class VTKWriter:
    """Writes ``<prefix>_<rank>_<time in microseconds>.vtr`` files.

    Parameters
    ----------
    parameters : Parameters
        ``vtk`` section gives prefix and output directory.
    meshsize : Meshsize
        Supplies the cell edges.
    identity : ProcessIdentity
        Rank used in the file name.
    """

    def __init__(self, parameters, meshsize, identity):
        self.prefix = parameters.vtk.prefix
        self.output_dir = Path(parameters.vtk.output_dir)
        self.meshsize = meshsize
        self.rank = identity.rank
        self.written = []

    def filename(self, time) -> Path:
        return self.output_dir / f"{self.prefix}_{self.rank}_{int(round(time * 1e6))}.vtr"

    def write(self, field, time) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.filename(time)
        build_grid(field, self.meshsize).save(str(path))
        self.written.append(path)
        log.info(f"Wrote {path}")
        return path
