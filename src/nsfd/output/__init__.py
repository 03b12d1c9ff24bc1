from .vtk import VTKWriter, build_grid

__all__ = ["VTKWriter", "build_grid"]
