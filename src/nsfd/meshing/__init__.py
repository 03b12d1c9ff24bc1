from .meshsize import (
    Meshsize,
    RectilinearMeshsize,
    TanhStretchedMeshsize,
    UniformMeshsize,
    create_meshsize,
)

__all__ = [
    "Meshsize",
    "RectilinearMeshsize",
    "TanhStretchedMeshsize",
    "UniformMeshsize",
    "create_meshsize",
]
