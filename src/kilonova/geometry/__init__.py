"""Geometry module: the log-radial block mesh and its moving boundaries."""

from kilonova.geometry.mesh import Block, BoundaryMotion, BoundaryStatus, Mesh, MeshSnapshot

__all__ = ["Block", "BoundaryMotion", "BoundaryStatus", "Mesh", "MeshSnapshot"]
