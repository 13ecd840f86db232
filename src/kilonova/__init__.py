"""kilonova: 1D relativistic hydrodynamics with excising radial boundaries."""

__version__ = "0.1.0"
