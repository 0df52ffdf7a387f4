from __future__ import annotations


class LocalizationError(Exception):
    pass


class ParallelRaysError(LocalizationError, ValueError):
    """Two rays are (numerically) parallel, so they have no single closest-approach point."""
