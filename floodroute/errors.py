"""
Errors Module – Failures the route costing engine surfaces to its callers.

Nothing here is retried or swallowed by the engine: a route or edge that
raises one of these simply could not be assessed.
"""


class FloodRouteError(Exception):
    """Base error for route risk assessment."""


class EmptyRouteError(FloodRouteError, ValueError):
    """Raised when a route path has no points."""


class PredictionError(FloodRouteError):
    """Raised when the risk prediction backend failed or was unreachable."""


class DegenerateGeometryError(FloodRouteError, ValueError):
    """Raised when an affine transform cannot be inverted (zero determinant)."""
