# errors.py
# Exceptions raised by the guidance core.


class NavigationError(Exception):
    """Base class for navigation failures."""
    pass


class RoutingError(NavigationError):
    """The routing provider could not produce a route."""
    pass


class LocationUnavailableError(NavigationError):
    """The location source stopped delivering fixes (permission denied, no signal, ...)."""
    pass
