"""Exception hierarchy for the boids engine."""


class BoidsError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(BoidsError, ValueError):
    """Raised when simulation parameters are invalid.

    The live configuration is never touched when this is raised.
    """

    def __init__(self, param_name: str = None, reason: str = None):
        # raise ConfigurationError("message") or ConfigurationError("max_speed", "must be > 0")
        if param_name and reason:
            message = f"Invalid value for '{param_name}': {reason}"
            self.param_name = param_name
        else:
            message = param_name if param_name else "Invalid configuration"
            self.param_name = None
        super().__init__(message)


class CapacityError(BoidsError):
    """Raised when the agent count would exceed the configured hard cap."""

    def __init__(self, requested: int, capacity: int):
        self.requested = requested
        self.capacity = capacity
        super().__init__(f"Cannot hold {requested:,} agents (capacity {capacity:,})")


class SimulationStateError(BoidsError):
    """Raised when a control operation is invalid for the driver's current state."""
