"""Core application components."""

from .simulation import Simulation, SimulationState
from .application import Application

__all__ = ["Simulation", "SimulationState", "Application"]
