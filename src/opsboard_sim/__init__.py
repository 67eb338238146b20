"""Ops Board Simulator - synthetic machine status, drift and downtime data."""

__version__ = "0.1.0"

from .simulator import Simulator
from .config import Config
from .generators import MachineStatus, generate_timeline_events

__all__ = ["Simulator", "Config", "MachineStatus", "generate_timeline_events", "__version__"]
