"""
Simulation package - In-process transfer simulation and sweeps.

Contains:
- Impaired link model
- Single-threaded simulator driving both engines
- Batch runner for loss-rate sweeps
"""

from .link import ImpairedLink, Direction
from .simulator import Simulator, SimulatorConfig
from .runner import BatchRunner

__all__ = [
    'ImpairedLink',
    'Direction',
    'Simulator',
    'SimulatorConfig',
    'BatchRunner'
]
