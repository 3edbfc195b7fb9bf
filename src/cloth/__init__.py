"""
Cloth Physics Simulation Package

A real-time cape simulation using Verlet integration and iterative
distance-constraint relaxation on a regular particle grid.
"""

from .models import ClothConfig, Constraint, ConstraintType, GridParams, PinMode, StepInputs
from .solver_numpy import ClothSolver, construct, step

__version__ = "0.1.0"
__author__ = "Frank1o3"

__all__ = [
    "ClothConfig",
    "ClothSolver",
    "Constraint",
    "ConstraintType",
    "GridParams",
    "PinMode",
    "StepInputs",
    "construct",
    "step",
]
