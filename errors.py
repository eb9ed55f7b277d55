# errors.py
import numpy as np


class HeatMethodError(Exception):
    """Base class for failures of the heat-method pipeline."""


class MalformedMeshError(HeatMethodError, ValueError):
    """The mesh or its adjacency cannot be walked as a 2-manifold."""


class FactorizationError(HeatMethodError, np.linalg.LinAlgError):
    """A linear system handed to the Cholesky-type solve is not SPD."""

    def __init__(self, stage: str, reason: str):
        super().__init__(f"{stage} system: {reason}")
        self.stage = stage
        self.reason = reason
