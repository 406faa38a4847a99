"""WFES: exact absorption statistics of the diploid Wright-Fisher model.

Builds the sparse generator matrix (I - Q) over the 2N-1 transient allele
counts and solves it directly for:
  - extinction and fixation probabilities per starting count
  - expected generations spent at each count, starting from one copy
  - conditional times to extinction and to fixation
"""

__version__ = "0.1.0"

from wfes.errors import MatrixAssemblyError, ParameterError, SolverError, WfesError
from wfes.model import WrightFisherAbsorbingChain, wfes
from wfes.parameters import ModelParameters
from wfes.solver import DirectSolver, SolverOptions
from wfes.statistics import Results

__all__ = [
    "__version__",
    "DirectSolver",
    "MatrixAssemblyError",
    "ModelParameters",
    "ParameterError",
    "Results",
    "SolverError",
    "SolverOptions",
    "WfesError",
    "WrightFisherAbsorbingChain",
    "wfes",
]
