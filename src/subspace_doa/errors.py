"""
Error taxonomy for the DOA estimation engine

- InvalidParameters: bad user input, raised before any computation
- AlgebraError: internal invariant violations (fatal, never retried)
- InsufficientRank: subspace split impossible for the array size
- ScoringError: RMSE requested on mismatched sequences

Root selection shortfalls and degenerate MUSIC spectra are recovered
locally and reported through warning codes, not exceptions.
"""


class DoaError(Exception):
    """Base class for engine errors"""


class InvalidParameters(DoaError, ValueError):
    """Parameters rejected at the validation boundary"""


class AlgebraError(DoaError):
    """Complex algebra invariant violated"""


class DimensionMismatch(AlgebraError):
    """Operand shapes are incompatible"""


class NotHermitian(AlgebraError):
    """Matrix expected to be Hermitian is not"""


class InsufficientRank(DoaError):
    """Not enough sensors to leave a noise subspace"""


class ScoringError(DoaError, ValueError):
    """Estimated and true angle sequences cannot be paired"""


# Warning codes carried on results
ROOT_SELECTION_FAILURE = "root_selection_failure"
PEAK_SHORTFALL = "peak_shortfall"
