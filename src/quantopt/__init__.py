# quantopt - Differential Evolution and Longstaff-Schwartz regression
# Public API

# Data model & errors
from .core import NodeData, Candidate, CostResult, evaluate_cost, WORST_COST
from .errors import ConfigurationError, InsufficientDataError, UnknownVariantError

# Numerical collaborators
from .rng import MersenneTwisterUniformRng
from .linalg import svd_solve, svd_rank
from .statistics import (
    GeneralStatistics, SequenceStatistics, Histogram, HistogramAlgorithm,
)

# Longstaff-Schwartz regression
from .basis import PolynomialFamily, path_basis_system, evaluate_basis
from .processes import gbm_paths
from .longstaff_schwartz import (
    LongstaffSchwartzResult, longstaff_schwartz_regression,
    apply_exercise_strategy, simulation_data_from_paths,
)

# Optimization
from .optimization import (
    Constraint, NoConstraint, PositiveConstraint, BoundaryConstraint,
    NonhomogeneousBoundaryConstraint, Problem,
    EndCriteria, EndCriteriaState, EndCriteriaType,
)
from .differential_evolution import (
    Strategy, CrossoverType, Configuration, DifferentialEvolution,
    mutation_probabilities,
)

# Calibration
from .calibration import (
    CalibrationErrorType, VolatilityType, CalibrationHelper,
    calibration_problem, calibrate,
)

__all__ = [
    # Data model & errors
    "NodeData", "Candidate", "CostResult", "evaluate_cost", "WORST_COST",
    "ConfigurationError", "InsufficientDataError", "UnknownVariantError",
    # Numerical collaborators
    "MersenneTwisterUniformRng", "svd_solve", "svd_rank",
    "GeneralStatistics", "SequenceStatistics", "Histogram", "HistogramAlgorithm",
    # Longstaff-Schwartz
    "PolynomialFamily", "path_basis_system", "evaluate_basis", "gbm_paths",
    "LongstaffSchwartzResult", "longstaff_schwartz_regression",
    "apply_exercise_strategy", "simulation_data_from_paths",
    # Optimization
    "Constraint", "NoConstraint", "PositiveConstraint", "BoundaryConstraint",
    "NonhomogeneousBoundaryConstraint", "Problem",
    "EndCriteria", "EndCriteriaState", "EndCriteriaType",
    "Strategy", "CrossoverType", "Configuration", "DifferentialEvolution",
    "mutation_probabilities",
    # Calibration
    "CalibrationErrorType", "VolatilityType", "CalibrationHelper",
    "calibration_problem", "calibrate",
]

__version__ = "0.1.0"
