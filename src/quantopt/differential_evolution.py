# differential_evolution.py
# Differential Evolution global minimiser.
#
# Strategy and crossover names follow Price & Storn (1997), "Differential
# Evolution - A Simple and Efficient Heuristic for Global Optimization over
# Continuous Spaces", J. Global Optimization 11, 341-359.  The
# self-adaptive weights follow Brest et al. (2006), "Self-Adapting Control
# Parameters in Differential Evolution".

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

import numpy as np

from .core import Candidate, evaluate_cost
from .errors import ConfigurationError, UnknownVariantError
from .optimization import EndCriteria, EndCriteriaState, EndCriteriaType, Problem
from .rng import MersenneTwisterUniformRng

logger = logging.getLogger(__name__)

__all__ = [
    "Strategy",
    "CrossoverType",
    "Configuration",
    "DifferentialEvolution",
    "mutation_probabilities",
]

# Brest et al.: F_l, F_u and tau_1 / tau_2
_SIZE_WEIGHT_LOWER = 0.1
_SIZE_WEIGHT_UPPER = 0.9
_SIZE_WEIGHT_CHANGE_PROB = 0.1
_CROSSOVER_CHANGE_PROB = 0.1

_JITTER_SCALE = 0.0001
_ROTATION_PROB = 0.1
_EITHER_OR_PROB = 0.5


class _NamedEnum(Enum):
    @classmethod
    def from_name(cls, name):
        """Look up a member by value or (case-insensitive) name."""
        if isinstance(name, cls):
            return name
        key = str(name).strip()
        for member in cls:
            if key.lower() == member.value or key.upper() == member.name:
                return member
        raise UnknownVariantError(f"unknown {cls.__name__}: {name!r}")


class Strategy(_NamedEnum):
    RAND1_STANDARD = "rand1_standard"
    BEST_MEMBER_WITH_JITTER = "best_member_with_jitter"
    CURRENT_TO_BEST_2_DIFFS = "current_to_best_2_diffs"
    RAND1_DIFF_WITH_PER_VECTOR_DITHER = "rand1_diff_with_per_vector_dither"
    RAND1_DIFF_WITH_DITHER = "rand1_diff_with_dither"
    EITHER_OR_WITH_OPTIMAL_RECOMBINATION = "either_or_with_optimal_recombination"
    RAND1_SELFADAPTIVE_WITH_ROTATION = "rand1_selfadaptive_with_rotation"


class CrossoverType(_NamedEnum):
    NORMAL = "normal"
    BINOMIAL = "binomial"
    EXPONENTIAL = "exponential"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Configuration:
    """Immutable Differential Evolution settings.

    Use the ``with_*`` builders to derive variants; each returns a new,
    validated instance.

    Parameters
    ----------
    strategy : Strategy
        Mutation strategy.
    crossover_type : CrossoverType
        How the stored crossover probability maps to a per-coordinate
        mutation probability.
    population_members : int
        Population size (> 0).
    stepsize_weight : float
        Differential weight F in [0, 2].
    crossover_probability : float
        CR in [0, 1].
    seed : int or None
        Seed of the uniform stream.
    apply_bounds : bool
        Reflect coordinates that leave the constraint box.
    crossover_is_adaptive : bool
        Re-randomise per-member CR each generation (probability 0.1).
    """
    strategy: Strategy = Strategy.BEST_MEMBER_WITH_JITTER
    crossover_type: CrossoverType = CrossoverType.NORMAL
    population_members: int = 100
    stepsize_weight: float = 0.2
    crossover_probability: float = 0.9
    seed: Optional[int] = 0
    apply_bounds: bool = True
    crossover_is_adaptive: bool = False

    def __post_init__(self):
        object.__setattr__(self, "strategy", Strategy.from_name(self.strategy))
        object.__setattr__(self, "crossover_type",
                           CrossoverType.from_name(self.crossover_type))
        try:
            members = int(self.population_members)
        except (TypeError, ValueError, OverflowError):
            members = None
        if members is None or members != self.population_members or members <= 0:
            raise ConfigurationError(
                f"Positive number of population members required, "
                f"got {self.population_members!r}"
            )
        object.__setattr__(self, "population_members", members)
        if not (0.0 <= self.stepsize_weight <= 2.0):
            raise ConfigurationError(
                f"Step size weight ({self.stepsize_weight}) must be in [0,2] range"
            )
        if not (0.0 <= self.crossover_probability <= 1.0):
            raise ConfigurationError(
                f"Crossover probability ({self.crossover_probability}) "
                f"must be in [0,1] range"
            )

    # --- builders ------------------------------------------------------------
    def with_strategy(self, s) -> "Configuration":
        return replace(self, strategy=s)

    def with_crossover_type(self, t) -> "Configuration":
        return replace(self, crossover_type=t)

    def with_population_members(self, n: int) -> "Configuration":
        return replace(self, population_members=n)

    def with_stepsize_weight(self, w: float) -> "Configuration":
        return replace(self, stepsize_weight=w)

    def with_crossover_probability(self, p: float) -> "Configuration":
        return replace(self, crossover_probability=p)

    def with_seed(self, s: Optional[int]) -> "Configuration":
        return replace(self, seed=s)

    def with_bounds(self, b: bool = True) -> "Configuration":
        return replace(self, apply_bounds=b)

    def with_adaptive_crossover(self, b: bool = True) -> "Configuration":
        return replace(self, crossover_is_adaptive=b)


def mutation_probabilities(crossover_probabilities, dimension: int,
                           crossover_type) -> np.ndarray:
    """Per-member probability of taking a mutant coordinate.

    * ``NORMAL``      -> ``p``
    * ``BINOMIAL``    -> ``p (1 - 1/d) + 1/d``
    * ``EXPONENTIAL`` -> ``(1 - p^d) / (d (1 - p))``, with limit 1 at ``p = 1``
    """
    p = np.asarray(crossover_probabilities, dtype=float)
    d = int(dimension)
    crossover_type = CrossoverType.from_name(crossover_type)
    if crossover_type is CrossoverType.NORMAL:
        return p.copy()
    if crossover_type is CrossoverType.BINOMIAL:
        return p * (1.0 - 1.0 / d) + 1.0 / d
    if crossover_type is CrossoverType.EXPONENTIAL:
        out = np.ones_like(p)
        below = p < 1.0
        out[below] = (1.0 - p[below] ** d) / (d * (1.0 - p[below]))
        return out
    raise UnknownVariantError(f"unknown crossover type: {crossover_type!r}")


# ---------------------------------------------------------------------------
# Optimizer
# ---------------------------------------------------------------------------
class DifferentialEvolution:
    """Population-based stochastic minimiser.

    The whole population is replaced each generation; the best candidate
    ever seen is tracked separately and written back to the problem when
    the run ends.  Cost-function failures score ``WORST_COST`` instead of
    aborting the run.

    Parameters
    ----------
    configuration : Configuration, optional
        Defaults to ``Configuration()``.
    """

    def __init__(self, configuration: Optional[Configuration] = None):
        self._config = configuration or Configuration()
        self._rng = MersenneTwisterUniformRng(self._config.seed)
        self._mutate = {
            Strategy.RAND1_STANDARD: self._rand1_standard,
            Strategy.BEST_MEMBER_WITH_JITTER: self._best_member_with_jitter,
            Strategy.CURRENT_TO_BEST_2_DIFFS: self._current_to_best_2_diffs,
            Strategy.RAND1_DIFF_WITH_PER_VECTOR_DITHER: self._rand1_per_vector_dither,
            Strategy.RAND1_DIFF_WITH_DITHER: self._rand1_dither,
            Strategy.EITHER_OR_WITH_OPTIMAL_RECOMBINATION: self._either_or,
            Strategy.RAND1_SELFADAPTIVE_WITH_ROTATION: self._rand1_selfadaptive,
        }[self._config.strategy]

        self._upper = self._lower = None
        self._size_weights = self._crossover_probs = None
        self._best: Optional[Candidate] = None
        self._values = self._costs = None
        self.history: list[float] = []

    @property
    def configuration(self) -> Configuration:
        return self._config

    @property
    def best_member(self) -> Optional[Candidate]:
        return None if self._best is None else self._best.copy()

    @property
    def population(self) -> list[Candidate]:
        """Population of the last generation, best member first."""
        if self._values is None:
            return []
        return [Candidate(v, c) for v, c in zip(self._values, self._costs)]

    # --- main loop -----------------------------------------------------------
    def minimize(self, problem: Problem,
                 end_criteria: EndCriteria) -> EndCriteriaType:
        """Minimise ``problem`` and return the reason the run stopped.

        On return ``problem.current_value`` / ``problem.function_value`` hold
        the best candidate found.

        Raises
        ------
        ConfigurationError
            If the constraint bounds are not finite or the initial value
            lies outside the constraint.
        """
        cfg = self._config
        x0 = problem.current_value
        self._upper = np.asarray(problem.constraint.upper_bound(x0), dtype=float)
        self._lower = np.asarray(problem.constraint.lower_bound(x0), dtype=float)
        with np.errstate(over="ignore"):
            width = self._upper - self._lower
        if not np.all(np.isfinite(width)) \
                or np.any(np.abs(self._upper) >= sys.float_info.max) \
                or np.any(np.abs(self._lower) >= sys.float_info.max):
            raise ConfigurationError(
                "differential evolution needs a constraint with finite bounds"
            )
        if not problem.constraint.test(x0):
            raise ConfigurationError(
                f"initial value {x0} violates the constraint"
            )

        n = cfg.population_members
        self._size_weights = np.full(n, cfg.stepsize_weight)
        self._crossover_probs = np.full(n, cfg.crossover_probability)

        values, costs = self._initial_population(problem)
        self._partial_sort(values, costs)
        self._best = Candidate(values[0], costs[0])
        self._values, self._costs = values, costs
        self.history = [self._best.cost]

        state = EndCriteriaState()
        fx_old = costs[0]
        iteration = 0
        while not end_criteria.check_max_iterations(iteration, state):
            iteration += 1
            values, costs = self._next_generation(values, problem)
            self._partial_sort(values, costs)
            if costs[0] < self._best.cost:
                self._best = Candidate(values[0], costs[0])
            self._values, self._costs = values, costs
            self.history.append(self._best.cost)
            logger.debug("generation %d: generation best %.6g, best ever %.6g",
                         iteration, costs[0], self._best.cost)

            fx_new = costs[0]
            if end_criteria.check_stationary_function_value(fx_old, fx_new, state):
                break
            fx_old = fx_new

        problem.set_current_value(self._best.values)
        problem.set_function_value(self._best.cost)
        logger.info("differential evolution stopped (%s) after %d generations, "
                    "best cost %.6g", state.type.value, iteration, self._best.cost)
        return state.type

    # --- population helpers --------------------------------------------------
    def _cost(self, problem: Problem, x: np.ndarray) -> float:
        result = evaluate_cost(problem.value, x)
        return result.or_worst()

    def _initial_population(self, problem: Problem):
        n = self._config.population_members
        d = problem.current_value.size
        values = np.empty((n, d))
        costs = np.empty(n)

        values[0] = problem.current_value
        costs[0] = self._cost(problem, values[0])
        span = self._upper - self._lower
        for j in range(1, n):
            for i in range(d):
                values[j, i] = self._lower[i] + span[i] * self._rng.next_real()
            costs[j] = self._cost(problem, values[j])
        return values, costs

    @staticmethod
    def _partial_sort(values: np.ndarray, costs: np.ndarray) -> None:
        """Move the cheapest member to slot 0, in place."""
        k = int(np.argmin(costs))
        if k != 0:
            values[[0, k]] = values[[k, 0]]
            costs[[0, k]] = costs[[k, 0]]

    def _shuffled(self, order: np.ndarray, old: np.ndarray) -> np.ndarray:
        """Shuffle ``order`` again and return the permuted copy of ``old``."""
        return old[self._rng.shuffle(order)]

    def _next_generation(self, old: np.ndarray, problem: Problem):
        mutants, mirror = self._mutate(old)
        return self._crossover(old, mutants, mirror, problem)

    # --- mutation strategies -------------------------------------------------
    # Each returns ``(mutants, mirror)``: fresh arrays shaped like ``old``.
    # Successive shuffles compound on one permutation, so every strategy
    # consumes the uniform stream in the same order.
    def _rand1_standard(self, old):
        order = np.arange(len(old))
        s1 = self._shuffled(order, old)
        s2 = self._shuffled(order, old)
        base = self._shuffled(order, old)
        F = self._config.stepsize_weight
        return base + F * (s1 - s2), s1

    def _best_member_with_jitter(self, old):
        order = np.arange(len(old))
        s1 = self._shuffled(order, old)
        base = self._shuffled(order, old)
        F = self._config.stepsize_weight
        best = self._best.values
        n, d = old.shape
        mutants = np.empty_like(old)
        for k in range(n):
            jitter = np.array([self._rng.next_real() for _ in range(d)])
            mutants[k] = best + (s1[k] - base[k]) * (_JITTER_SCALE * jitter + F)
        mirror = np.tile(best, (n, 1))
        return mutants, mirror

    def _current_to_best_2_diffs(self, old):
        order = np.arange(len(old))
        s1 = self._shuffled(order, old)
        base = self._shuffled(order, old)
        F = self._config.stepsize_weight
        best = self._best.values
        return old + F * (best - old) + F * (base - s1), s1

    def _rand1_per_vector_dither(self, old):
        order = np.arange(len(old))
        s1 = self._shuffled(order, old)
        s2 = self._shuffled(order, old)
        base = self._shuffled(order, old)
        F = self._config.stepsize_weight
        weights = np.array([(1.0 - F) * self._rng.next_real() + F
                            for _ in range(old.shape[1])])
        return base + weights * (s1 - s2), s1

    def _rand1_dither(self, old):
        order = np.arange(len(old))
        s1 = self._shuffled(order, old)
        s2 = self._shuffled(order, old)
        base = self._shuffled(order, old)
        F = self._config.stepsize_weight
        weight = (1.0 - F) * self._rng.next_real() + F
        return base + weight * (s1 - s2), s1

    def _either_or(self, old):
        order = np.arange(len(old))
        s1 = self._shuffled(order, old)
        s2 = self._shuffled(order, old)
        base = self._shuffled(order, old)
        F = self._config.stepsize_weight
        if self._rng.next_real() < _EITHER_OR_PROB:
            mutants = old + F * (s1 - s2)
        else:
            K = 0.5 * (F + 1.0)
            mutants = old + K * (s1 - s2 - 2.0 * base)
        return mutants, s1

    def _rand1_selfadaptive(self, old):
        order = np.arange(len(old))
        s1 = self._shuffled(order, old)
        s2 = self._shuffled(order, old)
        self._shuffled(order, old)
        self._adapt_size_weights()

        best = self._best.values
        mutants = np.empty_like(old)
        for k in range(len(old)):
            if self._rng.next_real() < _ROTATION_PROB:
                mutants[k] = self._rng.shuffle(best.copy())
            else:
                mutants[k] = best + self._size_weights[k] * (s1[k] - s2[k])
        return mutants, s1

    # --- adaptive control parameters -------------------------------------------
    def _adapt_size_weights(self) -> None:
        for k in range(len(self._size_weights)):
            if self._rng.next_real() < _SIZE_WEIGHT_CHANGE_PROB:
                self._size_weights[k] = (_SIZE_WEIGHT_LOWER
                                         + self._rng.next_real() * _SIZE_WEIGHT_UPPER)

    def _adapt_crossover(self) -> None:
        for k in range(len(self._crossover_probs)):
            if self._rng.next_real() < _CROSSOVER_CHANGE_PROB:
                self._crossover_probs[k] = self._rng.next_real()

    # --- recombination -------------------------------------------------------
    def _crossover_mask(self, probs: np.ndarray, shape) -> np.ndarray:
        n, d = shape
        mask = np.zeros(shape)
        for k in range(n):
            for i in range(d):
                if self._rng.next_real() < probs[k]:
                    mask[k, i] = 1.0
        return mask

    def _reflect(self, x: np.ndarray, mirror: np.ndarray) -> None:
        """Pull out-of-box coordinates of ``x`` back towards ``mirror``, in place."""
        upper, lower = self._upper, self._lower
        for i in range(x.size):
            if x[i] > upper[i]:
                x[i] = upper[i] + self._rng.next_real() * (mirror[i] - upper[i])
            if x[i] < lower[i]:
                x[i] = lower[i] + self._rng.next_real() * (mirror[i] - lower[i])

    def _crossover(self, old, mutants, mirror, problem: Problem):
        cfg = self._config
        if cfg.crossover_is_adaptive:
            self._adapt_crossover()

        probs = mutation_probabilities(self._crossover_probs, old.shape[1],
                                       cfg.crossover_type)
        mask = self._crossover_mask(probs, old.shape)
        values = old * (1.0 - mask) + mutants * mask

        costs = np.empty(len(values))
        for k in range(len(values)):
            if cfg.apply_bounds:
                self._reflect(values[k], mirror[k])
            costs[k] = self._cost(problem, values[k])
        return values, costs
