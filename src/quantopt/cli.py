from __future__ import annotations

import argparse
import json
import logging
import math

import numpy as np

from .basis import PolynomialFamily, evaluate_basis, path_basis_system
from .differential_evolution import Configuration, CrossoverType, DifferentialEvolution, Strategy
from .errors import UnknownVariantError
from .longstaff_schwartz import (
    apply_exercise_strategy, longstaff_schwartz_regression, simulation_data_from_paths,
)
from .optimization import BoundaryConstraint, EndCriteria, Problem
from .processes import gbm_paths


# ---- benchmark cost functions ---------------------------------------------

def sphere(x):
    return float(np.sum(x * x))

def rosenbrock(x):
    return float(np.sum(100.0 * (x[1:] - x[:-1] ** 2) ** 2 + (1.0 - x[:-1]) ** 2))

def ackley(x):
    n = x.size
    return float(-20.0 * math.exp(-0.2 * math.sqrt(np.sum(x * x) / n))
                 - math.exp(np.sum(np.cos(2.0 * math.pi * x)) / n)
                 + 20.0 + math.e)

BENCHMARKS = {"sphere": sphere, "rosenbrock": rosenbrock, "ackley": ackley}


def run_de_benchmark(function: str, dim: int, *, low: float = -10.0, high: float = 10.0,
                     configuration: Configuration = None, max_iter: int = 1000):
    """Minimise a named benchmark on ``[low, high]^dim``.

    Returns ``(reason, best_point, best_cost)``.
    """
    try:
        f = BENCHMARKS[function]
    except KeyError:
        raise UnknownVariantError(f"unknown benchmark function: {function!r}") from None
    start = np.full(dim, 0.5 * (low + high) + 0.25 * (high - low))
    problem = Problem(f, BoundaryConstraint(low, high), start)
    reason = DifferentialEvolution(configuration).minimize(
        problem, EndCriteria(max_iterations=max_iter, function_epsilon=1e-12))
    return reason, problem.current_value, problem.function_value


def run_bermudan_put(S0: float, K: float, T: float, r: float, sigma: float, *,
                     exercises: int = 25, n_paths: int = 10_000, degree: int = 3,
                     family: str = "monomial", seed: int = None) -> dict:
    """Bermudan put by Longstaff-Schwartz on GBM paths.

    Regresses on ``S/K`` over one path set (in-sample, biased high) and
    applies the fitted rule to an independent set (out-of-sample, biased low).
    """
    basis = path_basis_system(degree, family)
    times = T * np.arange(1, exercises + 1) / exercises
    dfs = np.exp(-r * times)

    def grid(path_seed):
        S = gbm_paths(S0, r, 0.0, sigma, T, exercises, n_paths // 2,
                      antithetic=True, seed=path_seed)[1:]
        X = np.stack([evaluate_basis(basis, row / K) for row in S])
        # an out-of-the-money put is never exercised
        payoff = np.where(S < K, K - S, -np.inf)
        return simulation_data_from_paths(X, payoff, dfs)

    ss = np.random.SeedSequence(seed)
    fit_seed, test_seed = ss.spawn(2)
    coefficients, in_sample = longstaff_schwartz_regression(grid(fit_seed))
    out_of_sample = apply_exercise_strategy(grid(test_seed), coefficients)
    return {
        "in_sample": in_sample,
        "out_of_sample": out_of_sample,
        "coefficients": [c.tolist() for c in coefficients],
    }


# ---- commands ----------------------------------------------------------------

def cmd_de(args):
    cfg = (Configuration()
           .with_strategy(args.strategy)
           .with_crossover_type(args.crossover)
           .with_population_members(args.population)
           .with_stepsize_weight(args.weight)
           .with_crossover_probability(args.cr)
           .with_seed(args.seed)
           .with_adaptive_crossover(args.adaptive))
    reason, x, fx = run_de_benchmark(args.function, args.dim, low=args.low,
                                     high=args.high, configuration=cfg,
                                     max_iter=args.max_iter)
    print(f"{reason.value}  cost {fx:.10g}")
    print("x =", np.array2string(x, precision=8))

def cmd_lsm(args):
    res = run_bermudan_put(args.S0, args.K, args.T, args.r, args.sigma,
                           exercises=args.exercises, n_paths=args.n_paths,
                           degree=args.degree, family=args.family, seed=args.seed)
    print(f"in-sample {res['in_sample']:.6f}  out-of-sample {res['out_of_sample']:.6f}")
    if args.json:
        print(json.dumps(res, indent=2))

def main(argv=None):
    p = argparse.ArgumentParser(prog="quantopt",
                                description="Differential Evolution / Longstaff-Schwartz CLI")
    p.add_argument("-v", "--verbose", action="count", default=0)
    sub = p.add_subparsers(dest="cmd", required=True)

    # Differential Evolution
    p_de = sub.add_parser("de", help="minimise a benchmark function")
    p_de.add_argument("--function", choices=sorted(BENCHMARKS), default="sphere")
    p_de.add_argument("--dim", type=int, default=3)
    p_de.add_argument("--low", type=float, default=-10.0)
    p_de.add_argument("--high", type=float, default=10.0)
    p_de.add_argument("--strategy", choices=[s.value for s in Strategy],
                      default=Strategy.BEST_MEMBER_WITH_JITTER.value)
    p_de.add_argument("--crossover", choices=[c.value for c in CrossoverType],
                      default=CrossoverType.NORMAL.value)
    p_de.add_argument("--population", type=int, default=100)
    p_de.add_argument("--weight", type=float, default=0.2, help="step size weight F")
    p_de.add_argument("--cr", type=float, default=0.9, help="crossover probability")
    p_de.add_argument("--adaptive", action="store_true", help="adaptive crossover")
    p_de.add_argument("--seed", type=int, default=0)
    p_de.add_argument("--max-iter", dest="max_iter", type=int, default=1000)
    p_de.set_defaults(func=cmd_de)

    # Longstaff-Schwartz
    p_lsm = sub.add_parser("lsm", help="Bermudan put by Longstaff-Schwartz")
    p_lsm.add_argument("--S0", type=float, default=36.0)
    p_lsm.add_argument("--K", type=float, default=40.0)
    p_lsm.add_argument("--T", type=float, default=1.0, help="years")
    p_lsm.add_argument("--r", type=float, default=0.06, help="cont. risk-free")
    p_lsm.add_argument("--sigma", type=float, default=0.2)
    p_lsm.add_argument("--exercises", type=int, default=50)
    p_lsm.add_argument("--n-paths", dest="n_paths", type=int, default=20_000)
    p_lsm.add_argument("--degree", type=int, default=3)
    p_lsm.add_argument("--family", choices=[f.value for f in PolynomialFamily],
                       default=PolynomialFamily.MONOMIAL.value)
    p_lsm.add_argument("--seed", type=int, default=None)
    p_lsm.add_argument("--json", action="store_true", help="also dump coefficients")
    p_lsm.set_defaults(func=cmd_lsm)

    args = p.parse_args(argv)
    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    args.func(args)

if __name__ == "__main__":
    main()
