"""Sample statistics used by the Monte-Carlo regression and reporting code.

``GeneralStatistics`` stores every weighted sample, so percentiles and
higher moments come from the empirical distribution.  ``SequenceStatistics``
accumulates vector-valued samples for means and covariances.  ``Histogram``
bins a data set with either explicit breaks or a bin-width rule.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Callable, Iterable, Optional

import numpy as np

from .errors import ConfigurationError, InsufficientDataError, UnknownVariantError

__all__ = [
    "GeneralStatistics",
    "SequenceStatistics",
    "Histogram",
    "HistogramAlgorithm",
    "quantile",
]


# ---------------------------------------------------------------------------
# Scalar samples
# ---------------------------------------------------------------------------
class GeneralStatistics:
    """Weighted empirical statistics over scalar samples.

    Samples are kept in insertion order until a percentile query needs them
    sorted; ``_sorted`` is cleared by every ``add`` and set by ``sort``.
    """

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self._values: list[float] = []
        self._weights: list[float] = []
        self._sorted = True

    # --- modifiers ---------------------------------------------------------
    def add(self, value: float, weight: float = 1.0) -> None:
        if weight < 0.0:
            raise ConfigurationError(f"negative weight ({weight}) not allowed")
        self._values.append(float(value))
        self._weights.append(float(weight))
        self._sorted = False

    def add_sequence(self, values: Iterable[float],
                     weights: Optional[Iterable[float]] = None) -> None:
        if weights is None:
            for v in values:
                self.add(v)
        else:
            for v, w in zip(values, weights):
                self.add(v, w)

    def sort(self) -> None:
        if not self._sorted:
            order = sorted(range(len(self._values)),
                           key=lambda i: (self._values[i], self._weights[i]))
            self._values = [self._values[i] for i in order]
            self._weights = [self._weights[i] for i in order]
            self._sorted = True

    # --- inspectors --------------------------------------------------------
    def samples(self) -> int:
        return len(self._values)

    def data(self) -> list[tuple[float, float]]:
        """``(value, weight)`` pairs in current storage order."""
        return list(zip(self._values, self._weights))

    def weight_sum(self) -> float:
        return float(sum(self._weights))

    def _arrays(self) -> tuple[np.ndarray, np.ndarray]:
        return np.asarray(self._values), np.asarray(self._weights)

    def expectation_value(
        self,
        f: Callable[[np.ndarray], np.ndarray],
        in_range: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    ) -> tuple[Optional[float], int]:
        """Weighted mean of ``f(x)`` over samples with ``in_range(x)`` true.

        Both callables receive the sample array and must broadcast.  Returns
        ``(None, 0)`` when no sample falls in range.
        """
        x, w = self._arrays()
        if in_range is not None and x.size:
            mask = np.asarray(in_range(x), dtype=bool)
            x, w = x[mask], w[mask]
        if x.size == 0:
            return None, 0
        return float(np.sum(f(x) * w) / np.sum(w)), int(x.size)

    def mean(self) -> float:
        if self.samples() == 0:
            raise InsufficientDataError("empty sample set")
        return self.expectation_value(lambda x: x)[0]

    def variance(self) -> float:
        n = self.samples()
        if n <= 1:
            raise InsufficientDataError(f"sample number ({n}) <= 1, insufficient")
        m = self.mean()
        s2 = self.expectation_value(lambda x: (x - m) ** 2)[0]
        return s2 * n / (n - 1.0)

    def standard_deviation(self) -> float:
        return math.sqrt(self.variance())

    def error_estimate(self) -> float:
        return math.sqrt(self.variance() / self.samples())

    def skewness(self) -> float:
        n = self.samples()
        if n <= 2:
            raise InsufficientDataError(f"sample number ({n}) <= 2, insufficient")
        m = self.mean()
        x = self.expectation_value(lambda v: (v - m) ** 3)[0]
        sigma = self.standard_deviation()
        return (x / sigma ** 3) * (n / (n - 1.0)) * (n / (n - 2.0))

    def kurtosis(self) -> float:
        """Excess kurtosis (zero for a Gaussian)."""
        n = self.samples()
        if n <= 3:
            raise InsufficientDataError(f"sample number ({n}) <= 3, insufficient")
        m = self.mean()
        x = self.expectation_value(lambda v: (v - m) ** 4)[0]
        sigma2 = self.variance()
        c1 = (n / (n - 1.0)) * (n / (n - 2.0)) * ((n + 1.0) / (n - 3.0))
        c2 = 3.0 * ((n - 1.0) / (n - 2.0)) * ((n - 1.0) / (n - 3.0))
        return c1 * (x / (sigma2 * sigma2)) - c2

    def min(self) -> float:
        if self.samples() == 0:
            raise InsufficientDataError("empty sample set")
        return min(self._values)

    def max(self) -> float:
        if self.samples() == 0:
            raise InsufficientDataError("empty sample set")
        return max(self._values)

    def _walk_percentile(self, percent: float, reverse: bool) -> float:
        if not (0.0 < percent <= 1.0):
            raise ConfigurationError(
                f"percentile ({percent}) must be in (0.0, 1.0]"
            )
        total = self.weight_sum()
        if total <= 0.0:
            raise InsufficientDataError("empty sample set")
        self.sort()
        pairs = list(zip(self._values, self._weights))
        if reverse:
            pairs.reverse()
        target = percent * total
        integral = 0.0
        for value, weight in pairs:
            integral += weight
            if integral >= target:
                return value
        return pairs[-1][0]

    def percentile(self, percent: float) -> float:
        """Smallest sample ``x`` with weight below ``x`` reaching ``percent``."""
        return self._walk_percentile(percent, reverse=False)

    def top_percentile(self, percent: float) -> float:
        """As :meth:`percentile`, walking down from the largest sample."""
        return self._walk_percentile(percent, reverse=True)


# ---------------------------------------------------------------------------
# Vector samples
# ---------------------------------------------------------------------------
class SequenceStatistics:
    """Running weighted mean / covariance of fixed-dimension vector samples.

    Parameters
    ----------
    dimension : int
        Length of every sample vector.
    """

    def __init__(self, dimension: int):
        if dimension <= 0:
            raise ConfigurationError(
                f"dimension must be positive, got {dimension}"
            )
        self._dim = int(dimension)
        self.reset()

    def reset(self) -> None:
        self._n = 0
        self._sum_w = 0.0
        self._sum_wx = np.zeros(self._dim)
        self._sum_wxx = np.zeros((self._dim, self._dim))

    @property
    def dimension(self) -> int:
        return self._dim

    def add(self, sample, weight: float = 1.0) -> None:
        x = np.asarray(sample, dtype=float)
        if x.shape != (self._dim,):
            raise ConfigurationError(
                f"sample size mismatch: {x.shape} required ({self._dim},)"
            )
        if weight < 0.0:
            raise ConfigurationError(f"negative weight ({weight}) not allowed")
        self._n += 1
        self._sum_w += weight
        self._sum_wx += weight * x
        self._sum_wxx += weight * np.outer(x, x)

    def samples(self) -> int:
        return self._n

    def weight_sum(self) -> float:
        return self._sum_w

    def mean(self) -> np.ndarray:
        if self._n == 0 or self._sum_w <= 0.0:
            raise InsufficientDataError("empty sample set")
        return self._sum_wx / self._sum_w

    def covariance(self) -> np.ndarray:
        """Covariance matrix with the ``N / (N - 1)`` sample correction."""
        n = self._n
        if n <= 1:
            raise InsufficientDataError(f"sample number ({n}) <= 1, insufficient")
        m = self.mean()
        second = self._sum_wxx / self._sum_w
        return (second - np.outer(m, m)) * (n / (n - 1.0))

    def variance(self) -> np.ndarray:
        return np.diag(self.covariance()).copy()

    def standard_deviation(self) -> np.ndarray:
        return np.sqrt(np.maximum(self.variance(), 0.0))

    def correlation(self) -> np.ndarray:
        cov = self.covariance()
        sd = np.sqrt(np.maximum(np.diag(cov), 0.0))
        denom = np.outer(sd, sd)
        with np.errstate(divide="ignore", invalid="ignore"):
            corr = np.where(denom > 0.0, cov / denom, 0.0)
        np.fill_diagonal(corr, np.where(sd > 0.0, 1.0, 0.0))
        return corr


# ---------------------------------------------------------------------------
# Histogram
# ---------------------------------------------------------------------------
class HistogramAlgorithm(Enum):
    NONE = "none"
    STURGES = "sturges"
    FD = "fd"          # Freedman-Diaconis
    SCOTT = "scott"


def quantile(samples, prob: float) -> float:
    """Hyndman-Fan type-8 sample quantile (approximately median-unbiased)."""
    x = np.sort(np.asarray(samples, dtype=float))
    n = x.size
    if not (0.0 <= prob <= 1.0):
        raise ConfigurationError(f"probability ({prob}) has to be in [0,1]")
    if n == 0:
        raise InsufficientDataError("the sample size has to be positive")
    if n == 1:
        return float(x[0])

    a = 1.0 / 3.0
    b = 2.0 * a / (n + a)
    if prob < b:
        return float(x[0])
    if prob > 1.0 - b:
        return float(x[-1])

    h = (n + a) * prob + a
    index = min(max(int(math.floor(h)), 1), n - 1)
    weight = h - index
    return float((1.0 - weight) * x[index - 1] + weight * x[index])


class Histogram:
    """Histogram of a data set.

    Exactly one of ``bins``, ``algorithm`` or ``breaks`` should be given.
    With ``bins`` the breaks span ``[min, max]`` evenly; ``algorithm`` picks
    the bin count by Sturges, Freedman-Diaconis or Scott; explicit
    ``breaks`` are sorted and de-duplicated.  Values below ``breaks[i]``
    (and not below an earlier break) land in bin ``i``; the rest land in
    the last bin.
    """

    def __init__(self, data, bins: Optional[int] = None,
                 algorithm: Optional[HistogramAlgorithm] = None,
                 breaks=None):
        self._data = np.asarray(data, dtype=float).ravel()
        if self._data.size == 0:
            raise InsufficientDataError("no data given")
        if sum(arg is not None for arg in (bins, algorithm, breaks)) != 1:
            raise ConfigurationError(
                "exactly one of bins, algorithm or breaks is required"
            )

        self._algorithm = HistogramAlgorithm.NONE
        lo, hi = float(self._data.min()), float(self._data.max())

        if breaks is not None:
            brk = np.unique(np.asarray(breaks, dtype=float))
            # collapse breaks that differ only by rounding noise
            if brk.size > 1:
                keep = np.concatenate(
                    [[True], ~np.isclose(np.diff(brk), 0.0, atol=1e-12)]
                )
                brk = brk[keep]
            self._breaks = brk
            self._bins = brk.size + 1
        else:
            if bins is None:
                try:
                    self._algorithm = HistogramAlgorithm(algorithm)
                except ValueError:
                    raise UnknownVariantError(
                        f"unknown bin-partition algorithm: {algorithm!r}"
                    ) from None
                bins = self._bins_from_algorithm(lo, hi)
            elif bins <= 0:
                raise ConfigurationError(f"bins must be positive, got {bins}")
            self._bins = int(bins)
            h = (hi - lo) / self._bins
            self._breaks = lo + h * np.arange(1, self._bins)

        idx = np.searchsorted(self._breaks, self._data, side="right")
        self._counts = np.bincount(idx, minlength=self._bins)
        self._frequency = self._counts / self._data.size

    def _bins_from_algorithm(self, lo: float, hi: float) -> int:
        n = self._data.size
        alg = self._algorithm
        if alg is HistogramAlgorithm.STURGES:
            bins = math.ceil(math.log2(n) + 1)
        elif alg is HistogramAlgorithm.FD:
            r1 = quantile(self._data, 0.25)
            r2 = quantile(self._data, 0.75)
            h = 2.0 * (r2 - r1) * n ** (-1.0 / 3.0)
            bins = math.ceil((hi - lo) / h) if h > 0.0 else 1
        elif alg is HistogramAlgorithm.SCOTT:
            if n < 2:
                raise InsufficientDataError("Scott's rule needs at least two samples")
            h = 3.5 * float(np.std(self._data, ddof=1)) * n ** (-1.0 / 3.0)
            bins = math.ceil((hi - lo) / h) if h > 0.0 else 1
        elif alg is HistogramAlgorithm.NONE:
            raise ConfigurationError("a bin-partition algorithm is required")
        else:
            raise UnknownVariantError(f"unknown bin-partition algorithm: {alg!r}")
        return max(int(bins), 1)

    # --- inspectors --------------------------------------------------------
    def bins(self) -> int:
        return self._bins

    def breaks(self) -> np.ndarray:
        return self._breaks.copy()

    def algorithm(self) -> HistogramAlgorithm:
        return self._algorithm

    def empty(self) -> bool:
        return self._bins == 0

    def counts(self, i: int) -> int:
        return int(self._counts[i])

    def frequency(self, i: int) -> float:
        return float(self._frequency[i])
