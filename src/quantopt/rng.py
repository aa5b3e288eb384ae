# rng.py
# Seeded uniform random stream shared by the optimizers.

from __future__ import annotations

from typing import Optional

import numpy as np


__all__ = ["MersenneTwisterUniformRng"]


class MersenneTwisterUniformRng:
    """Uniform [0, 1) stream backed by NumPy's MT19937 bit generator.

    Each instance owns its own stream; it is not safe to share one
    instance between threads without external locking.

    Parameters
    ----------
    seed : int or None
        Seed for reproducible streams.  ``None`` draws fresh OS entropy.
    """

    def __init__(self, seed: Optional[int] = None):
        self._seed = seed
        self._gen = np.random.Generator(np.random.MT19937(seed))

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    def next_real(self) -> float:
        """Next uniform draw in [0, 1)."""
        return float(self._gen.random())

    def shuffle(self, a: np.ndarray) -> np.ndarray:
        """Fisher-Yates shuffle of ``a`` along its first axis, in place.

        Walks from the last index down to 1, swapping with a slot drawn by
        one ``next_real()`` call, so the permutation depends only on this
        stream.  Returns ``a`` for convenience.
        """
        for i in range(len(a) - 1, 0, -1):
            j = int(self.next_real() * (i + 1))
            if j != i:
                if a.ndim == 1:
                    a[i], a[j] = a[j], a[i]
                else:
                    a[[i, j]] = a[[j, i]]
        return a
