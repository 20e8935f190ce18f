"""Multiplicative congruential random number generator with 48-bit state.

The state is held as four 12-bit limbs. Each draw multiplies the state by a
fixed 48-bit multiplier and adds an increment built from two primes.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Iterable, Sequence, Union

PathLike = Union[str, Path]

_MULTIPLIER = (502, 1521, 4071, 2107)
_BASE = 4096
_TWO_M12 = 0.000244140625
_PI = 3.14159265
_SEED_KEYWORD = "RANDOMSEED"


def _tdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _tmod(a: int, b: int) -> int:
    """Remainder matching division truncated toward zero."""
    return a - b * _tdiv(a, b)


def _int_tokens(text: str) -> list[int]:
    return [int(token) for token in text.split()]


def read_primes(path: PathLike) -> tuple[int, int]:
    """Return the first two integers of a primes file."""
    values = Path(path).read_text().split()
    if len(values) < 2:
        raise ValueError(f"{path}: expected two primes")
    return int(values[0]), int(values[1])


def read_seed(path: PathLike) -> tuple[int, int, int, int]:
    """Return the four seed limbs stored in a seed file.

    Files in keyword form carry the limbs after a ``RANDOMSEED`` token;
    otherwise the first four integers of the file are used.
    """
    tokens = Path(path).read_text().split()
    if _SEED_KEYWORD in tokens:
        start = len(tokens) - 1 - tokens[::-1].index(_SEED_KEYWORD) + 1
        limbs = tokens[start:start + 4]
    elif tokens and not tokens[0].lstrip("+-").isdigit():
        raise ValueError(f"{path}: no {_SEED_KEYWORD} entry found")
    else:
        limbs = tokens[:4]
    if len(limbs) < 4:
        raise ValueError(f"{path}: expected four seed values")
    a, b, c, d = (int(token) for token in limbs)
    return a, b, c, d


def seed_file_for_rank(rank: int) -> str:
    """Name of the seed file used by the process of the given rank."""
    return f"seedP_{rank}.in"


class Random:
    """Deterministic pseudo-random generator seeded by four limbs and two primes."""

    def __init__(self, seed: Sequence[int] | Iterable[int], p1: int, p2: int) -> None:
        limbs = tuple(int(value) for value in seed)
        if len(limbs) != 4:
            raise ValueError("seed must hold exactly four values")
        self._m1, self._m2, self._m3, self._m4 = _MULTIPLIER
        self._l1, self._l2, self._l3, self._l4 = limbs
        self._n1 = 0
        self._n2 = 0
        self._n3 = int(p1)
        self._n4 = int(p2)

    @classmethod
    def from_files(cls, primes_path: PathLike = "Primes",
                   seed_path: PathLike = "seed.in") -> "Random":
        """Build a generator from a primes file and a seed file."""
        p1, p2 = read_primes(primes_path)
        return cls(read_seed(seed_path), p1, p2)

    def state(self) -> tuple[int, int, int, int]:
        """Current four limbs of the generator state."""
        return self._l1, self._l2, self._l3, self._l4

    def _next(self) -> float:
        l1, l2, l3, l4 = self._l1, self._l2, self._l3, self._l4
        m1, m2, m3, m4 = self._m1, self._m2, self._m3, self._m4
        i1 = l1 * m4 + l2 * m3 + l3 * m2 + l4 * m1 + self._n1
        i2 = l2 * m4 + l3 * m3 + l4 * m2 + self._n2
        i3 = l3 * m4 + l4 * m3 + self._n3
        i4 = l4 * m4 + self._n4
        l4 = _tmod(i4, _BASE)
        i3 += _tdiv(i4, _BASE)
        l3 = _tmod(i3, _BASE)
        i2 += _tdiv(i3, _BASE)
        l2 = _tmod(i2, _BASE)
        l1 = _tmod(i1 + _tdiv(i2, _BASE), _BASE)
        self._l1, self._l2, self._l3, self._l4 = l1, l2, l3, l4
        return _TWO_M12 * (l1 + _TWO_M12 * (l2 + _TWO_M12 * (l3 + _TWO_M12 * l4)))

    def rannyu(self, low: float = 0.0, high: float = 1.0) -> float:
        """Uniform deviate in [low, high)."""
        return low + (high - low) * self._next()

    def gauss(self, mean: float, sigma: float) -> float:
        """Normal deviate by the Box-Muller transform."""
        s = self._next()
        t = self._next()
        x = math.sqrt(-2.0 * math.log(1.0 - s)) * math.cos(2.0 * math.pi * t)
        return mean + x * sigma

    def exp(self, mean: float) -> float:
        """Exponential deviate, -log(1 - y) / mean."""
        y = self._next()
        return -(1.0 / mean) * math.log(1.0 - y)

    def lorentz(self, mu: float, gamma: float) -> float:
        """Cauchy deviate of width gamma, centred at zero; mu is not applied."""
        y = self._next()
        return gamma * math.tan(_PI * (y - 0.5))

    def choice(self, low: float, high: float) -> float:
        """Return low or high with equal probability."""
        x = self.rannyu(-1.0, 1.0)
        while x == 0:
            x = self._next()
        return high if x > 0 else low

    def randint(self, low: float, high: float) -> int:
        """Uniform deviate in [low, high) truncated toward zero."""
        return int(self.rannyu(low, high))

    def gbm_step_direct(self, t: float, s0: float, mu: float, sigma2: float) -> float:
        """Geometric Brownian motion value at t, noise scaled by t."""
        drift = math.exp((mu - 0.5 * sigma2) * t)
        noise = math.exp(math.sqrt(sigma2) * self.gauss(0.0, t))
        return s0 * drift * noise

    def gbm_step(self, t: float, s0: float, mu: float, sigma2: float) -> float:
        """Geometric Brownian motion value at t, noise scaled by sqrt(t)."""
        drift = math.exp((mu - 0.5 * sigma2) * t)
        noise = math.exp(math.sqrt(sigma2) * self.gauss(0.0, 1.0) * math.sqrt(t))
        return s0 * drift * noise

    def save_seed(self, path: PathLike = "seed.out") -> None:
        """Write the current state as four space-separated limbs."""
        Path(path).write_text(" ".join(str(limb) for limb in self.state()) + "\n")