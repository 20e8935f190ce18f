"""Genetic algorithm for the travelling salesman problem.

A tour is a permutation of city indices that always starts at city 0. Its
fitness is the length of the closed path; shorter is better. A population
evolves by crossover of selected parents, random mutations and the
replacement of members of its weaker half.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence, Union

from montelab.rng import Random

PathLike = Union[str, Path]


@dataclass(frozen=True)
class City:
    """Position of a city in the plane."""

    x: float
    y: float


def _as_city(value: City | Sequence[float]) -> City:
    if isinstance(value, City):
        return value
    x, y = value
    return City(float(x), float(y))


class CityMap:
    """The cities a tour has to visit."""

    def __init__(self, rng: Random | None, cities: Iterable[City | Sequence[float]]) -> None:
        self.rng = rng
        self.cities: list[City] = [_as_city(city) for city in cities]

    def __len__(self) -> int:
        return len(self.cities)

    @classmethod
    def from_file(cls, rng: Random | None, path: PathLike) -> "CityMap":
        """Read lines of ``index x y`` as written by :meth:`save`."""
        tokens = Path(path).read_text().split()
        if len(tokens) % 3:
            raise ValueError(f"{path}: incomplete city entry")
        cities = [City(float(x), float(y))
                  for x, y in zip(tokens[1::3], tokens[2::3])]
        return cls(rng, cities)

    @classmethod
    def random_square(cls, rng: Random, count: int, side: float) -> "CityMap":
        """Cities drawn uniformly inside a square of the given side."""
        cities = []
        for _ in range(count):
            x = side * rng.rannyu()
            y = side * rng.rannyu()
            cities.append(City(x, y))
        return cls(rng, cities)

    @classmethod
    def random_circle(cls, rng: Random, count: int, radius: float) -> "CityMap":
        """Cities drawn uniformly on a circle of the given radius."""
        cities = []
        for _ in range(count):
            angle = rng.rannyu(0.0, 2.0 * math.pi)
            cities.append(City(radius * math.cos(angle), radius * math.sin(angle)))
        return cls(rng, cities)

    def distance(self, i: int, j: int) -> float:
        """Euclidean distance between cities ``i`` and ``j``."""
        a, b = self.cities[i], self.cities[j]
        return math.hypot(a.x - b.x, a.y - b.y)

    def tour_length(self, tour: "Tour | Sequence[int]") -> float:
        """Length of the closed path visiting the cities in tour order."""
        genes = list(tour.genes if isinstance(tour, Tour) else tour)
        following = genes[1:] + genes[:1]
        return sum(self.distance(a, b) for a, b in zip(genes, following))

    def save(self, path: PathLike) -> None:
        """Write one line per city: index, x, y."""
        lines = [f"{i} {city.x:g} {city.y:g}\n" for i, city in enumerate(self.cities)]
        Path(path).write_text("".join(lines))


class Tour:
    """An ordering of the cities with its cached fitness."""

    def __init__(self, rng: Random, genes: Iterable[int]) -> None:
        self.rng = rng
        self.genes: list[int] = [int(g) for g in genes]
        self.fitness = 0.0

    @classmethod
    def identity(cls, rng: Random, length: int) -> "Tour":
        """The tour visiting cities 0, 1, ..., length-1 in order."""
        return cls(rng, range(length))

    def __len__(self) -> int:
        return len(self.genes)

    def copy(self) -> "Tour":
        twin = Tour(self.rng, self.genes)
        twin.fitness = self.fitness
        return twin

    def _swap(self, i: int, j: int) -> None:
        n = len(self.genes)
        if not (0 <= i < n and 0 <= j < n):
            raise IndexError(f"gene index out of range for a tour of {n} cities")
        self.genes[i], self.genes[j] = self.genes[j], self.genes[i]

    def _require(self, minimum: int) -> None:
        if len(self.genes) < minimum:
            raise ValueError(f"this operation needs a tour of at least {minimum} cities")

    def genes_between(self, i: int, j: int) -> list[int]:
        """Genes from the smaller index up to, not including, the larger one."""
        if i > j:
            i, j = j, i
        n = len(self.genes)
        if i < 0 or j > n:
            raise IndexError(f"index out of range for a tour of {n} cities")
        return self.genes[i:j]

    def fix_start(self) -> None:
        """Rotate the tour so that it starts from city 0."""
        if 0 in self.genes:
            k = self.genes.index(0)
            self.genes = self.genes[k:] + self.genes[:k]

    def evaluate(self, city_map: CityMap) -> float:
        """Compute, store and return the closed path length."""
        self.fitness = city_map.tour_length(self.genes)
        return self.fitness

    def _distinct_positions(self, draw) -> tuple[int, int]:
        first = second = 0
        while first == second:
            first, second = draw(), draw()
        return first, second

    def random_swaps(self, count: int) -> None:
        """Exchange ``count`` pairs of distinct randomly chosen genes."""
        self._require(2)
        n = len(self.genes)
        for _ in range(count):
            a, b = self._distinct_positions(lambda: int(self.rng.rannyu(0, n)))
            self._swap(a, b)

    def swap_across(self, start: int, end: int) -> None:
        """Exchange a random number of genes in [start, end) with genes further on."""
        delta = end - start
        swaps = self.rng.randint(1, delta // 2)
        for _ in range(swaps):
            a = b = 0
            while a == b:
                a = self.rng.randint(start, end)
                b = self.rng.randint(end + 1, delta)
            self._swap(a, b)

    def mutate_swap(self) -> None:
        """Exchange one random pair of genes."""
        self.random_swaps(1)

    def mutate_block_swap(self) -> None:
        """Exchange genes of the first half with genes of the second half."""
        self._require(3)
        n = len(self.genes)
        start = end = 0
        while start == end:
            start = self.rng.randint(1, n // 2)
            end = self.rng.randint(n // 2 + 1, n - 1)
        if start > end:
            start, end = end, start
        self.swap_across(start, end)

    def mutate_reverse_pairs(self) -> None:
        """Swap genes pairwise from both ends of a random span, moving inward."""
        self._require(3)
        n = len(self.genes)
        start, end = self._distinct_positions(lambda: self.rng.randint(1, n - 1))
        if start > end:
            start, end = end, start
        for k in range((end - start) // 2):
            self._swap(start + k, end - k)

    def mutate_invert(self) -> None:
        """Reverse the genes of a random span, both ends included."""
        self._require(2)
        n = len(self.genes)
        first, last = self._distinct_positions(lambda: int(self.rng.rannyu(0, n)))
        if first > last:
            first, last = last, first
        self.genes[first:last + 1] = self.genes[first:last + 1][::-1]

    def crossover(self, other: "Tour") -> "Tour":
        """Child keeping a prefix of this tour, completed in the other's order."""
        n = len(self.genes)
        cut = self.rng.randint(1, n - 2)
        child = self.genes[:cut]
        taken = set(child)
        for gene in other.genes:
            if len(child) >= n:
                break
            if gene not in taken:
                child.append(gene)
                taken.add(gene)
        if len(child) < n:
            raise ValueError("parents do not hold the same cities")
        return Tour(self.rng, child)

    def save(self, path: PathLike) -> None:
        """Write one line per leg: departure city and arrival city."""
        following = self.genes[1:] + self.genes[:1]
        Path(path).write_text("".join(f"{a} {b}\n" for a, b in zip(self.genes, following)))


class Population:
    """A set of tours evolving by selection, crossover and mutation."""

    def __init__(self, rng: Random, city_map: CityMap, size: int, length: int,
                 selectivity: float, mutation_rate: float) -> None:
        if size < 2:
            raise ValueError("a population needs at least two members")
        self.rng = rng
        self.city_map = city_map
        self.size = int(size)
        self.length = int(length)
        self.selectivity = float(selectivity)
        self.mutation_rate = float(mutation_rate)
        self.members: list[Tour] = []
        self.mean = 0.0
        self.stdev = 0.0
        self.best = 0.0

    def generate(self) -> None:
        """Fill the population with successively shuffled tours."""
        tour = Tour.identity(self.rng, self.length)
        tour.evaluate(self.city_map)
        self.members = [tour.copy()]
        for _ in range(1, self.size):
            tour.random_swaps(self.length)
            tour.fix_start()
            tour.evaluate(self.city_map)
            self.members.append(tour.copy())
        self.order()

    def order(self) -> None:
        """Sort members from the shortest to the longest tour."""
        self.members.sort(key=lambda tour: tour.fitness)

    def select_index(self) -> int:
        """Index of a parent, biased toward the best members."""
        index = int(math.ceil(self.size * self.rng.rannyu() ** self.selectivity)) - 1
        return max(index, 0)

    def new_generation(self, matings: int) -> None:
        """Breed ``matings`` children, each replacing a weak member."""
        self.order()
        mutations = {
            1: Tour.mutate_swap,
            2: Tour.mutate_block_swap,
            3: Tour.mutate_reverse_pairs,
            4: Tour.mutate_invert,
        }
        for _ in range(matings):
            j = self.select_index()
            k = self.select_index()
            child = self.members[j].crossover(self.members[k])
            if self.rng.rannyu() < self.mutation_rate:
                mutations[self.rng.randint(1, 4)](child)
            child.fix_start()
            child.evaluate(self.city_map)
            self.replace_weak(child)
        self.order()

    def replace_weak(self, tour: Tour) -> None:
        """Put ``tour`` in place of a random member of the weaker half."""
        index = self.rng.randint(self.size // 2, self.size - 1)
        self.members[index] = tour

    def replace(self, index: int, tour: Tour) -> None:
        if not 0 <= index < len(self.members):
            raise IndexError(f"no member at index {index}")
        self.members[index] = tour

    def statistics(self) -> tuple[float, float, float]:
        """Return and store (best, mean of the better half, standard deviation)."""
        self.order()
        fitness = [tour.fitness for tour in self.members]
        half_count = self.size // 2
        half = sum(fitness[:half_count + 1])
        total = sum(fitness)
        total2 = sum(f * f for f in fitness)
        n = float(self.size)
        self.mean = half / half_count
        self.best = fitness[0]
        self.stdev = math.sqrt(max(total2 / n - (total / n) ** 2, 0.0))
        return self.best, self.mean, self.stdev