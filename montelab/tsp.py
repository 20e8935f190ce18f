"""Travelling salesman runs driven by the genetic algorithm.

Three setups are provided: cities placed at random on a circle or inside a
square, the fifty capitals read from a file, and the capitals solved by
several independent populations ("islands") that periodically exchange
their members.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Sequence, Union

from montelab.genetic import City, CityMap, Population, Tour
from montelab.rng import Random, seed_file_for_rank

PathLike = Union[str, Path]

DEFAULT_INDIVIDUALS = 400
DEFAULT_GENERATIONS = 1000
DEFAULT_SELECTIVITY = 1.5
DEFAULT_MUTATION = 0.15
DEFAULT_INTERVAL = 40
DEFAULT_ISLANDS = 4
CAPITALS = 50

_OUTPUTS = {
    "circle": ("StatCRF.dat", "map_CRF.dat", "path_CRF.dat"),
    "square": ("StatSQ.dat", "map_SQ.dat", "path_SQ.dat"),
    "capitals": ("StatCap.dat", "map_cap.dat", "path_cap.dat"),
}


@dataclass(frozen=True)
class GenerationStats:
    """Best length, mean of the better half and spread of one generation."""

    best: float
    mean: float
    stdev: float

    def line(self) -> str:
        return f"{self.best:g}\t\t{self.mean:g}\t\t{self.stdev:g}"


def read_capitals(path: PathLike, count: int = CAPITALS) -> list[City]:
    """Read ``count`` lines of ``state capital x y`` and return the cities."""
    tokens = Path(path).read_text().split()
    if len(tokens) < 4 * count:
        raise ValueError(f"{path}: expected {count} capitals, found {len(tokens) // 4}")
    cities = []
    for k in range(count):
        _state, _capital, x, y = tokens[4 * k:4 * k + 4]
        cities.append(City(float(x), float(y)))
    return cities


def evolve(population: Population, generations: int,
           matings: int | None = None) -> Iterator[GenerationStats]:
    """Advance ``generations`` generations, yielding the statistics of each."""
    if matings is None:
        matings = population.size // 4
    for _ in range(generations):
        population.new_generation(matings)
        yield GenerationStats(*population.statistics())


class IslandModel:
    """Independent populations that swap members every few generations."""

    def __init__(self, populations: Iterable[Population]) -> None:
        self.populations = list(populations)
        if not self.populations:
            raise ValueError("need at least one population")
        first = self.populations[0]
        for pop in self.populations[1:]:
            if pop.size != first.size or pop.length != first.length:
                raise ValueError("all populations must have the same size and tour length")

    def migrate(self) -> None:
        """Member k of island r takes the tour of member k of island (k + r) mod n."""
        for pop in self.populations:
            if len(pop.members) < pop.size:
                raise ValueError("populations must be generated before migrating")
        snapshot = [[list(tour.genes) for tour in pop.members] for pop in self.populations]
        n = len(self.populations)
        for rank, pop in enumerate(self.populations):
            for k in range(pop.size):
                tour = Tour(pop.rng, snapshot[(k + rank) % n][k])
                tour.evaluate(pop.city_map)
                pop.replace(k, tour)

    def run(self, generations: int, interval: int = DEFAULT_INTERVAL,
            matings: int | None = None) -> Iterator[list[GenerationStats]]:
        """Evolve in rounds of ``interval`` generations with a migration after each.

        Yields, for every generation, the statistics of each island in order.
        """
        if interval < 1:
            raise ValueError("interval must be positive")
        for _ in range(generations // interval):
            for _ in range(interval):
                stats = []
                for pop in self.populations:
                    pop.new_generation(pop.size // 4 if matings is None else matings)
                    stats.append(GenerationStats(*pop.statistics()))
                yield stats
            self.migrate()

    def best_tour(self) -> Tour:
        """Shortest tour found among all islands."""
        return min((pop.members[0] for pop in self.populations), key=lambda t: t.fitness)


def write_stats(path: PathLike, stats: Iterable[GenerationStats]) -> None:
    """Write one line per generation: best, mean and standard deviation."""
    Path(path).write_text("".join(s.line() + "\n" for s in stats))


def _single(args: argparse.Namespace, work: Path) -> None:
    rng = Random.from_files(work / args.primes, work / args.seed)
    if args.mode == "capitals":
        count = args.cities if args.cities is not None else CAPITALS
        city_map = CityMap(rng, read_capitals(work / args.capitals, count))
        print(f"number of cities: {len(city_map)}")
    else:
        count = args.cities if args.cities is not None else 34
        if args.mode == "circle":
            city_map = CityMap.random_circle(rng, count, 1.0)
        else:
            city_map = CityMap.random_square(rng, count, 1.0)
    stat_file, map_file, path_file = _OUTPUTS[args.mode]

    population = Population(rng, city_map, args.individuals, len(city_map),
                            args.selectivity, args.mutation)
    population.generate()
    print(GenerationStats(*population.statistics()).line())

    history = []
    for stats in evolve(population, args.generations, args.individuals // 4):
        print(stats.line())
        history.append(stats)
    write_stats(work / stat_file, history)

    print(f"shortest path length: {population.best:g}")
    city_map.save(work / map_file)
    population.members[0].save(work / path_file)


def _islands(args: argparse.Namespace, work: Path) -> None:
    count = args.cities if args.cities is not None else CAPITALS
    city_map = CityMap(None, read_capitals(work / args.capitals, count))
    print(f"number of cities: {len(city_map)}")
    city_map.save(work / "map_capP.dat")

    populations = []
    for rank in range(args.islands):
        rng = Random.from_files(work / args.primes, work / seed_file_for_rank(rank))
        pop = Population(rng, city_map, args.individuals, len(city_map),
                         args.selectivity, args.mutation)
        pop.generate()
        print(GenerationStats(*pop.statistics()).line())
        populations.append(pop)

    model = IslandModel(populations)
    histories: list[list[GenerationStats]] = [[] for _ in populations]
    for generation in model.run(args.generations, args.interval, args.individuals // 4):
        for history, stats in zip(histories, generation):
            history.append(stats)
    for rank, history in enumerate(histories):
        write_stats(work / f"CapBest{rank}.dat", history)

    best = model.best_tour()
    print(f"shortest path length: {best.fitness:g}")
    best.save(work / "path_capP.dat")


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Travelling salesman problem solved by a genetic algorithm.")
    parser.add_argument("mode", choices=("circle", "square", "capitals", "islands"),
                        nargs="?", default="circle")
    parser.add_argument("--workdir", default=".")
    parser.add_argument("--primes", default="Primes")
    parser.add_argument("--seed", default="seed.in")
    parser.add_argument("--capitals", default="American_capitals.dat")
    parser.add_argument("--cities", type=int, default=None)
    parser.add_argument("--individuals", type=int, default=DEFAULT_INDIVIDUALS)
    parser.add_argument("--generations", type=int, default=DEFAULT_GENERATIONS)
    parser.add_argument("--selectivity", type=float, default=DEFAULT_SELECTIVITY)
    parser.add_argument("--mutation", type=float, default=DEFAULT_MUTATION)
    parser.add_argument("--islands", type=int, default=DEFAULT_ISLANDS)
    parser.add_argument("--interval", type=int, default=DEFAULT_INTERVAL)
    args = parser.parse_args(argv)

    work = Path(args.workdir)
    if args.mode == "islands":
        _islands(args, work)
    else:
        _single(args, work)
    return 0