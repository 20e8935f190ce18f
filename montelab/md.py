"""Lennard-Jones fluid simulated by molecular dynamics (NVE) or Monte Carlo (NVT).

Lennard-Jones reduced units are used throughout. The interaction is
v(r) = 4 [(1/r)^12 - (1/r)^6], truncated at ``rcut``. Periodic boundary
conditions use the minimum image convention in a cubic box.
"""

from __future__ import annotations

import argparse
import math
from dataclasses import asdict, dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Sequence, Union

from montelab.rng import Random

PathLike = Union[str, Path]
Vector = tuple[float, float, float]

OBSERVABLES = ("potential", "kinetic", "total", "temperature", "pressure")
_PER_PARTICLE = frozenset({"potential", "kinetic", "total"})
_OUTPUT_FILES = {
    "potential": "output_epot.dat",
    "kinetic": "output_ekin.dat",
    "total": "output_etot.dat",
    "temperature": "output_temp.dat",
    "pressure": "output_press.dat",
}
_COLUMN_WIDTH = 12
_EXP_LIMIT = 709.0


class Ensemble(IntEnum):
    """Kind of move performed by the simulation."""

    MOLECULAR_DYNAMICS = 0
    MONTE_CARLO = 1


@dataclass(frozen=True)
class FluidParameters:
    """Thermodynamic state and run lengths of a simulation."""

    ensemble: Ensemble
    restart: bool
    temperature: float
    npart: int
    rho: float
    rcut: float
    delta: float
    nblk: int
    nstep: int

    @classmethod
    def from_file(cls, path: PathLike) -> "FluidParameters":
        """Read ensemble flag, restart flag, T, N, rho, rcut, delta, blocks, steps."""
        tokens = Path(path).read_text().split()
        if len(tokens) < 9:
            raise ValueError(f"{path}: expected nine input values")
        return cls(
            ensemble=Ensemble.MONTE_CARLO if int(tokens[0]) else Ensemble.MOLECULAR_DYNAMICS,
            restart=bool(int(tokens[1])),
            temperature=float(tokens[2]),
            npart=int(tokens[3]),
            rho=float(tokens[4]),
            rcut=float(tokens[5]),
            delta=float(tokens[6]),
            nblk=int(tokens[7]),
            nstep=int(tokens[8]),
        )

    @property
    def beta(self) -> float:
        return 1.0 / self.temperature

    def volume(self) -> float:
        """Volume of the simulation box."""
        return self.npart / self.rho

    def box(self) -> float:
        """Edge of the cubic simulation box."""
        return self.volume() ** (1.0 / 3.0)


@dataclass(frozen=True)
class Observables:
    """Instantaneous totals: energies for the whole system, T and P intensive."""

    potential: float
    kinetic: float
    total: float
    temperature: float
    pressure: float


def block_error(total: float, total2: float, iblk: int) -> float:
    """Statistical error of the mean after ``iblk`` blocks."""
    return math.sqrt(abs(total2 / iblk - (total / iblk) ** 2) / iblk)


@dataclass
class BlockStatistic:
    """Running sums of block estimates."""

    total: float = 0.0
    total2: float = 0.0
    count: int = 0

    def add(self, value: float) -> None:
        self.total += value
        self.total2 += value * value
        self.count += 1

    def mean(self) -> float:
        if not self.count:
            raise ValueError("no blocks recorded")
        return self.total / self.count

    def error(self) -> float:
        if not self.count:
            raise ValueError("no blocks recorded")
        return block_error(self.total, self.total2, self.count)


def _safe_exp(x: float) -> float:
    if math.isnan(x):
        return math.nan
    return math.exp(x) if x < _EXP_LIMIT else math.inf


def initial_velocities(rng: Random, npart: int, temperature: float) -> list[Vector]:
    """Gaussian velocities with zero total momentum, scaled to the temperature."""
    if npart < 1:
        raise ValueError("need at least one particle")
    sigma = math.sqrt(temperature)
    raw = [(rng.gauss(0.0, sigma), rng.gauss(0.0, sigma), rng.gauss(0.0, sigma))
           for _ in range(npart)]
    centre = tuple(sum(v[axis] for v in raw) / npart for axis in range(3))
    shifted = [tuple(c - m for c, m in zip(v, centre)) for v in raw]
    mean_square = sum(c * c for v in shifted for c in v) / npart
    scale = math.sqrt(3.0 * temperature / mean_square)
    return [(v[0] * scale, v[1] * scale, v[2] * scale) for v in shifted]


def read_vectors(path: PathLike, count: int) -> list[Vector]:
    """Read ``count`` three-component vectors from a whitespace-separated file."""
    values = [float(token) for token in Path(path).read_text().split()]
    if len(values) < 3 * count:
        raise ValueError(f"{path}: expected {count} vectors, found {len(values) // 3}")
    return [(values[3 * i], values[3 * i + 1], values[3 * i + 2]) for i in range(count)]


def write_vectors(path: PathLike, vectors: Iterable[Sequence[float]]) -> None:
    """Write one vector per line, components separated by three spaces."""
    lines = ["   ".join(f"{c:g}" for c in vector) for vector in vectors]
    Path(path).write_text("".join(line + "\n" for line in lines))


class LennardJonesFluid:
    """Particles in a periodic cubic box interacting through a truncated LJ potential."""

    def __init__(self, params: FluidParameters, rng: Random,
                 positions: Iterable[Sequence[float]],
                 velocities: Iterable[Sequence[float]]) -> None:
        self.params = params
        self.rng = rng
        self.box = params.box()
        self.volume = params.volume()
        fractional = [tuple(float(c) for c in p) for p in positions]
        speeds = [tuple(float(c) for c in v) for v in velocities]
        if len(fractional) != params.npart or len(speeds) != params.npart:
            raise ValueError(f"expected {params.npart} positions and velocities")
        if any(len(v) != 3 for v in fractional + speeds):
            raise ValueError("positions and velocities must have three components")
        self.positions: list[Vector] = [self._wrap(tuple(c * self.box for c in p))
                                        for p in fractional]
        self.velocities: list[Vector] = speeds
        if params.ensemble is Ensemble.MONTE_CARLO:
            self.previous: list[Vector] = list(self.positions)
        else:
            self.previous = [
                self._wrap(tuple(x - v * params.delta for x, v in zip(pos, vel)))
                for pos, vel in zip(self.positions, self.velocities)
            ]
        self.accepted = 0
        self.attempted = 0

    @property
    def npart(self) -> int:
        return self.params.npart

    def pbc(self, r: float) -> float:
        """Minimum-image coordinate in a box of side ``box``."""
        return r - self.box * round(r / self.box)

    def _wrap(self, vector: Sequence[float]) -> Vector:
        return (self.pbc(vector[0]), self.pbc(vector[1]), self.pbc(vector[2]))

    def _separation(self, a: Sequence[float], b: Sequence[float]) -> tuple[Vector, float]:
        d = self._wrap((a[0] - b[0], a[1] - b[1], a[2] - b[2]))
        return d, math.sqrt(d[0] * d[0] + d[1] * d[1] + d[2] * d[2])

    def particle_energy(self, position: Sequence[float], index: int) -> float:
        """Interaction energy of a particle at ``position`` with all others."""
        energy = 0.0
        for i, other in enumerate(self.positions):
            if i == index:
                continue
            _, dr = self._separation(position, other)
            if dr < self.params.rcut:
                energy += 1.0 / dr ** 12 - 1.0 / dr ** 6
        return 4.0 * energy

    def force(self, index: int) -> Vector:
        """Force on particle ``index``, minus the gradient of the potential."""
        fx = fy = fz = 0.0
        here = self.positions[index]
        for i, other in enumerate(self.positions):
            if i == index:
                continue
            d, dr = self._separation(here, other)
            if dr < self.params.rcut:
                magnitude = 48.0 / dr ** 14 - 24.0 / dr ** 8
                fx += d[0] * magnitude
                fy += d[1] * magnitude
                fz += d[2] * magnitude
        return fx, fy, fz

    def move(self) -> None:
        """One sweep: npart Metropolis trial moves, or one Verlet step."""
        if self.params.ensemble is Ensemble.MONTE_CARLO:
            self._monte_carlo_sweep()
        else:
            self._verlet_step()

    def _monte_carlo_sweep(self) -> None:
        delta = self.params.delta
        beta = self.params.beta
        rng = self.rng
        for _ in range(self.npart):
            o = int(rng.rannyu() * self.npart)
            energy_old = self.particle_energy(self.positions[o], o)
            x, y, z = self.positions[o]
            x = self.pbc(x + delta * (rng.rannyu() - 0.5))
            y = self.pbc(y + delta * (rng.rannyu() - 0.5))
            z = self.pbc(z + delta * (rng.rannyu() - 0.5))
            self.positions[o] = (x, y, z)
            energy_new = self.particle_energy(self.positions[o], o)
            probability = _safe_exp(beta * (energy_old - energy_new))
            if probability >= rng.rannyu():
                self.previous[o] = self.positions[o]
                self.accepted += 1
            else:
                self.positions[o] = self.previous[o]
            self.attempted += 1

    def _verlet_step(self) -> None:
        delta = self.params.delta
        d2 = delta * delta
        forces = [self.force(i) for i in range(self.npart)]
        new_positions = []
        new_velocities = []
        for pos, old, f in zip(self.positions, self.previous, forces):
            new = self._wrap(tuple(2.0 * x - xo + fx * d2 for x, xo, fx in zip(pos, old, f)))
            new_positions.append(new)
            new_velocities.append(tuple(self.pbc(xn - xo) / (2.0 * delta)
                                        for xn, xo in zip(new, old)))
        self.previous = self.positions
        self.positions = new_positions
        self.velocities = new_velocities
        self.accepted += self.npart
        self.attempted += self.npart

    def measure(self) -> Observables:
        """Potential, kinetic and total energy, temperature and pressure."""
        v = 0.0
        p = 0.0
        rcut = self.params.rcut
        for i in range(self.npart - 1):
            for j in range(i + 1, self.npart):
                _, dr = self._separation(self.positions[i], self.positions[j])
                if dr < rcut:
                    inv6 = 1.0 / dr ** 6
                    inv12 = 1.0 / dr ** 12
                    v += inv12 - inv6
                    p += inv12 - 0.5 * inv6
        kinetic = sum(0.5 * (vx * vx + vy * vy + vz * vz) for vx, vy, vz in self.velocities)
        temperature = (2.0 / 3.0) * kinetic / self.npart
        return Observables(
            potential=4.0 * v,
            kinetic=kinetic,
            total=4.0 * v + kinetic,
            temperature=temperature,
            pressure=16.0 * p / self.volume + self.params.rho * temperature,
        )

    def acceptance(self) -> float:
        """Fraction of accepted moves since the counters were last reset."""
        return self.accepted / self.attempted if self.attempted else 0.0

    def final_configuration(self) -> tuple[list[Vector], list[Vector]]:
        """Positions in box units and velocities, ready to restart from."""
        positions = [tuple(c / self.box for c in pos) for pos in self.positions]
        return positions, list(self.velocities)


def run_blocks(fluid: LennardJonesFluid, nblk: int, nstep: int
               ) -> Iterator[tuple[int, Observables, dict[str, BlockStatistic], float]]:
    """Yield block number, block estimates, running statistics and acceptance.

    Energies in the block estimates are per particle.
    """
    if nblk < 1 or nstep < 1:
        raise ValueError("need at least one block and one step per block")
    stats = {name: BlockStatistic() for name in OBSERVABLES}
    for iblk in range(1, nblk + 1):
        fluid.accepted = 0
        fluid.attempted = 0
        sums = dict.fromkeys(OBSERVABLES, 0.0)
        for _ in range(nstep):
            fluid.move()
            for name, value in asdict(fluid.measure()).items():
                sums[name] += value
        block = {
            name: sums[name] / nstep / (fluid.npart if name in _PER_PARTICLE else 1)
            for name in OBSERVABLES
        }
        for name, value in block.items():
            stats[name].add(value)
        yield iblk, Observables(**block), stats, fluid.acceptance()


def _column(value: float | int) -> str:
    text = str(value) if isinstance(value, int) else f"{value:g}"
    return text.rjust(_COLUMN_WIDTH)


def _append_block(directory: Path, iblk: int, block: Observables,
                  stats: Mapping[str, BlockStatistic]) -> None:
    values = asdict(block)
    for name in OBSERVABLES:
        stat = stats[name]
        with (directory / _OUTPUT_FILES[name]).open("a") as handle:
            handle.write(_column(iblk) + _column(values[name])
                         + _column(stat.total / iblk) + _column(stat.error()) + "\n")


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="MD (NVE) / MC (NVT) simulation of a Lennard-Jones fluid.")
    parser.add_argument("--workdir", default=".",
                        help="directory holding the input files and receiving the output")
    parser.add_argument("--input", default="input.gas")
    parser.add_argument("--equilibration", type=int, default=40000)
    args = parser.parse_args(argv)

    work = Path(args.workdir)
    params = FluidParameters.from_file(work / args.input)
    seed_file = "seed.out" if params.restart else "seed.in"
    rng = Random.from_files(work / "Primes", work / seed_file)

    print("Classic Lennard-Jones fluid")
    print("MD(NVE) / MC(NVT) simulation")
    print("Interatomic potential v(r) = 4 * [(1/r)^12 - (1/r)^6]")
    print("Boltzmann weight exp(- beta * sum_{i<j} v(r_ij) ), beta = 1/T")
    print("The program uses Lennard-Jones units")
    print(f"Temperature = {params.temperature:g}")
    print(f"Number of particles = {params.npart}")
    print(f"Density of particles = {params.rho:g}")
    print(f"Volume of the simulation box = {params.volume():g}")
    print(f"Edge of the simulation box = {params.box():g}")
    print(f"Cutoff of the interatomic potential = {params.rcut:g}")
    print(f"Moves parameter = {params.delta:g}")
    print(f"Number of blocks = {params.nblk}")
    print(f"Number of steps in one block = {params.nstep}")

    if params.restart:
        positions = read_vectors(work / "config.out", params.npart)
        velocities = read_vectors(work / "velocity.out", params.npart)
    else:
        positions = read_vectors(work / "config.in", params.npart)
        velocities = initial_velocities(rng, params.npart, params.temperature)
    fluid = LennardJonesFluid(params, rng, positions, velocities)

    initial = fluid.measure()
    print(f"Initial potential energy = {initial.potential / params.npart:g}")
    print(f"Initial temperature      = {initial.temperature:g}")
    print(f"Initial kinetic energy   = {initial.kinetic / params.npart:g}")
    print(f"Initial total energy     = {initial.total / params.npart:g}")
    print(f"Initial pressure         = {initial.pressure:g}")

    with (work / "PreprintTempG.dat").open("a") as trace:
        for step in range(args.equilibration):
            fluid.move()
            current = fluid.measure()
            if step % 100 == 0:
                print(f"equilibration step: {step}")
            trace.write(f"{step}{_column(current.temperature)}\n")

    for iblk, block, stats, acceptance in run_blocks(fluid, params.nblk, params.nstep):
        print(f"Block number {iblk}")
        print(f"Acceptance rate {acceptance:g}")
        _append_block(work, iblk, block, stats)

    print("Print final configuration to file config.out")
    final_positions, final_velocities = fluid.final_configuration()
    write_vectors(work / "config.out", final_positions)
    write_vectors(work / "velocity.out", final_velocities)
    rng.save_seed(work / "seed.out")
    return 0