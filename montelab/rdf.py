"""Lennard-Jones gas with tail corrections and radial distribution function.

Potential energy and pressure are estimated by block averages and corrected
for the truncation of the potential at ``rcut``. The pair histogram is turned
into g(r) by normalising each spherical shell to an ideal gas at the same
density.
"""

from __future__ import annotations

import argparse
import math
from pathlib import Path
from typing import Iterable, Iterator, Sequence, Union

from montelab.md import (
    BlockStatistic,
    FluidParameters,
    LennardJonesFluid,
    Observables,
    initial_velocities,
    read_vectors,
    write_vectors,
)
from montelab.rng import Random

PathLike = Union[str, Path]

DEFAULT_BINS = 200
_BLOCK_WIDTH = 12
_HISTOGRAM_WIDTH = 14


def tail_corrections(rho: float, rcut: float) -> tuple[float, float]:
    """Long-range corrections (per particle energy, pressure) beyond ``rcut``."""
    if rcut <= 0:
        raise ValueError("cutoff must be positive")
    vtail = 8 * math.pi * rho / (9 * rcut ** 9) - 8 * math.pi * rho / (6 * rcut ** 3)
    ptail = 32 * math.pi * rho / (9 * rcut ** 9) - 16 * math.pi * rho / (3 * rcut ** 3)
    return vtail, ptail


class RadialDistribution:
    """Histogram of pair distances up to half the box edge."""

    def __init__(self, box: float, nbins: int = DEFAULT_BINS, nstep: int = 1) -> None:
        if box <= 0:
            raise ValueError("box edge must be positive")
        if nbins < 1:
            raise ValueError("need at least one bin")
        if nstep < 1:
            raise ValueError("need at least one step")
        self.box = float(box)
        self.nbins = int(nbins)
        self.nstep = int(nstep)
        self.counts = [0.0] * self.nbins

    def bin_size(self) -> float:
        """Width of one bin: half the box edge shared among the bins."""
        return self.box / self.nbins / 2

    def record(self, distance: float) -> None:
        """Count one pair at ``distance``; each pair weighs 2 / nstep."""
        if distance < self.box / 2:
            index = min(int(math.floor(distance / self.bin_size())), self.nbins - 1)
            self.counts[index] += 2.0 / self.nstep

    def shell_volumes(self) -> list[float]:
        """Volume of the spherical shell covered by each bin."""
        size = self.bin_size()
        return [4.0 * math.pi / 3.0 * ((i * size + size) ** 3 - (i * size) ** 3)
                for i in range(self.nbins)]

    def bin_centres(self) -> list[float]:
        """Midpoint radius of each bin."""
        size = self.bin_size()
        return [((i + 1) * size + i * size) / 2 for i in range(self.nbins)]


class GasSimulation:
    """Block-averaged simulation of a fluid measuring U, P and g(r)."""

    def __init__(self, fluid: LennardJonesFluid, nbins: int = DEFAULT_BINS) -> None:
        self.fluid = fluid
        self.nbins = int(nbins)
        self.vtail, self.ptail = tail_corrections(fluid.params.rho, fluid.params.rcut)
        self.rdf = RadialDistribution(fluid.box, self.nbins, 1)
        self.stats = {"potential": BlockStatistic(), "pressure": BlockStatistic()}
        self.g_stats = [BlockStatistic() for _ in range(self.nbins)]

    def measure(self) -> Observables:
        """Measure the observables and record every pair distance in the histogram."""
        fluid = self.fluid
        positions = fluid.positions
        for i in range(fluid.npart - 1):
            a = positions[i]
            for j in range(i + 1, fluid.npart):
                b = positions[j]
                dx = fluid.pbc(a[0] - b[0])
                dy = fluid.pbc(a[1] - b[1])
                dz = fluid.pbc(a[2] - b[2])
                self.rdf.record(math.sqrt(dx * dx + dy * dy + dz * dz))
        return fluid.measure()

    def equilibrate(self, steps: int) -> Iterator[tuple[int, float]]:
        """Move ``steps`` times, yielding the step and potential energy per particle."""
        for step in range(steps):
            self.fluid.move()
            yield step, self.fluid.measure().potential / self.fluid.npart

    def _g_block(self) -> list[float]:
        density = self.fluid.params.rho * self.fluid.npart
        return [count / (density * volume)
                for count, volume in zip(self.rdf.counts, self.rdf.shell_volumes())]

    def run(self, nblk: int, nstep: int) -> Iterator[tuple[int, dict[str, float], float]]:
        """Run the blocks, yielding block number, corrected U and P, and acceptance.

        Running statistics are kept in ``stats`` and, per bin of g(r), in ``g_stats``.
        """
        if nblk < 1 or nstep < 1:
            raise ValueError("need at least one block and one step per block")
        self.stats = {"potential": BlockStatistic(), "pressure": BlockStatistic()}
        self.g_stats = [BlockStatistic() for _ in range(self.nbins)]
        npart = self.fluid.npart
        for iblk in range(1, nblk + 1):
            self.fluid.accepted = 0
            self.fluid.attempted = 0
            self.rdf = RadialDistribution(self.fluid.box, self.nbins, nstep)
            sum_v = sum_p = 0.0
            for _ in range(nstep):
                self.fluid.move()
                observed = self.measure()
                sum_v += observed.potential
                sum_p += observed.pressure
            estimates = {
                "potential": sum_v / nstep / npart + self.vtail,
                "pressure": sum_p / nstep + self.ptail,
            }
            for name, value in estimates.items():
                self.stats[name].add(value)
            for stat, value in zip(self.g_stats, self._g_block()):
                stat.add(value)
            yield iblk, estimates, self.fluid.acceptance()


def write_histogram(path: PathLike, centres: Iterable[float], means: Iterable[float],
                    errors: Iterable[float]) -> None:
    """Append one line per bin: radius, mean g(r) and its error."""
    with Path(path).open("a") as handle:
        for centre, mean, error in zip(centres, means, errors):
            handle.write(f"{centre:g}" + f"{mean:g}".rjust(_HISTOGRAM_WIDTH)
                         + f"{error:g}".rjust(_HISTOGRAM_WIDTH) + "\n")


def _column(value: float | int) -> str:
    text = str(value) if isinstance(value, int) else f"{value:g}"
    return text.rjust(_BLOCK_WIDTH)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Lennard-Jones gas: energy, pressure and radial distribution function.")
    parser.add_argument("--workdir", default=".",
                        help="directory holding the input files and receiving the output")
    parser.add_argument("--input", default="input.gas")
    parser.add_argument("--equilibration", type=int, default=30000)
    parser.add_argument("--nbins", type=int, default=DEFAULT_BINS)
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
    simulation = GasSimulation(fluid, args.nbins)

    initial = fluid.measure()
    print(f"Initial potential energy = {initial.potential / params.npart:g}")
    print(f"Initial temperature      = {initial.temperature:g}")
    print(f"Initial pressure         = {initial.pressure:g}")

    with (work / "PreprintEqGasMC.dat").open("a") as trace:
        for step, energy in simulation.equilibrate(args.equilibration):
            if step % 100 == 0:
                print(f"equilibration step: {step}")
            trace.write(f"{step}{_column(energy)}\n")

    with (work / "UGas.dat").open("a") as upot, (work / "PGas.dat").open("a") as press:
        for iblk, estimates, acceptance in simulation.run(params.nblk, params.nstep):
            print(f"Block number {iblk}")
            print(f"Acceptance rate {acceptance:g}")
            for handle, name in ((upot, "potential"), (press, "pressure")):
                stat = simulation.stats[name]
                handle.write(_column(iblk) + _column(estimates[name])
                             + _column(stat.total / iblk) + _column(stat.error()) + "\n")

    write_histogram(work / "GGas.dat", simulation.rdf.bin_centres(),
                    [stat.total / params.nblk for stat in simulation.g_stats],
                    [stat.error() for stat in simulation.g_stats])

    print("Print final configuration to file config.out")
    final_positions, final_velocities = fluid.final_configuration()
    write_vectors(work / "config.out", final_positions)
    write_vectors(work / "velocity.out", final_velocities)
    rng.save_seed(work / "seed.out")
    return 0