"""One-dimensional Ising chain sampled with Metropolis or Gibbs moves.

Units are k_B = 1 and mu_B = 1. Observables are estimated with block
averages: internal energy, heat capacity, magnetisation and magnetic
susceptibility, each per spin.
"""

from __future__ import annotations

import argparse
import math
from dataclasses import dataclass, replace
from enum import IntEnum
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Sequence, Union

from montelab.rng import Random

PathLike = Union[str, Path]

OBSERVABLES = ("energy", "heat_capacity", "magnetization", "susceptibility")
_FILE_PREFIX = {
    "energy": "ene",
    "heat_capacity": "heat",
    "magnetization": "mag",
    "susceptibility": "chi",
}
_COLUMN_WIDTH = 14
_EXP_LIMIT = 709.0


class Sampler(IntEnum):
    """Single-spin update rule."""

    GIBBS = 0
    METROPOLIS = 1

    @property
    def label(self) -> str:
        return "metro" if self is Sampler.METROPOLIS else "gibbs"


@dataclass(frozen=True)
class IsingParameters:
    """Chain size, couplings and run lengths."""

    nspin: int
    coupling: float
    field: float
    sampler: Sampler
    nblk: int
    nstep: int

    @classmethod
    def from_file(cls, path: PathLike) -> "IsingParameters":
        """Read nspin, J, h, sampler flag, blocks and steps, in that order."""
        tokens = Path(path).read_text().split()
        if len(tokens) < 6:
            raise ValueError(f"{path}: expected six input values")
        sampler = Sampler.METROPOLIS if int(tokens[3]) == 1 else Sampler.GIBBS
        return cls(
            nspin=int(tokens[0]),
            coupling=float(tokens[1]),
            field=float(tokens[2]),
            sampler=sampler,
            nblk=int(tokens[4]),
            nstep=int(tokens[5]),
        )


@dataclass(frozen=True)
class Estimate:
    """Block-averaged mean and its statistical error."""

    mean: float
    error: float


def _safe_exp(x: float) -> float:
    return math.exp(x) if x < _EXP_LIMIT else math.inf


def block_error(total: float, total2: float, iblk: int) -> float:
    """Standard error of the mean after ``iblk`` blocks; zero for one block."""
    if iblk == 1:
        return 0.0
    variance = total2 / iblk - (total / iblk) ** 2
    return math.sqrt(max(variance, 0.0) / (iblk - 1))


class IsingChain:
    """A periodic chain of spins at a given temperature."""

    def __init__(self, params: IsingParameters, rng: Random, temperature: float) -> None:
        if params.nspin < 1:
            raise ValueError("the chain needs at least one spin")
        self.params = params
        self.rng = rng
        self.temperature = float(temperature)
        self.accepted = 0
        self.attempted = 0
        self.spins = [1 if rng.rannyu() >= 0.5 else -1 for _ in range(params.nspin)]

    @property
    def nspin(self) -> int:
        return self.params.nspin

    @property
    def beta(self) -> float:
        return 1.0 / self.temperature

    def pbc(self, index: int) -> int:
        """Wrap a site index onto the ring."""
        return index % self.nspin

    def site_energy(self, spin: int, index: int) -> float:
        """Energy of ``spin`` placed at ``index`` in the current neighbourhood."""
        neighbours = self.spins[self.pbc(index - 1)] + self.spins[self.pbc(index + 1)]
        return -self.params.coupling * spin * neighbours - self.params.field * spin

    def move(self) -> None:
        """One sweep of nspin single-spin updates at randomly chosen sites."""
        beta = self.beta
        metropolis = self.params.sampler is Sampler.METROPOLIS
        for _ in range(self.nspin):
            site = int(self.rng.rannyu() * self.nspin)
            if metropolis:
                current = self.spins[site]
                delta_e = self.site_energy(-current, site) - self.site_energy(current, site)
                if self.rng.rannyu() < _safe_exp(-beta * delta_e):
                    self.spins[site] = -current
                    self.accepted += 1
                self.attempted += 1
            else:
                gap = self.site_energy(1, site) - self.site_energy(-1, site)
                p_up = 1.0 / (1.0 + _safe_exp(beta * gap))
                self.spins[site] = 1 if self.rng.rannyu() < p_up else -1

    def measure(self) -> tuple[float, float]:
        """Total energy and total magnetisation of the chain."""
        coupling, field = self.params.coupling, self.params.field
        following = self.spins[1:] + self.spins[:1]
        energy = 0.0
        for spin, right in zip(self.spins, following):
            energy += -coupling * spin * right - 0.5 * field * (spin + right)
        return energy, float(sum(self.spins))

    def equilibrate(self, sweeps: int) -> None:
        for _ in range(sweeps):
            self.move()

    def run_blocks(self, nblk: int, nstep: int) -> dict[str, Estimate]:
        """Run ``nblk`` blocks of ``nstep`` sweeps and return the estimates."""
        if nblk < 1 or nstep < 1:
            raise ValueError("need at least one block and one step per block")
        totals = dict.fromkeys(OBSERVABLES, 0.0)
        totals2 = dict.fromkeys(OBSERVABLES, 0.0)
        errors = dict.fromkeys(OBSERVABLES, 0.0)
        n = float(self.nspin)
        for iblk in range(1, nblk + 1):
            self.accepted = 0
            self.attempted = 0
            sum_u = sum_u2 = sum_m = sum_m2 = 0.0
            for _ in range(nstep):
                self.move()
                u, m = self.measure()
                sum_u += u
                sum_u2 += u * u
                sum_m += m
                sum_m2 += m * m
            norm = float(nstep)
            beta = self.beta
            block = {
                "energy": sum_u / norm / n,
                "heat_capacity": beta * beta * (sum_u2 / norm - (sum_u / norm) ** 2) / n,
                "magnetization": sum_m / norm / n,
                "susceptibility": beta * sum_m2 / norm / n,
            }
            for key, value in block.items():
                totals[key] += value
                totals2[key] += value * value
                errors[key] = block_error(totals[key], totals2[key], iblk)
        return {key: Estimate(totals[key] / nblk, errors[key]) for key in OBSERVABLES}


def _column(value: float) -> str:
    return f"{value:.6g}".rjust(_COLUMN_WIDTH)


def write_results(results: Mapping[str, Estimate], temperature: float, field: float,
                  sampler: Sampler, directory: PathLike = ".") -> list[Path]:
    """Append one line per observable to its output file; return the paths."""
    base = Path(directory)
    written = []
    for key in OBSERVABLES:
        estimate = results[key]
        path = base / f"output.{_FILE_PREFIX[key]}.{field:f}{sampler.label}"
        with path.open("a") as handle:
            handle.write(_column(temperature) + _column(estimate.mean)
                         + _column(estimate.error) + "\n")
        written.append(path)
    return written


def temperature_scan(params: IsingParameters, rng: Random, temperatures: Iterable[float],
                     equilibration: int = 6000) -> Iterator[tuple[float, dict[str, Estimate]]]:
    """Carry one chain through the temperatures, yielding the estimates at each."""
    chain = None
    for temperature in temperatures:
        if chain is None:
            chain = IsingChain(params, rng, temperature)
        chain.temperature = float(temperature)
        chain.equilibrate(equilibration)
        yield chain.temperature, chain.run_blocks(params.nblk, params.nstep)


def _temperature_range(start: float, stop: float, step: float) -> Iterator[float]:
    if step <= 0:
        raise ValueError("temperature step must be positive")
    value = start
    while value <= stop:
        yield value
        value += step


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Monte Carlo simulation of the 1D Ising model.")
    parser.add_argument("--input", default="input.dat")
    parser.add_argument("--primes", default="Primes")
    parser.add_argument("--seed", default="seed.in")
    parser.add_argument("--output-dir", default=".")
    parser.add_argument("--tmin", type=float, default=0.2)
    parser.add_argument("--tmax", type=float, default=3.1)
    parser.add_argument("--tstep", type=float, default=0.1)
    parser.add_argument("--equilibration", type=int, default=6000)
    parser.add_argument("--sampler", choices=("gibbs", "metropolis", "both"), default=None)
    args = parser.parse_args(argv)

    params = IsingParameters.from_file(args.input)
    rng = Random.from_files(args.primes, args.seed)

    print("Classic 1D Ising model")
    print("Monte Carlo simulation")
    print("Nearest neighbour interaction")
    print("Boltzmann weight exp(- beta * H ), beta = 1/T")
    print("The program uses k_B=1 and mu_B=1 units")
    print(f"Number of spins = {params.nspin}")
    print(f"Exchange interaction = {params.coupling:g}")
    print(f"External field = {params.field:g}")
    print(f"Number of blocks = {params.nblk}")
    print(f"Number of steps in one block = {params.nstep}")

    if args.sampler is None:
        samplers = [params.sampler]
    elif args.sampler == "both":
        samplers = [Sampler.GIBBS, Sampler.METROPOLIS]
    else:
        samplers = [Sampler.GIBBS if args.sampler == "gibbs" else Sampler.METROPOLIS]

    for sampler in samplers:
        run_params = replace(params, sampler=sampler)
        print(f"The program performs {'Metropolis' if sampler is Sampler.METROPOLIS else 'Gibbs'} moves")
        temperatures = _temperature_range(args.tmin, args.tmax, args.tstep)
        for temperature, results in temperature_scan(run_params, rng, temperatures,
                                                     args.equilibration):
            print(f"Temperature = {temperature:g}")
            write_results(results, temperature, run_params.field, sampler, args.output_dir)
    return 0