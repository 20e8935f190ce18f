"""Variational Monte Carlo for a particle in a double-well potential.

The trial wavefunction is a sum of two Gaussians centred at +mu and -mu with
width sigma. Its parameters are tuned by simulated annealing on the
variational energy, which is estimated by Metropolis sampling of |psi|^2.
"""

from __future__ import annotations

import argparse
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Sequence

from montelab.rng import Random

PRECISION = 0.0015
METROPOLIS_STEP = 2.0
EQUILIBRATION_STEPS = 500
EVOLVE_SAMPLES = 70000


def potential(x: float) -> float:
    """Double-well potential x^4 - 5/2 x^2."""
    return x ** 4 - 5.0 * x * x / 2.0


def _ieee_div(numerator: float, denominator: float) -> float:
    if denominator != 0:
        return numerator / denominator
    if numerator == 0 or math.isnan(numerator):
        return math.nan
    return math.copysign(math.inf, numerator) * math.copysign(1.0, denominator)


@dataclass
class TrialWavefunction:
    """Symmetric sum of two Gaussians."""

    mu: float = 0.5
    sigma: float = 0.5
    mass: float = 1.0
    hbar: float = 1.0

    def psi(self, x: float) -> float:
        scale = math.sqrt(2.0) * self.sigma
        f1 = (x - self.mu) / scale
        f2 = (x + self.mu) / scale
        return math.exp(-f1 * f1) + math.exp(-f2 * f2)

    def psi2(self, x: float) -> float:
        value = self.psi(x)
        return value * value

    def second_derivative(self, x: float) -> float:
        """Second derivative of psi with respect to x."""
        a = ((x + self.mu) / self.sigma) ** 2
        b = ((x - self.mu) / self.sigma) ** 2
        return ((a - 1.0) * math.exp(-a / 2.0)
                + (b - 1.0) * math.exp(-b / 2.0)) / (self.sigma * self.sigma)

    def local_energy(self, x: float) -> float:
        """Potential plus kinetic term -hbar^2 psi'' / (2 m psi)."""
        kinetic = _ieee_div(-self.hbar * self.hbar * self.second_derivative(x),
                            2.0 * self.mass * self.psi(x))
        return potential(x) + kinetic


@dataclass(frozen=True)
class AnnealingBlock:
    """Summary of one constant-temperature annealing block."""

    index: int
    beta: float
    step: float
    mean_energy: float
    mean_error: float
    block_energy: float
    block_error: float
    mu: float
    sigma: float
    acceptance: float

    @property
    def temperature(self) -> float:
        return 1.0 / self.beta


class VariationalSampler:
    """Metropolis sampler of |psi|^2 that also anneals psi's parameters."""

    def __init__(self, rng: Random, wavefunction: TrialWavefunction | None = None,
                 step: float = METROPOLIS_STEP) -> None:
        self.rng = rng
        self.wavefunction = wavefunction if wavefunction is not None else TrialWavefunction()
        self.step = step
        self.accepted = 0
        self.attempted = 0
        self.annealing_accepted = 0
        self.annealing_attempted = 0
        self.evolve_samples = EVOLVE_SAMPLES
        self.equilibration = EQUILIBRATION_STEPS

    @property
    def acceptance(self) -> float:
        return self.accepted / self.attempted if self.attempted else 0.0

    def metropolis(self, x: float) -> float:
        """One uniform-step Metropolis move; returns the new position."""
        self.attempted += 1
        candidate = x + self.rng.rannyu(-self.step, self.step)
        current = self.wavefunction.psi2(x)
        probability = 1.0 if current == 0 else min(1.0, self.wavefunction.psi2(candidate) / current)
        if self.rng.rannyu() < probability:
            self.accepted += 1
            return candidate
        return x

    def sample_energy(self, x: float) -> tuple[float, float]:
        """Move once and return the new position with its local energy."""
        x = self.metropolis(x)
        return x, self.wavefunction.local_energy(x)

    def _block_means(self, samples: int, block_size: int,
                     equilibration: int | None) -> Iterator[float]:
        if block_size < 1 or samples < block_size:
            raise ValueError("need at least one block of at least one sample")
        steps = self.equilibration if equilibration is None else equilibration
        x = 1.0
        for _ in range(steps):
            x, _ = self.sample_energy(x)
        for _ in range(samples // block_size):
            total = 0.0
            for _ in range(block_size):
                x, energy = self.sample_energy(x)
                total += energy
            yield total / block_size

    def integral(self, samples: int, block_size: int,
                 equilibration: int | None = None) -> float:
        """Variational energy estimated from ``samples`` draws."""
        total = 0.0
        count = 0
        for mean in self._block_means(samples, block_size, equilibration):
            total += mean
            count += 1
        return total / count

    def progressive_integral(self, samples: int, block_size: int,
                             equilibration: int | None = None
                             ) -> Iterator[tuple[int, float, float]]:
        """Yield (block number, running mean, running error) per block."""
        total = total2 = 0.0
        for k, mean in enumerate(self._block_means(samples, block_size, equilibration)):
            total += mean
            total2 += mean * mean
            n = k + 1
            error = math.sqrt(max(total2 / n - (total / n) ** 2, 0.0) / k) if k else 0.0
            yield n, total / n, error

    def evolve(self, beta: float, delta: float) -> float:
        """One annealing move of mu and sigma; returns the energy kept."""
        self.annealing_attempted += 1
        wf = self.wavefunction
        old_mu, old_sigma = wf.mu, wf.sigma
        energy = self.integral(self.evolve_samples, 1)
        wf.mu += self.rng.rannyu(-delta, delta)
        wf.sigma += self.rng.rannyu(-delta, delta)
        new_energy = self.integral(self.evolve_samples, 1)
        increase = new_energy - energy
        probability = math.exp(-beta * increase) if increase > 0 else 1.0
        draw = self.rng.rannyu()
        if increase > 0:
            if draw < probability:
                self.annealing_accepted += 1
                energy = new_energy
            else:
                wf.mu, wf.sigma = old_mu, old_sigma
        return energy


def anneal(sampler: VariationalSampler, beta_min: float = 1.0, beta_step: float = 2.5,
           block_length: int = 15, precision: float = PRECISION,
           max_iterations: int = 10000) -> Iterator[AnnealingBlock]:
    """Lower the temperature block by block until the block spread is below precision."""
    if block_length < 1:
        raise ValueError("block_length must be positive")
    total = total2 = 0.0
    k = 0
    while True:
        beta = beta_min + k * beta_step
        step = 1.0 / math.sqrt(beta)
        sum_h = sum_h2 = sum_mu = sum_sigma = 0.0
        for _ in range(block_length):
            energy = sampler.evolve(beta, step)
            sum_h += energy
            sum_h2 += energy * energy
            sum_mu += sampler.wavefunction.mu
            sum_sigma += sampler.wavefunction.sigma
        spread = math.sqrt(max(sum_h2 / block_length - sum_h * sum_h / block_length ** 2, 0.0))
        mean = sum_h / block_length
        total += mean
        total2 += mean * mean
        n = k + 1
        progressive_error = (math.sqrt(max(total2 / n - (total / n) ** 2, 0.0) / k)
                             if k else precision)
        yield AnnealingBlock(
            index=n,
            beta=beta,
            step=step,
            mean_energy=total / n,
            mean_error=progressive_error,
            block_energy=mean,
            block_error=spread,
            mu=sum_mu / block_length,
            sigma=sum_sigma / block_length,
            acceptance=sampler.acceptance,
        )
        k += 1
        if spread < precision or k >= max_iterations:
            return


def _num(value: float) -> str:
    return f"{value:.6g}"


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Simulated annealing of a variational double-well wavefunction.")
    parser.add_argument("--primes", default="Primes")
    parser.add_argument("--seed", default="seed.in")
    parser.add_argument("--output-dir", default=".")
    parser.add_argument("--evolve-samples", type=int, default=EVOLVE_SAMPLES)
    parser.add_argument("--equilibration", type=int, default=EQUILIBRATION_STEPS)
    parser.add_argument("--block-length", type=int, default=15)
    parser.add_argument("--precision", type=float, default=PRECISION)
    parser.add_argument("--max-iterations", type=int, default=10000)
    parser.add_argument("--progress-samples", type=int, default=100000)
    parser.add_argument("--progress-block", type=int, default=100)
    parser.add_argument("--histogram-samples", type=int, default=50000)
    args = parser.parse_args(argv)

    out = Path(args.output_dir)
    rng = Random.from_files(args.primes, args.seed)
    sampler = VariationalSampler(rng)
    sampler.evolve_samples = args.evolve_samples
    sampler.equilibration = args.equilibration
    wf = sampler.wavefunction

    last = None
    with (out / "annealing.dat").open("w") as handle:
        for block in anneal(sampler, block_length=args.block_length,
                            precision=args.precision, max_iterations=args.max_iterations):
            handle.write(",".join([
                str(block.index), _num(block.mean_energy), _num(block.mean_error),
                _num(block.block_energy), _num(block.block_error),
                _num(block.mu), _num(block.sigma),
            ]) + "\n")
            print(f"BLOCK {block.index - 1}, t = {_num(block.temperature)}, "
                  f"step = {_num(block.step)}")
            print(f" mu = {_num(wf.mu)}, sigma = {_num(wf.sigma)}")
            print(f" Metropolis acceptance rate: {_num(block.acceptance)}")
            last = block

    if last is not None and last.block_error >= args.precision:
        print(f"unable to find result with precision {args.precision:g}")
    print(f"mu = {_num(wf.mu)}")
    print(f"sigma = {_num(wf.sigma)}")

    with (out / "Punto3.dat").open("w") as handle:
        for index, mean, error in sampler.progressive_integral(args.progress_samples,
                                                                args.progress_block):
            handle.write(f"{index},{_num(mean)},{_num(error)}\n")

    if last is not None:
        wf.mu, wf.sigma = last.mu, last.sigma
    x = 1.0
    with (out / "histo.dat").open("w") as handle:
        for _ in range(args.histogram_samples):
            x = sampler.metropolis(x)
            handle.write(_num(sampler.metropolis(x)) + "\n")

    rng.save_seed(out / "seed.out")
    return 0