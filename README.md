# montelab

Small stochastic simulations that share one reproducible random-number
generator:

- **1D Ising chain** (`montelab.ising`): Metropolis or Gibbs sampling of a
  ring of spins. Energy, heat capacity, magnetisation and susceptibility per
  spin are estimated by data blocking over a range of temperatures.
- **Lennard-Jones fluid** (`montelab.md`): molecular dynamics (NVE, Verlet)
  or Monte Carlo (NVT, Metropolis) in a periodic cubic box. It reports
  potential, kinetic and total energy, temperature and pressure.
- **Radial distribution function** (`montelab.rdf`): the Lennard-Jones gas
  with tail corrections to energy and pressure, plus a g(r) histogram
  accumulated block by block.
- **Variational ground state by simulated annealing** (`montelab.annealing`):
  a double-Gaussian trial wavefunction in the potential x⁴ − 5x²/2. Its
  parameters mu and sigma are annealed while ⟨H⟩ is estimated by Metropolis
  sampling of |psi|².
- **Travelling salesman by genetic algorithm** (`montelab.genetic`,
  `montelab.tsp`): tours of cities on a circle, in a square or read from a
  file, evolved by crossover and mutation. An island model exchanges members
  between several populations.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

Only the Python standard library is needed (Python 3.10 or later).

## The random-number generator

`montelab.rng.Random` is a 48-bit multiplicative congruential generator. It is
seeded with four 12-bit integers and two primes:

```python
from montelab.rng import Random

rng = Random([0, 0, 0, 1], 2892, 2587)
u = rng.rannyu(0.0, 1.0)     # uniform in [low, high)
g = rng.gauss(0.0, 1.0)      # Box-Muller normal deviate
k = rng.randint(1, 5)        # uniform draw in [low, high) truncated toward zero
rng.save_seed("seed.out")    # writes the four state limbs
```

Other draws are `exp`, `lorentz`, `choice`, `gbm_step` and
`gbm_step_direct`. `state()` returns the current four limbs.

`Random.from_files("Primes", "seed.in")` builds a generator from files.
`Primes` holds two integers. The seed file holds either the keyword
`RANDOMSEED` followed by four integers, or just four integers. `read_primes`
and `read_seed` read these files one at a time. `seed_file_for_rank(rank)`
gives the per-island seed file name, `seedP_<rank>.in`.

With the same seed and primes, every simulation is fully reproducible.

## Command-line programs

Every program needs a `Primes` file and a seed file.

| Command              | What it runs                                                |
|----------------------|-------------------------------------------------------------|
| `montelab-ising`     | Ising chain temperature scan                                |
| `montelab-md`        | Lennard-Jones fluid, MD or MC, with block averages          |
| `montelab-rdf`       | Lennard-Jones gas with g(r) and tail corrections            |
| `montelab-annealing` | Simulated annealing of the trial wavefunction               |
| `montelab-tsp`       | Genetic-algorithm travelling salesman                       |

Run any of them with `--help` to list its options.

### `montelab-ising`

Reads `input.dat` (`--input`), which holds, in order: number of spins, J, h,
a sampler flag (1 for Metropolis, anything else for Gibbs), number of blocks
and steps per block. It scans temperatures from `--tmin` to `--tmax` in steps
of `--tstep` (defaults 0.2, 3.1, 0.1), with `--equilibration` sweeps at each
temperature. `--sampler gibbs|metropolis|both` overrides the flag in the
input file. For each observable it appends a line of temperature, mean and
error to `output.<ene|heat|mag|chi>.<h><gibbs|metro>` in `--output-dir`.

### `montelab-md` and `montelab-rdf`

Both read their files from `--workdir`. `input.gas` (`--input`) holds, in
order: ensemble flag (1 for Monte Carlo, 0 for molecular dynamics), restart
flag, temperature, number of particles, density, cutoff, move or time step,
number of blocks and steps per block. Without restart they read `seed.in` and
`config.in` (positions in box units) and draw fresh velocities. With restart
they read `seed.out`, `config.out` and `velocity.out`. At the end they write
`config.out`, `velocity.out` and `seed.out`.

`montelab-md` appends block results to `output_epot.dat`, `output_ekin.dat`,
`output_etot.dat`, `output_temp.dat` and `output_press.dat`. It also traces
the temperature during equilibration in `PreprintTempG.dat`.

`montelab-rdf` appends tail-corrected potential energy and pressure to
`UGas.dat` and `PGas.dat`, and g(r) to `GGas.dat`. It traces the potential
energy during equilibration in `PreprintEqGasMC.dat`. `--nbins` sets the
number of histogram bins.

### `montelab-annealing`

Anneals mu and sigma block by block until the spread of the energy inside a
block falls below `--precision`, or until `--max-iterations` blocks. It writes
`annealing.dat` (block, running mean, error, block mean, block spread, mu,
sigma), `Punto3.dat` (progressive estimate of ⟨H⟩), `histo.dat` (positions
sampled from |psi|²) and `seed.out` into `--output-dir`.

### `montelab-tsp`

```
montelab-tsp [circle|square|capitals|islands] [--workdir DIR] ...
```

- `circle` and `square` place `--cities` cities (34 by default) at random.
- `capitals` reads 50 lines of `state capital x y` from
  `American_capitals.dat` (`--capitals`).
- `islands` solves the capitals with `--islands` populations. Each is seeded
  from its own `seedP_<rank>.in`, and members are exchanged every
  `--interval` generations.

Each run writes the per-generation statistics (best length, mean of the
better half, standard deviation), the city map and the best tour.

## Using the library

```python
from montelab.rng import Random
from montelab.genetic import CityMap, Population

rng = Random([0, 0, 0, 1], 2892, 2587)
cities = CityMap.random_circle(rng, 34, 1.0)
population = Population(rng, cities, 400, 34, 1.5, 0.15)
population.generate()
for _ in range(100):
    population.new_generation(100)
best, mean, stdev = population.statistics()
```

`montelab.tsp.evolve` and `montelab.tsp.IslandModel` drive populations over
many generations. `montelab.ising.temperature_scan`, `montelab.md.run_blocks`,
`montelab.rdf.GasSimulation.run` and `montelab.annealing.anneal` are
generators that yield results block by block.

## What it does not do

- The island model runs its populations one after another in a single
  process. It does not spread them over several processes or machines.
- The fluid programs do not write configuration snapshots during the run.
  They write only the final configuration.