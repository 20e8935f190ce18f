[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "montelab"
version = "0.1.0"
description = "Monte Carlo and molecular dynamics simulations: 1D Ising chain, Lennard-Jones fluids, variational annealing and genetic TSP"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "monte-carlo",
    "metropolis",
    "gibbs-sampling",
    "ising-model",
    "molecular-dynamics",
    "lennard-jones",
    "radial-distribution-function",
    "simulated-annealing",
    "variational-monte-carlo",
    "genetic-algorithm",
    "travelling-salesman",
    "data-blocking",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Physics",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
montelab-ising = "montelab.ising:main"
montelab-annealing = "montelab.annealing:main"
montelab-md = "montelab.md:main"
montelab-rdf = "montelab.rdf:main"
montelab-tsp = "montelab.tsp:main"

[tool.hatch.build.targets.wheel]
packages = ["montelab"]

[tool.hatch.build.targets.sdist]
include = ["montelab", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
