"""Ising chain, Lennard-Jones fluid, variational annealing and genetic TSP simulations."""

__version__ = "0.1.0"

__all__ = ["rng", "ising", "annealing", "md", "rdf", "genetic", "tsp"]