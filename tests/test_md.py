import math

import pytest

from montelab.md import (
    BlockStatistic,
    Ensemble,
    FluidParameters,
    LennardJonesFluid,
    block_error,
    initial_velocities,
    main,
    read_vectors,
    run_blocks,
    write_vectors,
)
from montelab.rng import Random

R_MIN = 2.0 ** (1.0 / 6.0)


def make_rng():
    return Random((0, 0, 0, 1), 2892, 2587)


def make_params(**overrides):
    values = dict(
        ensemble=Ensemble.MONTE_CARLO,
        restart=False,
        temperature=1.1,
        npart=2,
        rho=0.002,
        rcut=2.5,
        delta=0.1,
        nblk=2,
        nstep=3,
    )
    values.update(overrides)
    return FluidParameters(**values)


def pair_fluid(ensemble=Ensemble.MONTE_CARLO, separation=R_MIN):
    params = make_params(ensemble=ensemble)
    box = params.box()
    positions = [(0.0, 0.0, 0.0), (separation / box, 0.0, 0.0)]
    velocities = [(0.0, 0.0, 0.0), (0.0, 0.0, 0.0)]
    return LennardJonesFluid(params, make_rng(), positions, velocities)


def cluster_fluid(ensemble):
    params = make_params(ensemble=ensemble, npart=4, rho=0.05, delta=0.001)
    rng = make_rng()
    positions = [(0.0, 0.0, 0.0), (0.25, 0.0, 0.0), (0.0, 0.25, 0.0), (0.0, 0.0, 0.25)]
    velocities = initial_velocities(rng, 4, params.temperature)
    return LennardJonesFluid(params, rng, positions, velocities)


def test_parameters_from_file(tmp_path):
    path = tmp_path / "input.gas"
    path.write_text("1\n0\n1.1\n108\n0.8\n2.5\n0.12\n20\n2000\n")
    params = FluidParameters.from_file(path)
    assert params.ensemble is Ensemble.MONTE_CARLO
    assert params.restart is False
    assert params.npart == 108
    assert params.nblk == 20
    assert params.nstep == 2000
    assert params.volume() == pytest.approx(108 / 0.8)
    assert params.box() ** 3 == pytest.approx(params.volume())


def test_parameters_molecular_dynamics_flag(tmp_path):
    path = tmp_path / "input.gas"
    path.write_text("0 1 1.1 108 0.8 2.5 0.0005 20 2000")
    params = FluidParameters.from_file(path)
    assert params.ensemble is Ensemble.MOLECULAR_DYNAMICS
    assert params.restart is True


def test_parameters_short_file_rejected(tmp_path):
    path = tmp_path / "input.gas"
    path.write_text("1 0 1.1")
    with pytest.raises(ValueError):
        FluidParameters.from_file(path)


def test_block_statistic_constant_values():
    stat = BlockStatistic()
    for _ in range(5):
        stat.add(2.5)
    assert stat.count == 5
    assert stat.mean() == pytest.approx(2.5)
    assert stat.error() == pytest.approx(0.0, abs=1e-12)


def test_block_statistic_empty_raises():
    with pytest.raises(ValueError):
        BlockStatistic().mean()


def test_block_error_single_block_is_zero():
    assert block_error(3.0, 9.0, 1) == pytest.approx(0.0)


def test_block_error_matches_statistic():
    stat = BlockStatistic()
    for value in (1.0, 3.0, 2.0):
        stat.add(value)
    assert stat.error() == block_error(6.0, 14.0, 3)
    assert stat.error() > 0


def test_initial_velocities_zero_momentum_and_temperature():
    velocities = initial_velocities(make_rng(), 10, 1.5)
    assert len(velocities) == 10
    for axis in range(3):
        assert sum(v[axis] for v in velocities) == pytest.approx(0.0, abs=1e-10)
    mean_square = sum(c * c for v in velocities for c in v) / 10
    assert mean_square == pytest.approx(3 * 1.5)


def test_initial_velocities_needs_particles():
    with pytest.raises(ValueError):
        initial_velocities(make_rng(), 0, 1.0)


def test_vectors_round_trip(tmp_path):
    path = tmp_path / "vectors.dat"
    vectors = [(0.5, -1.25, 0.0), (3.0, 0.125, -0.75)]
    write_vectors(path, vectors)
    assert read_vectors(path, 2) == vectors


def test_read_vectors_too_few(tmp_path):
    path = tmp_path / "vectors.dat"
    path.write_text("1 2 3\n")
    with pytest.raises(ValueError):
        read_vectors(path, 2)


def test_pbc_wraps_into_box():
    fluid = pair_fluid()
    box = fluid.box
    assert fluid.pbc(box) == pytest.approx(0.0, abs=1e-12)
    assert fluid.pbc(0.3) == pytest.approx(0.3)
    for value in (-7.3, -0.6 * box, 0.51 * box, 13.9):
        wrapped = fluid.pbc(value)
        assert abs(wrapped) <= box / 2 + 1e-12
        assert (value - wrapped) / box == pytest.approx(round((value - wrapped) / box))


def test_mismatched_particle_count_rejected():
    params = make_params()
    with pytest.raises(ValueError):
        LennardJonesFluid(params, make_rng(), [(0.0, 0.0, 0.0)], [(0.0, 0.0, 0.0)])


def test_potential_minimum_of_pair():
    fluid = pair_fluid()
    obs = fluid.measure()
    assert obs.potential == pytest.approx(-1.0)
    assert obs.kinetic == 0.0
    assert obs.total == pytest.approx(obs.potential)


def test_particle_energy_matches_pair_potential():
    fluid = pair_fluid(separation=1.3)
    total = fluid.measure().potential
    assert fluid.particle_energy(fluid.positions[0], 0) == pytest.approx(total)
    assert fluid.particle_energy(fluid.positions[1], 1) == pytest.approx(total)


def test_cutoff_removes_interaction():
    fluid = pair_fluid(separation=3.0)
    assert fluid.measure().potential == 0.0
    assert fluid.force(0) == (0.0, 0.0, 0.0)


def test_force_vanishes_at_minimum():
    fluid = pair_fluid()
    for component in fluid.force(0):
        assert component == pytest.approx(0.0, abs=1e-10)


def test_forces_are_opposite():
    fluid = pair_fluid(separation=1.05)
    f0 = fluid.force(0)
    f1 = fluid.force(1)
    for a, b in zip(f0, f1):
        assert a == pytest.approx(-b)
    # repulsive at short range: particle 0 sits at lower x and is pushed away
    assert f0[0] < 0


def test_kinetic_and_temperature_from_velocities():
    params = make_params()
    velocities = [(1.0, 0.0, 0.0), (0.0, 2.0, 0.0)]
    fluid = LennardJonesFluid(params, make_rng(),
                              [(0.0, 0.0, 0.0), (0.3, 0.0, 0.0)], velocities)
    obs = fluid.measure()
    assert obs.kinetic == pytest.approx(0.5 * (1.0 + 4.0))
    assert obs.temperature == pytest.approx(2.0 / 3.0 * obs.kinetic / 2)
    assert obs.total == pytest.approx(obs.potential + obs.kinetic)


def test_monte_carlo_sweep_counts_and_bounds():
    fluid = cluster_fluid(Ensemble.MONTE_CARLO)
    fluid.move()
    assert fluid.attempted == 4
    assert 0.0 <= fluid.acceptance() <= 1.0
    for pos in fluid.positions:
        assert all(abs(c) <= fluid.box / 2 + 1e-12 for c in pos)


def test_monte_carlo_is_deterministic():
    first = cluster_fluid(Ensemble.MONTE_CARLO)
    second = cluster_fluid(Ensemble.MONTE_CARLO)
    for _ in range(5):
        first.move()
        second.move()
    assert first.positions == second.positions


def test_molecular_dynamics_conserves_momentum():
    fluid = cluster_fluid(Ensemble.MOLECULAR_DYNAMICS)
    for _ in range(20):
        fluid.move()
    for axis in range(3):
        assert sum(v[axis] for v in fluid.velocities) == pytest.approx(0.0, abs=1e-9)
    assert fluid.acceptance() == 1.0


def test_final_configuration_returns_box_units():
    params = make_params()
    positions = [(0.1, -0.2, 0.3), (0.25, 0.0, -0.4)]
    velocities = [(0.5, 0.0, 0.0), (-0.5, 0.0, 0.0)]
    fluid = LennardJonesFluid(params, make_rng(), positions, velocities)
    final_positions, final_velocities = fluid.final_configuration()
    for got, expected in zip(final_positions, positions):
        assert got == pytest.approx(expected)
    assert final_velocities == velocities


def test_run_blocks_monte_carlo_keeps_temperature():
    fluid = cluster_fluid(Ensemble.MONTE_CARLO)
    temperature = fluid.measure().temperature
    blocks = list(run_blocks(fluid, 3, 2))
    assert [b[0] for b in blocks] == [1, 2, 3]
    _, block, stats, acceptance = blocks[-1]
    assert stats["temperature"].count == 3
    assert stats["temperature"].mean() == pytest.approx(temperature)
    assert stats["temperature"].error() == pytest.approx(0.0, abs=1e-9)
    assert block.temperature == pytest.approx(temperature)
    assert 0.0 <= acceptance <= 1.0


def test_run_blocks_rejects_empty_run():
    fluid = pair_fluid()
    with pytest.raises(ValueError):
        list(run_blocks(fluid, 0, 5))


def _prepare_workdir(directory, restart):
    directory.joinpath("input.gas").write_text(
        f"1\n{restart}\n1.1\n4\n0.05\n2.5\n0.2\n2\n3\n")
    directory.joinpath("Primes").write_text("2892 2587\n")
    directory.joinpath("seed.in").write_text("0 0 0 1\n")
    directory.joinpath("config.in").write_text(
        "0 0 0\n0.25 0 0\n0 0.25 0\n0 0 0.25\n")


def test_main_writes_outputs_and_restarts(tmp_path):
    _prepare_workdir(tmp_path, 0)
    assert main(["--workdir", str(tmp_path), "--equilibration", "3"]) == 0
    epot = tmp_path.joinpath("output_epot.dat").read_text().splitlines()
    assert len(epot) == 2
    assert epot[0].split()[0] == "1"
    assert len(tmp_path.joinpath("PreprintTempG.dat").read_text().splitlines()) == 3
    assert len(read_vectors(tmp_path / "config.out", 4)) == 4
    assert len(tmp_path.joinpath("seed.out").read_text().split()) == 4

    _prepare_workdir(tmp_path, 1)
    assert main(["--workdir", str(tmp_path), "--equilibration", "0"]) == 0
    assert len(tmp_path.joinpath("output_press.dat").read_text().splitlines()) == 4