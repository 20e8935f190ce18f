import math

import pytest

from montelab.ising import (
    Estimate,
    IsingChain,
    IsingParameters,
    Sampler,
    block_error,
    main,
    temperature_scan,
    write_results,
)
from montelab.rng import Random


def make_rng():
    return Random((0, 0, 0, 1), 2892, 2587)


def make_params(**overrides):
    values = dict(nspin=10, coupling=1.0, field=0.0, sampler=Sampler.METROPOLIS,
                  nblk=4, nstep=20)
    values.update(overrides)
    return IsingParameters(**values)


def write_inputs(directory, text):
    (directory / "input.dat").write_text(text)
    (directory / "Primes").write_text("2892 2587\n")
    (directory / "seed.in").write_text("0 0 0 1\n")


def test_from_file_reads_all_fields(tmp_path):
    path = tmp_path / "input.dat"
    path.write_text("12\n1.5\n0.02\n1\n7\n300\n")
    params = IsingParameters.from_file(path)
    assert params == IsingParameters(12, 1.5, 0.02, Sampler.METROPOLIS, 7, 300)


def test_from_file_non_one_flag_means_gibbs(tmp_path):
    path = tmp_path / "input.dat"
    path.write_text("8 1.0 0.0 0 3 10")
    assert IsingParameters.from_file(path).sampler is Sampler.GIBBS


def test_from_file_too_short(tmp_path):
    path = tmp_path / "input.dat"
    path.write_text("8 1.0 0.0")
    with pytest.raises(ValueError):
        IsingParameters.from_file(path)


def test_sampler_label_names_gibbs_output_files(tmp_path):
    results = {key: Estimate(0.0, 0.0) for key in
               ("energy", "heat_capacity", "magnetization", "susceptibility")}
    paths = write_results(results, 1.0, 0.0, Sampler.GIBBS, tmp_path)
    assert sorted(path.name for path in paths) == sorted([
        "output.ene.0.000000gibbs",
        "output.heat.0.000000gibbs",
        "output.mag.0.000000gibbs",
        "output.chi.0.000000gibbs",
    ])


def test_empty_chain_rejected():
    with pytest.raises(ValueError):
        IsingChain(make_params(nspin=0), make_rng(), 1.0)


def test_initial_spins_are_unit():
    chain = IsingChain(make_params(nspin=30), make_rng(), 1.0)
    assert len(chain.spins) == 30
    assert set(chain.spins) <= {-1, 1}


def test_pbc_wraps_both_ends():
    chain = IsingChain(make_params(nspin=7), make_rng(), 1.0)
    assert chain.pbc(-1) == 6
    assert chain.pbc(7) == 0
    assert chain.pbc(3) == 3


def test_site_energy_is_odd_in_spin():
    chain = IsingChain(make_params(field=0.7), make_rng(), 1.0)
    for index in range(chain.nspin):
        assert chain.site_energy(1, index) == pytest.approx(-chain.site_energy(-1, index))


def test_site_energy_aligned_chain():
    params = make_params(coupling=1.3, field=0.4)
    chain = IsingChain(params, make_rng(), 1.0)
    chain.spins = [1] * params.nspin
    assert chain.site_energy(1, 0) == pytest.approx(-(2 * params.coupling + params.field))


def test_measure_aligned_chain():
    params = make_params(coupling=1.0, field=0.5)
    chain = IsingChain(params, make_rng(), 1.0)
    chain.spins = [1] * params.nspin
    energy, magnetization = chain.measure()
    assert energy == pytest.approx(-(params.coupling + params.field) * params.nspin)
    assert magnetization == params.nspin


def test_measure_alternating_chain():
    params = make_params(nspin=8, coupling=2.0, field=0.0)
    chain = IsingChain(params, make_rng(), 1.0)
    chain.spins = [1, -1] * 4
    energy, magnetization = chain.measure()
    assert energy == pytest.approx(params.coupling * params.nspin)
    assert magnetization == 0


def test_metropolis_sweep_counts_attempts():
    params = make_params(nspin=12)
    chain = IsingChain(params, make_rng(), 1.5)
    chain.move()
    assert chain.attempted == params.nspin
    assert 0 <= chain.accepted <= chain.attempted
    assert set(chain.spins) <= {-1, 1}


@pytest.mark.parametrize("sampler", [Sampler.GIBBS, Sampler.METROPOLIS])
def test_strong_field_aligns_spins(sampler):
    params = make_params(field=5.0, sampler=sampler)
    chain = IsingChain(params, make_rng(), 0.1)
    chain.equilibrate(200)
    assert chain.measure()[1] == params.nspin


def test_run_blocks_on_frozen_chain():
    params = make_params(field=5.0)
    temperature = 0.1
    chain = IsingChain(params, make_rng(), temperature)
    chain.spins = [1] * params.nspin
    results = chain.run_blocks(3, 10)
    assert set(results) == {"energy", "heat_capacity", "magnetization", "susceptibility"}
    assert results["energy"].mean == pytest.approx(-(params.coupling + params.field))
    assert results["heat_capacity"].mean == pytest.approx(0.0, abs=1e-9)
    assert results["magnetization"].mean == pytest.approx(1.0)
    assert results["susceptibility"].mean == pytest.approx(params.nspin / temperature)
    assert all(estimate.error == pytest.approx(0.0, abs=1e-6) for estimate in results.values())


def test_run_blocks_rejects_empty_run():
    chain = IsingChain(make_params(), make_rng(), 1.0)
    with pytest.raises(ValueError):
        chain.run_blocks(2, 0)


def test_run_blocks_is_reproducible():
    first = IsingChain(make_params(), make_rng(), 1.0).run_blocks(3, 15)
    second = IsingChain(make_params(), make_rng(), 1.0).run_blocks(3, 15)
    assert first == second
    assert -1.0 <= first["magnetization"].mean <= 1.0


def test_block_error_single_block_is_zero():
    assert block_error(5.0, 30.0, 1) == 0.0


def test_block_error_identical_blocks():
    assert block_error(6.0, 12.0, 3) == pytest.approx(0.0)


def test_block_error_two_values():
    assert block_error(4.0, 10.0, 2) == pytest.approx(1.0)


def test_write_results_appends_lines(tmp_path):
    results = {key: Estimate(0.25, 0.125) for key in
               ("energy", "heat_capacity", "magnetization", "susceptibility")}
    write_results(results, 0.5, 0.0, Sampler.METROPOLIS, tmp_path)
    paths = write_results(results, 0.6, 0.0, Sampler.METROPOLIS, tmp_path)
    energy_file = tmp_path / "output.ene.0.000000metro"
    assert energy_file in paths
    lines = energy_file.read_text().splitlines()
    assert len(lines) == 2
    assert [float(value) for value in lines[0].split()] == [0.5, 0.25, 0.125]
    assert len(lines[0]) == 3 * 14
    assert {path.name for path in paths} == {
        "output.ene.0.000000metro",
        "output.heat.0.000000metro",
        "output.mag.0.000000metro",
        "output.chi.0.000000metro",
    }


def test_temperature_scan_follows_temperatures():
    temperatures = [0.5, 1.0, 2.0]
    scan = list(temperature_scan(make_params(nblk=2, nstep=5), make_rng(), temperatures, 2))
    assert [temperature for temperature, _ in scan] == temperatures
    for _, results in scan:
        assert abs(results["magnetization"].mean) <= 1.0
        assert results["susceptibility"].mean >= 0.0


def test_main_writes_output_files(tmp_path):
    write_inputs(tmp_path, "6\n1.0\n0.0\n1\n2\n5\n")
    code = main([
        "--input", str(tmp_path / "input.dat"),
        "--primes", str(tmp_path / "Primes"),
        "--seed", str(tmp_path / "seed.in"),
        "--output-dir", str(tmp_path),
        "--tmin", "0.5", "--tmax", "0.65", "--tstep", "0.1",
        "--equilibration", "3",
    ])
    assert code == 0
    lines = (tmp_path / "output.ene.0.000000metro").read_text().splitlines()
    temperatures = [float(line.split()[0]) for line in lines]
    assert temperatures == pytest.approx([0.5, 0.6])
    for prefix in ("heat", "mag", "chi"):
        assert len((tmp_path / f"output.{prefix}.0.000000metro").read_text().splitlines()) == 2


def test_main_both_samplers(tmp_path):
    write_inputs(tmp_path, "4 1.0 0.0 1 2 3")
    main([
        "--input", str(tmp_path / "input.dat"),
        "--primes", str(tmp_path / "Primes"),
        "--seed", str(tmp_path / "seed.in"),
        "--output-dir", str(tmp_path),
        "--tmin", "1.0", "--tmax", "1.05", "--tstep", "0.1",
        "--equilibration", "1",
        "--sampler", "both",
    ])
    gibbs = (tmp_path / "output.mag.0.000000gibbs").read_text().splitlines()
    metro = (tmp_path / "output.mag.0.000000metro").read_text().splitlines()
    assert len(gibbs) == 1 and len(metro) == 1
    assert not math.isnan(float(gibbs[0].split()[1]))