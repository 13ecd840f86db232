"""Tests for the SimulationEngine time loop."""

from __future__ import annotations

import logging

import h5py
import numpy as np
import pytest

from kilonova.config import SimulationConfig
from kilonova.constants import LIGHT_SPEED
from kilonova.diagnostics.checkpoint import load_checkpoint
from kilonova.engine import SimulationEngine
from kilonova.errors import CheckpointIOError, SimulationDivergedError
from kilonova.fluid.eos import FluidState


class TestFixedTimeStep:

    def test_dt_is_constant(self, halo_config):
        with SimulationEngine(halo_config) as engine:
            expected = 4.0 * 1e18 * (np.pi / 32) / LIGHT_SPEED
            assert engine.dt_fixed == pytest.approx(expected)
            results = [engine.step() for _ in range(4)]
        assert all(r.dt == engine.dt_fixed for r in results)
        assert results[-1].time == pytest.approx(4 * engine.dt_fixed)
        assert [r.step for r in results] == [1, 2, 3, 4]

    def test_stops_before_overshooting(self, halo_config):
        with SimulationEngine(halo_config) as engine:
            summary = engine.run()
            dt = engine.dt_fixed
        assert summary["finished"]
        assert summary["sim_time"] <= 2e8
        assert summary["sim_time"] + dt > 2e8
        assert summary["iteration"] == int(2e8 // dt)

    def test_step_after_finish_is_noop(self, halo_config):
        with SimulationEngine(halo_config) as engine:
            engine.run()
            before = engine.primitive.copy()
            result = engine.step()
        assert result.finished
        assert result.dt == 0.0
        np.testing.assert_array_equal(engine.primitive, before)

    def test_max_steps(self, halo_config):
        with SimulationEngine(halo_config) as engine:
            summary = engine.run(max_steps=3)
        assert summary["steps"] == 3
        assert not summary["finished"]


class TestAdaptiveTimeStep:

    def test_lands_on_outputs_and_final_time(self, halo_config_dict):
        halo_config_dict["hydro"]["relativistic"].update(adaptive_time_step=True, cfl_number=0.4)
        halo_config_dict["control"].update(final_time=5e7, checkpoint_interval=2e7)
        config = SimulationConfig.from_dict(halo_config_dict)
        with SimulationEngine(config) as engine:
            assert engine.dt_fixed is None
            summary = engine.run()

        assert summary["sim_time"] == 5e7
        times = [load_checkpoint(name).time for name in summary["checkpoints_written"]]
        assert times == [0.0, 2e7, 4e7]

    def test_products_written_on_schedule(self, halo_config_dict):
        halo_config_dict["hydro"]["relativistic"].update(adaptive_time_step=True, cfl_number=0.4)
        halo_config_dict["control"].update(final_time=3e7, products_interval=1e7)
        config = SimulationConfig.from_dict(halo_config_dict)
        with SimulationEngine(config) as engine:
            engine.run()
            directory = engine.output_directory
        assert sorted(p.name for p in directory.glob("prods.*.h5")) == [
            "prods.0000.h5", "prods.0001.h5", "prods.0002.h5", "prods.0003.h5",
        ]


class TestBoundaries:

    def test_fixed_boundaries_stay_put(self, halo_config):
        with SimulationEngine(halo_config) as engine:
            for _ in range(3):
                result = engine.step()
        assert result.inner_radius == 1e18
        assert result.outer_radius == 1e20

    def test_jet_boundaries_wait_for_delay(self, jet_config):
        with SimulationEngine(jet_config) as engine:
            engine.run()
        assert engine.mesh.inner_radius == 1e9
        assert engine.mesh.outer_radius == 1e12

    def test_boundaries_move_without_rebinning(self, jet_config_dict):
        jet_config_dict["mesh"]["excision_delay"] = 0.0
        config = SimulationConfig.from_dict(jet_config_dict)
        with SimulationEngine(config) as engine:
            num_zones = engine.mesh.num_zones
            for _ in range(5):
                result = engine.step()
                assert result.inner_radius < result.outer_radius
        assert engine.mesh.num_zones == num_zones
        assert engine.primitive.shape == (num_zones, 4)
        assert engine.mesh.inner_radius == pytest.approx(1e9 + 1e9 * engine.time, rel=1e-12)
        assert engine.mesh.outer_radius == pytest.approx(1e12 + 3e10 * engine.time, rel=1e-12)

    def test_switch_on_step_keeps_static_state(self, jet_config, monkeypatch):
        """A uniform gas at rest stays put while the boundaries start moving."""
        with SimulationEngine(jet_config) as engine:
            dt = engine.dt_fixed
            engine.mesh.inner.delay = 0.5 * dt
            engine.mesh.outer.delay = 0.5 * dt
            engine.primitive[:] = [1.0, 0.0, 1e-3, 0.0]
            monkeypatch.setattr(
                engine.model, "inner_boundary_condition",
                lambda time, interior, radius: FluidState(*interior[0]),
            )

            engine.step()
            assert engine.mesh.inner_radius == 1e9
            assert engine.mesh.outer_radius == 1e12
            np.testing.assert_allclose(engine.primitive[:, 0], 1.0, rtol=1e-12)

            engine.step()
            assert engine.mesh.inner_radius == pytest.approx(1e9 + 1e9 * dt)
            assert engine.mesh.outer_radius == pytest.approx(1e12 + 3e10 * dt)
            np.testing.assert_allclose(engine.primitive[:, 0], 1.0, rtol=1e-6)
            np.testing.assert_allclose(engine.primitive[:, 2], 1e-3, rtol=1e-6)

    def test_engine_feeds_guard_zones(self, jet_config):
        with SimulationEngine(jet_config) as engine:
            for _ in range(5):
                engine.step()
            guard = engine.model.inner_boundary_condition(
                engine.time, engine.primitive, engine.mesh.inner_radius,
            )
            assert guard.gamma_beta == jet_config.model.jet_in_star.engine_u
            assert np.all(np.isfinite(engine.primitive))
            assert np.all(engine.primitive[:, 0] > 0.0)
            assert np.all(engine.primitive[:, 2] > 0.0)

    def test_halo_inner_boundary_admits_no_inflow(self, halo_config):
        with SimulationEngine(halo_config) as engine:
            engine.run()
            mass = engine.diagnostic_scalars()["total_mass"]
            assert np.all(np.isfinite(engine.primitive))
        assert mass > 0.0


class TestConservation:

    def test_mass_conserved_away_from_boundaries(self, static_shell_config_dict):
        config = SimulationConfig.from_dict(static_shell_config_dict)
        with SimulationEngine(config) as engine:
            initial = engine.diagnostic_scalars()["total_mass"]
            summary = engine.run()
        assert summary["finished"]
        assert summary["total_mass"] == pytest.approx(initial, rel=1e-10)

    def test_threads_do_not_change_result(self, halo_config_dict):
        inline = SimulationEngine(SimulationConfig.from_dict(halo_config_dict))
        halo_config_dict["control"]["num_threads"] = 3
        threaded = SimulationEngine(SimulationConfig.from_dict(halo_config_dict))
        with inline, threaded:
            inline.run(max_steps=5)
            threaded.run(max_steps=5)
        np.testing.assert_array_equal(threaded.primitive, inline.primitive)


class TestFloors:

    def _force_failures(self, engine, monkeypatch):
        recover = engine.solver.recover_block

        def failing(conserved, guess):
            prim, status = recover(conserved, guess)
            status = status.copy()
            status[0] = 1
            return prim, status

        monkeypatch.setattr(engine.solver, "recover_block", failing)

    def test_failed_zones_are_floored(self, halo_config, monkeypatch):
        with SimulationEngine(halo_config) as engine:
            self._force_failures(engine, monkeypatch)
            result = engine.step()
            assert result.floored_zones == engine.mesh.num_blocks
            first = engine.mesh.blocks[1].start
            rho = engine.primitive[first, 0]
            assert engine.primitive[first, 2] == pytest.approx(rho * 1e-10)
            assert engine.floor_streak[first] == 1
            assert engine.floor_streak[first + 1] == 0

    def test_streak_resets_after_clean_step(self, halo_config):
        with SimulationEngine(halo_config) as engine:
            mask = np.zeros(engine.mesh.num_zones, dtype=bool)
            mask[3] = True
            engine._update_floor_streak(mask)
            engine._update_floor_streak(mask)
            assert engine.floor_streak[3] == 2
            engine._update_floor_streak(np.zeros_like(mask))
            assert not engine.floor_streak.any()

    def test_persistent_flooring_diverges(self, halo_config_dict, monkeypatch):
        halo_config_dict["hydro"]["relativistic"]["max_floor_steps"] = 3
        with SimulationEngine(SimulationConfig.from_dict(halo_config_dict)) as engine:
            self._force_failures(engine, monkeypatch)
            for _ in range(3):
                engine.step()
            with pytest.raises(SimulationDivergedError, match="zone 0"):
                engine.step()

    def test_diagnostics_written_when_run_diverges(self, halo_config_dict, monkeypatch):
        halo_config_dict["hydro"]["relativistic"]["max_floor_steps"] = 2
        with SimulationEngine(SimulationConfig.from_dict(halo_config_dict)) as engine:
            self._force_failures(engine, monkeypatch)
            with pytest.raises(SimulationDivergedError, match="zone 0"):
                engine.run()
            filename = engine.output_directory / "diagnostics.h5"
        assert filename.exists()
        with h5py.File(filename, "r") as f:
            assert f.attrs["num_records"] == 1
            assert list(f["scalars/time"]) == [0.0]


class TestCheckpointFailures:

    def test_run_continues_after_failed_checkpoint(self, halo_config, monkeypatch, caplog):
        def broken(filename, checkpoint):
            raise CheckpointIOError(f"disk full writing {filename}")

        monkeypatch.setattr("kilonova.engine.save_checkpoint", broken)
        with caplog.at_level(logging.ERROR, logger="kilonova.engine"):
            with SimulationEngine(halo_config) as engine:
                summary = engine.run()

        assert summary["finished"]
        assert summary["checkpoints_written"] == []
        assert len(summary["checkpoint_failures"]) == 2
        assert any("disk full" in rec.getMessage() for rec in caplog.records)

    def test_checkpoints_written_in_order(self, halo_config):
        with SimulationEngine(halo_config) as engine:
            summary = engine.run()
        names = [name.rsplit("/", 1)[-1] for name in summary["checkpoints_written"]]
        assert names == ["chkpt.0000.h5", "chkpt.0001.h5"]
        assert (engine.output_directory / "diagnostics.h5").exists()


class TestIterationMessages:

    def test_first_report_follows_a_batch(self, halo_config, caplog):
        with caplog.at_level(logging.INFO, logger="kilonova.engine"):
            with SimulationEngine(halo_config) as engine:
                engine.run(max_steps=12)
        reports = [rec.getMessage() for rec in caplog.records if rec.getMessage().startswith("[")]
        assert reports
        assert not any(msg.startswith("[00000]") for msg in reports)
        assert reports[0].startswith("[00005]")


class TestPassiveScalar:

    def test_scalar_saved_with_state(self, halo_config):
        with SimulationEngine(halo_config) as engine:
            initial = engine.primitive[:, 3].copy()
            summary = engine.run()
            final = engine.primitive[:, 3].copy()
        first = load_checkpoint(summary["checkpoints_written"][0])
        last = load_checkpoint(summary["checkpoints_written"][-1])
        np.testing.assert_array_equal(first.primitive[:, 3], initial)
        np.testing.assert_array_equal(last.primitive[:, 3], final)

    def test_scalar_stays_bounded(self, halo_config):
        with SimulationEngine(halo_config) as engine:
            assert set(np.unique(engine.primitive[:, 3])) <= {0.0, 1.0}
            engine.run()
            s = engine.primitive[:, 3]
        assert np.all(s > -1e-3)
        assert np.all(s < 1.0 + 1e-3)

    def test_products_carry_scalar(self, halo_config_dict):
        halo_config_dict["control"]["products_interval"] = 1e8
        config = SimulationConfig.from_dict(halo_config_dict)
        with SimulationEngine(config) as engine:
            engine.run(max_steps=1)
            directory = engine.output_directory
        with h5py.File(directory / "prods.0000.h5", "r") as f:
            assert "passive_scalar" in f
            assert f["passive_scalar"].shape == (engine.mesh.num_zones,)
