"""End-to-end run of the full jet-in-star preset.

Takes several minutes; deselect with ``-m "not slow"``.
"""

from __future__ import annotations

import numpy as np
import pytest

from kilonova.config import SimulationConfig
from kilonova.diagnostics.checkpoint import load_checkpoint
from kilonova.engine import SimulationEngine
from kilonova.presets import get_preset


@pytest.mark.slow
class TestJetInStarPreset:

    def test_full_run(self, tmp_path, track_boundaries):
        cfg = get_preset("jet_in_star")
        cfg["control"]["output_directory"] = str(tmp_path)
        config = SimulationConfig.from_dict(cfg)

        with SimulationEngine(config) as engine:
            results = track_boundaries(engine)
            summary = engine.run()
            dt = engine.dt_fixed

        assert summary["finished"]
        assert len(results) == summary["steps"]
        assert summary["sim_time"] == pytest.approx(3.0, abs=dt)
        # Boundaries only start moving once the engine has shut off at t = 10 s
        assert summary["inner_radius"] == 1e9
        assert summary["outer_radius"] == 1e12
        assert summary["checkpoint_failures"] == []
        assert len(summary["checkpoints_written"]) == 30

        for k, name in enumerate(summary["checkpoints_written"]):
            t = load_checkpoint(name).time
            assert k * 0.1 <= t < k * 0.1 + dt, name

        last = load_checkpoint(summary["checkpoints_written"][-1])
        assert last.num_zones == engine.mesh.num_zones
        assert np.all(np.isfinite(last.primitive))
        assert np.all(last.primitive[:, 0] > 0.0)
        assert np.all(last.primitive[:, 2] > 0.0)
        # Jet material has been injected at the inner boundary
        assert last.primitive[0, 3] == pytest.approx(1e2, rel=1e-3)
