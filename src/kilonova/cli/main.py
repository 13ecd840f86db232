"""Command-line interface for the kilonova code.

Usage:
    kilonova run setups/jet_in_star.yaml --steps=100
    kilonova run data/chkpt.0004.h5
    kilonova verify setups/halo_kilonova.yaml
    kilonova preset jet_in_star -o jet.yaml
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """kilonova: 1D relativistic hydrodynamics with excising boundaries."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@cli.command()
@click.argument("input_file", type=click.Path(exists=True))
@click.option("--steps", type=int, default=None, help="Max timesteps (default: run to final_time).")
@click.option("--output-dir", type=str, default=None, help="Override control.output_directory.")
@click.option("--threads", type=int, default=None, help="Override control.num_threads.")
def run(input_file: str, steps: int | None, output_dir: str | None, threads: int | None) -> None:
    """Run a simulation from a YAML/JSON run file or resume from a checkpoint."""
    from kilonova.config import SimulationConfig
    from kilonova.diagnostics.checkpoint import load_checkpoint
    from kilonova.engine import SimulationEngine
    from kilonova.errors import KilonovaError

    path = Path(input_file)
    try:
        if path.suffix == ".h5":
            click.echo(f"Restarting from checkpoint: {path}")
            config = SimulationConfig.from_json(load_checkpoint(path).config_json)
        else:
            click.echo(f"Loading config from {path}")
            config = SimulationConfig.from_file(path)

        if output_dir is not None:
            config.control.output_directory = output_dir
        if threads is not None:
            config.control.num_threads = threads

        if path.suffix == ".h5":
            engine = SimulationEngine.from_checkpoint(path, config=config)
        else:
            engine = SimulationEngine(config)

        with engine:
            summary = engine.run(max_steps=steps)
    except KilonovaError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo("\n--- Simulation Summary ---")
    for key, val in summary.items():
        if isinstance(val, float):
            click.echo(f"  {key}: {val:.6e}")
        else:
            click.echo(f"  {key}: {val}")


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
def verify(config_file: str) -> None:
    """Verify a configuration file is valid."""
    from kilonova.config import SimulationConfig
    from kilonova.errors import ConfigValidationError
    from kilonova.geometry.mesh import Mesh

    try:
        config = SimulationConfig.from_file(config_file)
    except ConfigValidationError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    hc = config.hydro.relativistic
    mesh = Mesh.from_config(config.mesh, start_time=config.control.start_time)
    click.echo("Configuration is valid:")
    click.echo(f"  Scenario: {config.model.scenario_name}")
    click.echo(f"  Mesh: r=[{mesh.inner_radius:.3e}, {mesh.outer_radius:.3e}] cm, "
               f"{mesh.num_zones} zones in {mesh.num_blocks} blocks")
    click.echo(f"  Hydro: Gamma={hc.gamma_law_index}, {hc.riemann_solver.value}, "
               f"{hc.runge_kutta_order.value}, CFL={hc.cfl_number}")
    click.echo(f"  Time: {config.control.start_time:.3e} -> {config.control.final_time:.3e} s, "
               f"checkpoint every {config.control.checkpoint_interval:.3e} s")


@cli.command()
def presets() -> None:
    """List the built-in presets."""
    from kilonova.presets import list_presets

    for info in list_presets():
        click.echo(f"  {info['name']:<16} {info['description']}")


@cli.command()
@click.argument("name")
@click.option("--output", "-o", type=click.Path(), default=None, help="Write YAML here instead of stdout.")
def preset(name: str, output: str | None) -> None:
    """Print (or write) a preset as a YAML run file."""
    from kilonova.config import SimulationConfig
    from kilonova.presets import get_preset, get_preset_names

    if name not in get_preset_names():
        click.echo(f"Unknown preset '{name}'. Available: {', '.join(get_preset_names())}", err=True)
        sys.exit(1)

    text = SimulationConfig.from_dict(get_preset(name)).to_yaml(output)
    if output is None:
        click.echo(text)
    else:
        click.echo(f"Wrote {output}")
