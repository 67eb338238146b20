"""Command-line interface for the Ops Board Simulator."""

import json
import logging
import signal
import sys
import time
from datetime import datetime
from pathlib import Path

import click

from . import __version__
from .analytics import downtime_summary, reason_distribution, status_breakdown
from .config import Config
from .downtime import DowntimeStore
from .generators import generate_timeline_events, seed_for_machine
from .layout import arc_coordinates, strip_coordinates
from .simulator import Simulator

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__)
def main():
    """Ops Board Simulator - synthetic machine status and downtime data.

    Generates a reproducible day of status intervals per machine, keeps a
    live roster of machine cards drifting, and derives the dashboard views
    (reason pie, KPI cards, timeline strip and clock face).
    """
    pass


@main.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to config.yaml (defaults and environment otherwise)",
)
@click.option("--broker", "-b", default=None, help="MQTT broker address")
@click.option("--port", "-p", type=int, default=None, help="MQTT broker port")
@click.option("--machines", "-m", type=click.IntRange(0, 500), default=None, help="Roster size")
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Run without connecting to a broker (messages are logged at DEBUG)",
)
def run(config_path, broker, port, machines, dry_run):
    """Start the simulator and publish dashboard data over MQTT."""
    cfg = Config.from_yaml(config_path) if config_path else Config.from_env()
    if broker:
        cfg.mqtt.broker = broker
    if port:
        cfg.mqtt.port = port
    if machines is not None:
        cfg.simulation.machine_count = machines

    sim = Simulator(cfg)

    def signal_handler(sig, frame):
        logger.info("Shutting down...")
        sim.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if not sim.start(dry_run=dry_run):
        click.echo("Failed to start simulator", err=True)
        sys.exit(1)

    click.echo()
    click.echo("=" * 60)
    click.echo("Ops Board Simulator")
    click.echo("=" * 60)
    click.echo(f"MQTT:     {'dry run' if dry_run else f'{cfg.mqtt.broker}:{cfg.mqtt.port}'}")
    click.echo(f"Machines: {cfg.simulation.machine_count}")
    click.echo(f"Ticks:    clock {cfg.simulation.clock_interval_ms}ms, "
               f"drift {cfg.simulation.drift_interval_ms}ms")
    click.echo()
    click.echo("Topics:")
    click.echo(f"  {cfg.topics.topic_prefix}/{cfg.topics.plant}/")
    click.echo("    ├── clock")
    click.echo("    ├── fleet/snapshot")
    click.echo("    ├── machines/{id}/timeline")
    click.echo("    └── downtime/{records,summary}")
    click.echo()
    click.echo("Control:")
    click.echo('  opsboard-sim/control/select           {"machine_id": "MCH-105"}')
    click.echo('  opsboard-sim/control/downtime/reason  {"id": "3", "reason": "Mechanical"}')
    click.echo('  opsboard-sim/control/downtime/remark  {"id": "3", "remark": "Motor Failure"}')
    click.echo()
    click.echo("Press Ctrl+C to stop")

    while True:
        time.sleep(1)


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=Path("config"),
    help="Output directory for config files",
)
def init(output):
    """Generate a sample configuration file."""
    output.mkdir(parents=True, exist_ok=True)

    cfg = Config.default()
    config_path = output / "config.yaml"
    cfg.to_yaml(config_path)

    click.echo(f"Created: {config_path}")
    click.echo(f"Run with: opsboard-sim run --config {config_path}")


@main.command()
@click.option("--machine", "-m", "machine_id", default="MCH-100", help="Machine id (seed source)")
@click.option(
    "--date",
    "-d",
    "day",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Day to synthesize (default: today)",
)
@click.option("--seed", type=int, default=None, help="Explicit seed offset (overrides --machine)")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["events", "strip", "arcs", "breakdown"]),
    default="events",
    help="What to print",
)
def timeline(machine_id, day, seed, output_format):
    """Print one synthesized day of a machine as JSON."""
    day = (day or datetime.now()).date()
    seed_offset = seed if seed is not None else seed_for_machine(machine_id)
    events = generate_timeline_events(day, seed_offset)

    if output_format == "strip":
        payload = strip_coordinates(events)
    elif output_format == "arcs":
        payload = arc_coordinates(events)
    elif output_format == "breakdown":
        payload = status_breakdown(events)
    else:
        payload = [e.to_dict() for e in events]

    click.echo(json.dumps(payload, indent=2))


@main.command()
@click.option("--min-minutes", type=float, default=10, help="Shortest stop counted in totals")
def downtime(min_minutes):
    """Print the downtime KPI cards and reason distribution."""
    records = DowntimeStore().records
    summary = downtime_summary(records, min_minutes=min_minutes)

    click.echo("Downtime Overview")
    click.echo("=" * 40)
    click.echo(f"Total downtime >= {min_minutes:g}m: {summary['total_downtime']}")
    click.echo(f"% labeled:             {summary['labeled_pct']}%")
    click.echo(f"Top reason:            {summary['top_reason']}")
    click.echo(f"Avg stop length:       {summary['avg_stop_length']}")
    click.echo()
    click.echo("Reasons:")
    for reason, count in reason_distribution(records).items():
        click.echo(f"  {reason:<12} {count}")


if __name__ == "__main__":
    main()
