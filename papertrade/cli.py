"""Click-based CLI for papertrade.

Usage:
    papertrade simulate --seed 42 --duration 3600
    papertrade live --input events.jsonl
    papertrade scenarios --preset moderate
"""

import sys
from pathlib import Path
from typing import Optional

import click
import numpy as np
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from papertrade.evaluation.metrics import trades_to_frame
from papertrade.runner.live import LiveRunner
from papertrade.runner.session import OfflineSession
from papertrade.schemas.engine_config import SCENARIO_PRESETS, EngineConfigV1, scenario_preset
from papertrade.simulator.engine import PaperTradingEngine
from papertrade.simulator.price_model import PriceMovementSimulator
from papertrade.utils.config import engine_config_from_env, load_engine_config
from papertrade.utils.logging import configure_logging

LOG_LEVELS = click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False)


def _resolve_config(config_path: Optional[Path]) -> EngineConfigV1:
    if config_path is not None:
        return load_engine_config(config_path)
    return engine_config_from_env()


def _load_snipe_list(path: Path) -> set:
    with open(path, "r") as f:
        return {line.strip() for line in f if line.strip() and not line.startswith("#")}


@click.group()
@click.version_option(version="0.1.0")
def cli():
    """
    papertrade - virtual execution for a token sniping bot.

    Opens and settles simulated positions against a virtual wallet so a
    strategy can be evaluated without sending real transactions.
    """
    pass


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Engine configuration JSON (default: read from environment)",
)
@click.option("--seed", type=int, default=None, help="Seed for a reproducible session")
@click.option(
    "--duration",
    type=float,
    default=3600.0,
    show_default=True,
    help="Virtual session length in seconds",
)
@click.option(
    "--feed-interval",
    type=float,
    default=15.0,
    show_default=True,
    help="Seconds between synthetic launch checks",
)
@click.option(
    "--launch-probability",
    type=float,
    default=0.3,
    show_default=True,
    help="Chance of a launch per feed interval",
)
@click.option("--no-progress", is_flag=True, help="Disable the progress bar")
@click.option(
    "--export-csv",
    type=click.Path(path_type=Path),
    default=None,
    help="Write the trade ledger to this CSV file",
)
@click.option("--log-file", type=click.Path(path_type=Path), default=None, help="Log file path")
@click.option("--log-level", type=LOG_LEVELS, default="WARNING", help="Logging level")
def simulate(
    config_path: Optional[Path],
    seed: Optional[int],
    duration: float,
    feed_interval: float,
    launch_probability: float,
    no_progress: bool,
    export_csv: Optional[Path],
    log_file: Optional[Path],
    log_level: str,
):
    """
    Run an offline session against the synthetic launch feed.

    Time is virtual, so an hour-long session completes in well under a second.

    Examples:

        \b
        # One simulated hour, reproducible
        papertrade simulate --seed 42

        \b
        # A day with the moderate scenario table, exported to CSV
        SCENARIO_PRESET=moderate papertrade simulate --duration 86400 --export-csv trades.csv
    """
    configure_logging(log_file=log_file, log_level=log_level, console_level=log_level)

    try:
        config = _resolve_config(config_path)
        session = OfflineSession(
            config,
            seed=seed,
            duration_seconds=duration,
            feed_interval_seconds=feed_interval,
            launch_probability=launch_probability,
            show_progress_bar=not no_progress,
        )
        result = session.run()

        snapshot = result.snapshot
        metrics = result.metrics
        symbol = snapshot.quote_symbol

        click.echo("")
        click.secho("Session Summary", fg="green", bold=True)
        click.echo("=" * 60)
        click.echo(f"Final Balance:   {snapshot.current_quote_balance:>12.6f} {symbol}")
        click.echo(f"Total Return:    {snapshot.total_return_percent:>12.2f}%")
        click.echo(f"Opportunities:   {snapshot.total_opportunities:>12}")
        click.echo(f"Completed:       {snapshot.completed_trades:>12}")
        click.echo(f"Win Rate:        {snapshot.win_rate:>12.2f}%")
        click.echo(f"Profit Factor:   {metrics['profit_factor']:>12.2f}")
        click.echo(f"Max Drawdown:    {metrics['max_drawdown_pct']:>12.2f}%")
        click.echo("=" * 60)

        if export_csv is not None:
            export_csv.parent.mkdir(parents=True, exist_ok=True)
            trades_to_frame(result.trades).to_csv(export_csv, index=False)
            click.secho(f"\nTrades saved: {export_csv}", fg="green")

    except Exception as e:
        click.secho(f"Simulation failed: {e}", fg="red", err=True)
        sys.exit(1)


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Engine configuration JSON (default: read from environment)",
)
@click.option(
    "--input",
    "input_file",
    type=click.File("r"),
    default="-",
    help="JSON-lines event source (default: stdin)",
)
@click.option(
    "--snipe-list",
    "snipe_list_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="File with one token mint per line",
)
@click.option("--seed", type=int, default=None, help="Seed for prices and jitter")
@click.option(
    "--wait",
    "wait_seconds",
    type=float,
    default=None,
    help="Seconds to wait for pending auto-sells after the input ends",
)
@click.option("--log-file", type=click.Path(path_type=Path), default=None, help="Log file path")
@click.option("--log-level", type=LOG_LEVELS, default="INFO", help="Logging level")
def live(
    config_path: Optional[Path],
    input_file,
    snipe_list_path: Optional[Path],
    seed: Optional[int],
    wait_seconds: Optional[float],
    log_file: Optional[Path],
    log_level: str,
):
    """
    Paper trade a live event stream.

    Each input line is a JSON object with "type" set to "pool" (a new pool
    opportunity) or "balance" (an observed balance change of a held token).

    Examples:

        \b
        # Pipe a listener into the engine
        listener | papertrade live

        \b
        # Replay a recorded stream and let open positions settle
        papertrade live --input recorded.jsonl --wait 30
    """
    configure_logging(log_file=log_file, log_level=log_level, console_level=log_level)

    try:
        config = _resolve_config(config_path)

        snipe_list = None
        if snipe_list_path is not None:
            mints = _load_snipe_list(snipe_list_path)
            click.echo(f"Loaded {len(mints)} tokens from snipe list")
            snipe_list = mints.__contains__

        engine = PaperTradingEngine(
            config,
            rng=np.random.default_rng(seed),
            snipe_list=snipe_list,
        )
        runner = LiveRunner(engine)
        processed = runner.run(input_file, wait_for_pending=wait_seconds)

        click.secho(
            f"Processed {processed} events ({runner.events_rejected} malformed)", fg="green"
        )

    except KeyboardInterrupt:
        click.secho("Interrupted", fg="yellow", err=True)
        sys.exit(130)
    except Exception as e:
        click.secho(f"Live session failed: {e}", fg="red", err=True)
        sys.exit(1)


@cli.command()
@click.option(
    "--preset",
    type=click.Choice(sorted(SCENARIO_PRESETS)),
    default="aggressive",
    show_default=True,
    help="Scenario table to show",
)
@click.option(
    "--samples",
    type=int,
    default=100_000,
    show_default=True,
    help="Draws used for the empirical frequencies",
)
@click.option("--seed", type=int, default=None, help="Seed for the sampler")
def scenarios(preset: str, samples: int, seed: Optional[int]):
    """
    Show a price scenario table with sampled frequencies.

    Examples:

        \b
        papertrade scenarios --preset moderate --samples 50000 --seed 1
    """
    table = scenario_preset(preset)
    simulator = PriceMovementSimulator(table, np.random.default_rng(seed))

    counts = np.zeros(len(table), dtype=int)
    for _ in range(samples):
        index, _multiplier = simulator.sample_with_bucket()
        if index is not None:
            counts[index] += 1

    click.secho(f"Scenario table: {preset}", fg="green", bold=True)
    click.echo("=" * 60)
    click.echo(f"{'Bucket':<18} {'Range':>14} {'Prob':>8} {'Sampled':>9}")
    for bucket, count in zip(table, counts):
        span = f"{bucket.min_multiplier:g}-{bucket.max_multiplier:g}x"
        click.echo(
            f"{bucket.label:<18} {span:>14} {bucket.probability:>8.3f} {count / max(samples, 1):>9.3f}"
        )
    click.echo("=" * 60)
    click.echo(f"Expected multiplier: {simulator.expected_multiplier():.3f}x")


def main():
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
