#!/usr/bin/env python3
"""Loop Keeper - Keep one tmux session's log in the foreground.

Samples the session's pane, appends new output to its log file and
rotates/prunes the log, until interrupted.

Usage:
    python monitor.py my-session
    python monitor.py my-session --pane my-session:0.1 --interval 5
    python monitor.py my-session --once     # single sync, then exit
"""

import argparse
import logging
import signal
import sys
import threading

from loopkeeper.backends.tmux import get_tmux_backend
from loopkeeper.services.config_service import ConfigService
from loopkeeper.services.log_sync_scheduler import LogSyncScheduler
from loopkeeper.services.pane_sampler import PaneSampler

logger = logging.getLogger("loopkeeper.monitor")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Loop Keeper session log monitor")
    parser.add_argument("session", help="Session name (used for log file names)")
    parser.add_argument("--pane", "-p", help="tmux target to capture (defaults to the session)")
    parser.add_argument("--config", "-c", default="config.yaml", help="Path to config.yaml")
    parser.add_argument("--interval", "-i", type=float, help="Fixed tick interval in seconds")
    parser.add_argument("--once", action="store_true", help="Run a single sync and exit")
    return parser


def run(args: argparse.Namespace) -> int:
    """Run the monitor until SIGINT/SIGTERM (or one tick with --once).

    Returns:
        Process exit code.
    """
    config = ConfigService(args.config).load()
    backend = get_tmux_backend()
    if not backend.is_available():
        logger.error("tmux is not installed or not on PATH")
        return 1

    session_config = config.get_session(args.session)
    pane = args.pane or (session_config.pane_ref if session_config else args.session)

    sampler = PaneSampler(
        backend,
        include_escapes=config.log_sync.include_escapes,
        timeout=config.log_sync.sample_timeout_seconds,
    )
    scheduler = LogSyncScheduler(args.session, sampler, config, pane_ref=pane)
    if args.interval is not None:
        if args.interval <= 0:
            logger.error("--interval must be positive")
            return 2
        scheduler.set_interval(args.interval)

    if not sampler.pane_exists(pane):
        logger.warning(f"Pane {pane} not found, waiting for it to appear")

    if args.once:
        result = scheduler.tick()
        if result is None:
            return 1
        print(f"{args.session}: {result.action.value} -> {scheduler.store.current_path()}")
        return 0

    done = threading.Event()

    def handle_signal(signum, frame):  # noqa: ARG001 - signal handler signature
        done.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    scheduler.start()
    logger.info(f"Monitoring {args.session} every {scheduler.current_interval}s (Ctrl+C to stop)")
    # Event.wait with a timeout keeps the main thread responsive to signals
    while not done.wait(1.0):
        pass

    scheduler.stop()
    status = scheduler.status()
    logger.info(
        f"Stopped after {status.tick_count} ticks, {status.rotations} rotations, "
        f"{status.error_count} errors"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = build_parser().parse_args(argv)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
