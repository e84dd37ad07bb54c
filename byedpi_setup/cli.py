"""Command-line entrypoint: trial every setting, rank, choose, install."""

import argparse
import logging
import signal
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, NoReturn, Optional, Sequence

from colorama import just_fix_windows_console

from byedpi_setup.config import REPO_ROOT, AppConfig, load_config
from byedpi_setup.errors import ByeDPISetupError, ConfigurationError, RunInterrupted
from byedpi_setup.jobs import TrialRunner
from byedpi_setup.lists import load_domains, load_settings
from byedpi_setup.logging_utils import configure_logging, perf_span
from byedpi_setup.network import ProbeOutcome, probe_domain
from byedpi_setup.ranking import rank
from byedpi_setup.selection import (
    parse_selection,
    present,
    prompt_port,
    render_entries,
    resolve_port,
)
from byedpi_setup.service import ServiceController

LOGGER = logging.getLogger(__name__)


USAGE_EXIT_CODE = 64


class _ArgumentParser(argparse.ArgumentParser):
    """Exit with ``USAGE_EXIT_CODE`` so usage errors stay distinct from config errors."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(USAGE_EXIT_CODE, f"{self.prog}: error: {message}\n")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = _ArgumentParser(
        description="Trial ByeDPI settings against a domain list and install the best one."
    )
    parser.add_argument(
        "--settings",
        type=Path,
        required=True,
        help="File with one candidate ciadpi argument string per line.",
    )
    parser.add_argument(
        "--domains",
        type=Path,
        required=True,
        help="File with one domain per line to probe over HTTPS.",
    )
    parser.add_argument(
        "--port",
        type=str,
        default=None,
        help="Listening port for the proxy (prompted when omitted; default 8080).",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Max probes in flight per trial (default: PROBE_CONCURRENCY or 16).",
    )
    parser.add_argument(
        "--top-k",
        type=int,
        default=None,
        help="Number of ranked configurations to offer (default: TOP_K or 10).",
    )
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=None,
        help="Probe connect timeout in seconds (default: 2.0).",
    )
    parser.add_argument(
        "--max-time",
        type=float,
        default=None,
        help="Probe response timeout in seconds (default: 3.0).",
    )
    parser.add_argument(
        "--binary",
        type=str,
        default=None,
        help="Path to the ciadpi binary (default: BYEDPI_BINARY).",
    )
    parser.add_argument(
        "--service",
        type=str,
        default=None,
        help="systemd service name (default: BYEDPI_SERVICE or ciadpi).",
    )
    parser.add_argument(
        "--select",
        type=str,
        default=None,
        help="Choose this ranked index instead of prompting.",
    )
    parser.add_argument(
        "--no-install",
        action="store_true",
        help="Print the chosen setting without installing the service.",
    )
    return parser.parse_args(argv)


def _raise_interrupt(signum, frame) -> None:
    raise RunInterrupted(f"Received signal {signum}")


def _positive(name: str, value, default):
    if value is None:
        return default
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> Dict[str, Any]:
    """Resolve CLI overrides against ``config``; raises ConfigurationError."""
    return {
        "concurrency": _positive("--concurrency", args.concurrency, config.probe_concurrency),
        "top_k": _positive("--top-k", args.top_k, config.top_k),
        "connect_timeout": _positive(
            "--connect-timeout", args.connect_timeout, config.probe_connect_timeout
        ),
        "max_time": _positive("--max-time", args.max_time, config.probe_max_time),
    }


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    input_fn: Callable[[str], str] = input,
    controller: Optional[ServiceController] = None,
    probe: Optional[Callable[[str, int], ProbeOutcome]] = None,
) -> int:
    args = parse_args(argv)
    try:
        config = load_config()
    except ByeDPISetupError as exc:
        fallback = AppConfig(log_directory=REPO_ROOT / "logs", log_level="INFO")
        configure_logging(fallback)
        LOGGER.error("Failed to load configuration: %s", exc)
        return exc.exit_code

    configure_logging(config)
    just_fix_windows_console()
    try:
        options = _apply_overrides(config, args)
    except ConfigurationError as exc:
        LOGGER.error("Invalid option: %s", exc)
        return exc.exit_code

    if controller is None:
        overrides = {}
        if args.binary:
            overrides["binary_path"] = args.binary
        if args.service:
            overrides["service_name"] = args.service
        controller = ServiceController.from_config(replace(config, **overrides))

    if probe is None:

        def probe(domain: str, port: int) -> ProbeOutcome:
            return probe_domain(
                domain,
                port,
                connect_timeout=options["connect_timeout"],
                max_time=options["max_time"],
            )

    previous_handler = signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        settings = load_settings(args.settings)
        domains = load_domains(args.domains)
        port = resolve_port(args.port) if args.port is not None else prompt_port(input_fn)
        LOGGER.info("Using port: %d", port)

        runner = TrialRunner(
            controller,
            port,
            concurrency_limit=options["concurrency"],
            probe=probe,
            probe_deadline=options["max_time"],
        )
        with perf_span("cli.trials", tags={"settings": len(settings)}, logger=LOGGER):
            trials = runner.run_all(settings, domains)

        ranked = rank(trials, top_k=options["top_k"])
        if args.select is not None:
            render_entries(ranked)
            index = parse_selection(args.select, len(ranked))
        else:
            index = present(ranked, input_fn=input_fn)
        chosen = ranked[index].setting
        LOGGER.info("Selected configuration %d: %s", index, chosen)

        if args.no_install:
            sys.stdout.write(chosen + "\n")
            return 0

        controller.install(chosen, port)
        LOGGER.info("Installation complete. Service running with setting: %s", chosen)
        LOGGER.info("SOCKS5 proxy: 127.0.0.1:%d", port)
        return 0
    except (KeyboardInterrupt, RunInterrupted):
        LOGGER.error("Run interrupted, stopping service")
        controller.stop()
        return RunInterrupted.exit_code
    except ByeDPISetupError as exc:
        LOGGER.error("%s", exc)
        return exc.exit_code
    finally:
        signal.signal(signal.SIGTERM, previous_handler)


__all__ = ["main", "parse_args"]
