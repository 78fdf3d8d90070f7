"""Command line interface for nzbmega."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from rich.logging import RichHandler

from . import __version__
from .cli_progress import (
    PipelineProgressDisplay,
    console,
    render_configuration_summary,
    render_results,
)
from .exceptions import NzbMegaError
from .models import Credentials, PipelineConfig, ServiceConfig, SlotResult
from .orchestrator import TransferOrchestrator
from .services import ConfigStore, SABnzbdClient


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is
    provided. Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    env_level = os.getenv("LOG_LEVEL")
    if silent or (not debug and not log_level and not env_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, (log_level or env_level or "INFO").upper(), logging.INFO)

    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _parse_env_line(raw_line: str) -> Optional[Tuple[str, str]]:
    """Parse KEY=VALUE, allowing an 'export ' prefix and quoted values."""
    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None

    key, sep, value = line.removeprefix("export ").partition("=")
    key = key.strip()
    if not sep or not key:
        return None

    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        value = value[1:-1]
    return key, value


def _load_env_file(path: Path, override: bool = False) -> List[str]:
    """Export the variables of a .env file. Returns the names it set."""
    if not path.is_file():
        raise CLIError(f"env file not found: {path}")

    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    applied = []
    for raw_line in lines:
        parsed = _parse_env_line(raw_line)
        if parsed is None:
            continue
        key, value = parsed
        if override or key not in os.environ:
            os.environ[key] = value
            applied.append(key)
    return applied


def _resolve_credentials(
    email: Optional[str],
    password: Optional[str],
    store: ConfigStore,
) -> Credentials:
    """Flags, then MEGA_EMAIL/MEGA_PASSWORD, then stored accounts."""
    email = email or os.getenv("MEGA_EMAIL")
    password = password or os.getenv("MEGA_PASSWORD")

    if email and password:
        return Credentials(email, password)

    if email:
        stored = store.find_account(email)
        if stored is None:
            raise CLIError(f"no password given and no stored account for {email}")
        return stored

    accounts = store.accounts()
    if not accounts:
        raise CLIError("no MEGA account: pass --email/--password or set MEGA_EMAIL/MEGA_PASSWORD")
    return accounts[0]


def _resolve_service_config(
    host: Optional[str],
    port: Optional[int],
    api_key: Optional[str],
    use_https: bool,
    store: ConfigStore,
) -> ServiceConfig:
    """Flags, then SABNZBD_* environment variables, then the config store."""
    stored = store.service_config()

    env_port = os.getenv("SABNZBD_PORT")
    try:
        resolved_port = int(port or env_port or stored.port)
    except ValueError as exc:
        raise CLIError(f"invalid SABnzbd port: {env_port}") from exc

    config = ServiceConfig(
        host=host or os.getenv("SABNZBD_HOST") or stored.host,
        port=resolved_port,
        api_key=api_key or os.getenv("SABNZBD_API_KEY") or stored.api_key,
        use_https=use_https or stored.use_https,
    )
    if not config.api_key:
        raise CLIError("no SABnzbd api key: pass --api-key or set SABNZBD_API_KEY")
    return config


def _resolve_pipeline_config(
    max_parallel: Optional[int],
    poll_interval: float,
    timeout: Optional[float],
    remote_root: Optional[str],
) -> PipelineConfig:
    env_parallel = os.getenv("NZBMEGA_MAX_PARALLEL")
    try:
        if max_parallel is not None:
            parallel = max_parallel
        else:
            parallel = int(env_parallel or PipelineConfig.max_parallel_uploads)
        return PipelineConfig(
            max_parallel_uploads=parallel,
            poll_interval=poll_interval,
            job_timeout=timeout,
            remote_root=(remote_root or "").strip("/"),
        )
    except ValueError as exc:
        raise CLIError(f"invalid pipeline settings: {exc}") from exc


async def _run_pipeline(
    job_reference: str,
    credentials: Credentials,
    service_config: ServiceConfig,
    pipeline_config: PipelineConfig,
) -> List[SlotResult]:
    # requires megapy
    from .services.storage import MegaStorageService

    display = PipelineProgressDisplay()
    try:
        storage = MegaStorageService.for_credentials(credentials, pipeline_config.remote_root)
        async with storage, SABnzbdClient(service_config) as sab:
            console.print("[green]MEGA account is valid[/green]")

            orchestrator = TransferOrchestrator(sab, storage, pipeline_config)
            version = await orchestrator.check_connection()
            console.print(f"[green]Connected to SABnzbd version {version}[/green]")

            orchestrator.on_job_submitted(display.on_job_submitted)
            orchestrator.on_job_finished(display.on_job_finished)
            orchestrator.on_slot_state(display.on_slot_state)
            orchestrator.on_file_start(display.on_file_start)
            orchestrator.on_file_progress(display.on_file_progress)
            orchestrator.on_file_complete(display.on_file_complete)
            orchestrator.on_file_fail(display.on_file_fail)
            orchestrator.on_slot_finish(display.on_slot_finish)

            return await orchestrator.run(job_reference)
    except NzbMegaError as exc:
        raise CLIError(str(exc)) from exc
    finally:
        display.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nzb-mega",
        description="Download an NZB with SABnzbd, upload the result to MEGA and print share links.",
    )
    parser.add_argument("job_reference", nargs="?", help="NZB URL or local .nzb file")
    parser.add_argument("-e", "--email", default=None, help="MEGA account e-mail (env MEGA_EMAIL)")
    parser.add_argument("-p", "--password", default=None, help="MEGA password (env MEGA_PASSWORD)")
    parser.add_argument("--host", default=None, help="SABnzbd host (env SABNZBD_HOST)")
    parser.add_argument("--port", type=int, default=None, help="SABnzbd port (env SABNZBD_PORT)")
    parser.add_argument("--api-key", default=None, help="SABnzbd api key (env SABNZBD_API_KEY)")
    parser.add_argument("--https", action="store_true", help="Talk to SABnzbd over https")
    parser.add_argument(
        "-j",
        "--max-parallel",
        type=int,
        default=None,
        help="Maximum simultaneous uploads (env NZBMEGA_MAX_PARALLEL, default 4)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=2.0,
        help="Seconds between SABnzbd status checks",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up waiting for the download after this many seconds",
    )
    parser.add_argument(
        "-g",
        "--remote-root",
        default=None,
        help="MEGA folder to create slot folders in (default: account root)",
    )
    parser.add_argument(
        "--save",
        action="store_true",
        help="Remember the account and SABnzbd settings for next runs",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"nzb-mega {__version__}",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file = args.env_file
    if env_file is None and Path(".env").is_file():
        env_file = Path(".env")

    env_summary = "-"
    if env_file is not None:
        try:
            applied = _load_env_file(env_file)
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1
        env_summary = f"{env_file} (set: {', '.join(applied) or 'nothing new'})"

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.job_reference is None:
        parser.print_help()
        return 0

    store = ConfigStore()
    try:
        credentials = _resolve_credentials(args.email, args.password, store)
        service_config = _resolve_service_config(
            args.host, args.port, args.api_key, args.https, store
        )
        pipeline_config = _resolve_pipeline_config(
            args.max_parallel, args.poll_interval, args.timeout, args.remote_root
        )
    except (CLIError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if args.save:
        store.add_account(credentials)
        store.set_service_config(service_config)
        store.save()

    render_configuration_summary(
        {
            "Job": args.job_reference,
            "MEGA Account": credentials.email,
            "SABnzbd": service_config.base_url,
            "Remote Root": f"/{pipeline_config.remote_root}",
            "Max Parallel": pipeline_config.max_parallel_uploads,
            "Timeout": f"{pipeline_config.job_timeout:g}s" if pipeline_config.job_timeout else "-",
            "Config File": str(store.path),
            "Env File": env_summary,
            "Logging": effective_log_mode,
        }
    )

    try:
        results = asyncio.run(
            _run_pipeline(
                job_reference=args.job_reference,
                credentials=credentials,
                service_config=service_config,
                pipeline_config=pipeline_config,
            )
        )
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130

    render_results(results)
    return 0 if all(r.success for r in results) else 1


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
