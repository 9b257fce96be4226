"""Command line surface for magina: export, convert, import, transfer, validate."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from magina_core import __version__
from magina_core.app import MaginaApp
from magina_core.errors import (
    ConfigError,
    CredentialError,
    MaginaError,
    RegistryAuthError,
    RegistryConnectionError,
    ValidationError,
)
from magina_core.events import TRANSFER_STATE, Event
from magina_core.model import validate_config
from magina_core.orchestrator import TransferOptions, TransferState
from magina_core.results import Phase, StageResult
from magina_core.stages import StageOptions
from magina_core.streams import CancelToken, ResultStream
from magina_core.transport import ping_registry

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_CONNECTION = 3
EXIT_AUTH = 4

_STAGE_COMMANDS = {
    "export": Phase.EXPORT,
    "convert": Phase.CONVERT,
    "import": Phase.IMPORT,
}

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="magina",
        description="magina: migrate OCI images between registries in export/convert/import phases.",
    )
    parser.add_argument("--version", action="version", version=f"magina v{__version__}")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = False

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-c", "--config", required=True, help="BRMS migration file")
    common.add_argument(
        "-v",
        "--verbose",
        type=int,
        default=0,
        choices=[0, 1, 2, 3],
        help="0 warnings, 1 info and per-image successes, 2 debug, 3 debug with transport commands",
    )
    common.add_argument("--settings", help="TOML settings file (defaults to the user config dir)")
    common.add_argument("--no-prompt", action="store_true", help="never prompt for registry credentials")
    common.add_argument("--timeout", type=float, help="deadline for the whole command, in seconds")

    stage_opts = argparse.ArgumentParser(add_help=False)
    stage_opts.add_argument(
        "--clean-on-error",
        action="store_true",
        help="remove partially written images after a failure",
    )
    stage_opts.add_argument("--resume", action="store_true", help="keep going after a failed image")

    export_cmd = subparsers.add_parser(
        "export", parents=[common, stage_opts], help="pull images from the source registry"
    )
    export_cmd.set_defaults(func=_handle_stage)

    convert_cmd = subparsers.add_parser(
        "convert", parents=[common, stage_opts], help="retag exported images for the destination"
    )
    convert_cmd.set_defaults(func=_handle_stage)

    import_cmd = subparsers.add_parser(
        "import", parents=[common, stage_opts], help="push converted images to the destination registry"
    )
    import_cmd.set_defaults(func=_handle_stage)

    transfer_cmd = subparsers.add_parser(
        "transfer", parents=[common, stage_opts], help="export, convert and import in one run"
    )
    transfer_cmd.set_defaults(func=_handle_transfer)

    validate_cmd = subparsers.add_parser("validate", parents=[common], help="check a migration file")
    validate_cmd.add_argument(
        "--check-access",
        action="store_true",
        help="ping every configured registry with its credentials",
    )
    validate_cmd.set_defaults(func=_handle_validate)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return EXIT_OK
    _configure_logging(args.verbose)
    tag = _tag(args)
    try:
        return func(args)
    except (ConfigError, ValidationError) as exc:
        print(f"{tag} error: {exc}")
        return EXIT_CONFIG
    except RegistryConnectionError as exc:
        print(f"{tag} error: {exc}")
        return EXIT_CONNECTION
    except (CredentialError, RegistryAuthError) as exc:
        print(f"{tag} error: {exc}")
        return EXIT_AUTH
    except MaginaError as exc:
        print(f"{tag} error: {exc}")
        return EXIT_FAILED


def _configure_logging(verbose: int) -> None:
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(level=level, format=_LOG_FORMAT, force=True)
    # transport command lines only at the highest verbosity
    transport_level = logging.DEBUG if verbose >= 3 else max(level, logging.INFO)
    logging.getLogger("magina_core.transport.client").setLevel(transport_level)


def _tag(args: argparse.Namespace) -> str:
    return f"[magina:{args.command}]"


def _build_app(args: argparse.Namespace) -> MaginaApp:
    return MaginaApp(settings_path=args.settings, allow_prompt=not args.no_prompt)


@dataclass
class _Tally:
    total: int = 0
    succeeded: int = 0
    failed: int = 0

    def add(self, result: StageResult) -> None:
        self.total += 1
        if result.ok:
            self.succeeded += 1
        else:
            self.failed += 1

    def line(self) -> str:
        return f"total={self.total} succeeded={self.succeeded} failed={self.failed}"


@dataclass
class _Summary:
    phases: dict[Phase, _Tally] = field(default_factory=dict)
    aborted: bool = False

    def add(self, phase: Phase, result: StageResult) -> None:
        self.phases.setdefault(phase, _Tally()).add(result)

    @property
    def failed(self) -> int:
        return sum(tally.failed for tally in self.phases.values())

    def exit_code(self) -> int:
        return EXIT_FAILED if self.failed or self.aborted else EXIT_OK


def _report(args: argparse.Namespace, result: StageResult, phase: Phase | None = None) -> None:
    tag = _tag(args)
    label = f"{phase.value.lower()} " if phase is not None and args.command == "transfer" else ""
    if result.ok:
        if args.verbose >= 1:
            print(f"{tag} OK {label}{result.describe()}")
        return
    line = f"{tag} FAILED {label}{result.describe()}"
    if args.verbose >= 1:
        line = f"{line}: {result.error}"
    print(line)


def _print_summary(args: argparse.Namespace, summary: _Summary, phases: Iterable[Phase]) -> None:
    tag = _tag(args)
    if args.command == "transfer":
        for phase in phases:
            tally = summary.phases.get(phase, _Tally())
            print(f"{tag} {phase.value.lower()}: {tally.line()}")
    else:
        phase = next(iter(phases))
        print(f"{tag} {summary.phases.get(phase, _Tally()).line()}")
    if summary.aborted:
        print(f"{tag} aborted")


def _consume(
    args: argparse.Namespace,
    stream: ResultStream,
    cancel: CancelToken,
    summary: _Summary,
    *,
    default_phase: Phase,
    stop_on_failure: bool,
) -> None:
    try:
        with stream:
            for result in stream:
                if result.terminal:
                    raise result.error  # type: ignore[misc]
                phase = getattr(result, "phase", None) or default_phase
                summary.add(phase, result)
                _report(args, result, phase)
                if not result.ok and stop_on_failure:
                    summary.aborted = True
                    break
    except KeyboardInterrupt:
        cancel.cancel("interrupted by user")
        summary.aborted = True
        print(f"{_tag(args)} interrupted")


def _handle_stage(args: argparse.Namespace) -> int:
    phase = _STAGE_COMMANDS[args.command]
    app = _build_app(args)
    block = app.load_config(args.config).single_block(args.command)
    stage = app.stage(phase, block, StageOptions(clean_on_error=args.clean_on_error))
    cancel = CancelToken.with_timeout(args.timeout)
    summary = _Summary()
    _consume(
        args,
        stage.run(block, cancel=cancel),
        cancel,
        summary,
        default_phase=phase,
        stop_on_failure=not args.resume,
    )
    if cancel.cancelled:
        summary.aborted = True
    _print_summary(args, summary, (phase,))
    return summary.exit_code()


def _handle_transfer(args: argparse.Namespace) -> int:
    app = _build_app(args)
    block = app.load_config(args.config).single_block(args.command)
    orchestrator = app.orchestrator(
        block,
        TransferOptions(resume_on_error=args.resume, clean_on_error=args.clean_on_error),
    )
    tag = _tag(args)

    def _on_state(event: Event) -> None:
        if args.verbose >= 1 and event.payload["state"] in {
            TransferState.EXPORTING.value,
            TransferState.CONVERTING.value,
            TransferState.IMPORTING.value,
        }:
            print(f"{tag} {event.payload['state']}...")

    app.events.on(TRANSFER_STATE, _on_state)
    cancel = CancelToken.with_timeout(args.timeout)
    summary = _Summary()
    _consume(
        args,
        orchestrator.run(block, cancel=cancel),
        cancel,
        summary,
        default_phase=Phase.EXPORT,
        stop_on_failure=False,
    )
    if orchestrator.state == TransferState.ABORTED:
        summary.aborted = True
    _print_summary(args, summary, Phase.ordered())
    return summary.exit_code()


def _handle_validate(args: argparse.Namespace) -> int:
    app = _build_app(args)
    block = validate_config(app.load_config(args.config))
    tag = _tag(args)
    print(f"{tag} source: {block.source_registry.url or '<none>'}")
    print(f"{tag} destination: {block.destination_registry.url or '<none>'}")
    print(f"{tag} images: {len(block.image_mappings)}")
    print(f"{tag} exclusions: {len(block.exclusions)}")

    if args.check_access:
        transport = app.settings.transport
        timeout = args.timeout or min(transport.timeout_seconds, 30.0)
        for label, registry in (
            ("source", block.source_registry),
            ("destination", block.destination_registry),
        ):
            if not registry.configured:
                continue
            credentials = app.credentials.resolve(registry.host)
            result = ping_registry(registry, credentials, timeout=timeout, verify=not transport.insecure)
            print(f"{tag} {label} registry reachable: {result.url} (HTTP {result.status_code})")

    print(f"{tag} configuration is valid")
    return EXIT_OK
