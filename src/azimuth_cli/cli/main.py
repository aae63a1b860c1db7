"""Command-line interface for azimuth-cli."""

from __future__ import annotations

import argparse
import json
import re
import sys
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from typing import Sequence

from azimuth_cli.backends import L1Backend, L2Backend
from azimuth_cli.breach import BatchResult, BreachOrchestrator, SeedSource
from azimuth_cli.config import ETH_PROVIDERS, ROLLER_PROVIDERS, AzimuthConfig, load_config
from azimuth_cli.datasource import DataSourceSelector, parse_data_source
from azimuth_cli.details import PointInfoAggregator
from azimuth_cli.dispatch import KeyConfigurationDispatcher
from azimuth_cli.errors import AzimuthCLIError, ChainCommunicationError, ValidationError
from azimuth_cli.ethereum import create_context
from azimuth_cli.keycache import NetworkKeyCache, keyfile_name
from azimuth_cli.logging_utils import redact, setup_logging
from azimuth_cli.models import Dominion
from azimuth_cli.operations import L2Operations, OperationBatch
from azimuth_cli.points import parse_point
from azimuth_cli.resolver import ResolvedPoints, resolve_points
from azimuth_cli.roller import RollerClient
from azimuth_cli.signing import SigningIdentity, load_signing_identity
from azimuth_cli.spawnlist import DEFAULT_SPAWN_LIST_NAME, PICK_MODES, generate_spawn_list
from azimuth_cli.store import ArtifactStore, FileArtifactStore
from azimuth_cli.tickets import TicketClient

EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 1
EXIT_NETWORK_ERROR = 2
EXIT_PARTIAL_FAILURE = 4


def _cli_version() -> str:
    try:
        return pkg_version("azimuth-cli")
    except PackageNotFoundError:
        return "0.0.0+local"


def _add_point_sources(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--points",
        nargs="+",
        default=None,
        help="Points as @p names or numbers, space or comma separated",
    )
    group.add_argument(
        "--points-file",
        default=None,
        help="File with one point per line (blank lines and # comments are ignored)",
    )
    group.add_argument(
        "--use-wallet-files",
        action="store_true",
        help="Use the points of all *-wallet.json files in the work directory",
    )


def _add_signing(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--private-key",
        default=None,
        help="Ethereum private key of the owner or proxy (sensitive; avoid in shared logs)",
    )
    group.add_argument(
        "--wallet-file",
        default=None,
        help="Wallet JSON whose ownership key signs the transactions",
    )


def _add_key_seed(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--ticket",
        default=None,
        help="Master ticket used to derive network keys (default: ticket service, if configured)",
    )
    parser.add_argument(
        "--auth",
        default=None,
        help="Admin token for the ticket service (default: AZIMUTH_TICKET_TOKEN)",
    )


def _add_json(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--json", action="store_true", help="Print results as JSON")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="azimuth-cli")
    parser.add_argument(
        "--version",
        action="version",
        version=f"azimuth-cli {_cli_version()}",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config TOML (default: ~/.azimuth_cli/config.toml)",
    )
    parser.add_argument("--work-dir", default=None, help="Directory for keys, receipts and lists")
    parser.add_argument("--eth-provider", choices=sorted(ETH_PROVIDERS), default=None)
    parser.add_argument("--eth-rpc-url", default=None, help="Override the Ethereum RPC URL")
    parser.add_argument("--roller-provider", choices=sorted(ROLLER_PROVIDERS), default=None)
    parser.add_argument("--roller-url", default=None, help="Override the roller URL")
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--use-roller",
        action="store_true",
        help="Read point state from the L2 roller only",
    )
    source.add_argument(
        "--use-azimuth",
        action="store_true",
        help="Read point state from the L1 Azimuth contract only",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    get = sub.add_parser("get", help="Read point state")
    get_sub = get.add_subparsers(dest="get_command", required=True)
    details = get_sub.add_parser("details", help="Show the state of a point")
    details.add_argument("point", help="@p name or number")
    _add_json(details)
    sponsored = get_sub.add_parser(
        "sponsored", help="List residents and escape requests of a point (L2)"
    )
    sponsored.add_argument("point", help="@p name or number")
    _add_json(sponsored)

    generate = sub.add_parser("generate", help="Generate local artifacts")
    generate_sub = generate.add_subparsers(dest="generate_command", required=True)
    network_key = generate_sub.add_parser(
        "network-key", help="Generate network keys and keyfiles without submitting them"
    )
    _add_point_sources(network_key)
    _add_key_seed(network_key)
    network_key.add_argument(
        "--breach",
        action="store_true",
        help="Generate keys for the next revision instead of the current one",
    )
    _add_json(network_key)
    spawn_list = generate_sub.add_parser(
        "spawn-list", help="Write a list of unspawned child points of a galaxy or star"
    )
    spawn_list.add_argument("point", help="@p name or number of the parent")
    spawn_list.add_argument("--count", "-c", type=int, default=1)
    spawn_list.add_argument("--pick", choices=PICK_MODES, default="random")
    spawn_list.add_argument("--output", "-o", default=DEFAULT_SPAWN_LIST_NAME)
    spawn_list.add_argument(
        "--force", "-f", action="store_true", help="Replace an existing spawn list"
    )
    _add_json(spawn_list)

    for command, dominion in (("modify-l1", "L1"), ("modify-l2", "L2")):
        modify = sub.add_parser(command, help=f"Submit {dominion} transactions")
        modify_sub = modify.add_subparsers(dest="modify_command", required=True)
        set_keys = modify_sub.add_parser(
            "network-key", help=f"Set network keys of {dominion} points"
        )
        _add_point_sources(set_keys)
        _add_signing(set_keys)
        _add_key_seed(set_keys)
        set_keys.add_argument(
            "--breach", action="store_true", help="Also bump the continuity number"
        )
        if dominion == "L1":
            set_keys.add_argument("--gas", type=float, default=None, help="Gas price in gwei")
        _add_json(set_keys)

        if dominion == "L2":
            escape = modify_sub.add_parser("escape", help="Request a new sponsor (L2)")
            _add_point_sources(escape)
            _add_signing(escape)
            escape.add_argument("--sponsor", required=True, help="New sponsor @p")
            _add_json(escape)

            adopt = modify_sub.add_parser("adopt", help="Accept an escape request (L2)")
            _add_point_sources(adopt)
            _add_signing(adopt)
            adopt.add_argument("--adoptee", required=True, help="@p with an open escape request")
            _add_json(adopt)

            transfer = modify_sub.add_parser("transfer", help="Transfer L2 points")
            _add_point_sources(transfer)
            _add_signing(transfer)
            transfer.add_argument(
                "--address",
                default=None,
                help="Target address (default: ownership address of each wallet file)",
            )
            transfer.add_argument(
                "--reset",
                action="store_true",
                help="Reset network keys and proxies as part of the transfer",
            )
            _add_json(transfer)

    breach = sub.add_parser("breach", help="Rotate network keys and bump continuity")
    breach_sub = breach.add_subparsers(dest="breach_command", required=True)
    breach_point = breach_sub.add_parser("point", help="Breach one or more points")
    _add_point_sources(breach_point)
    _add_signing(breach_point)
    _add_key_seed(breach_point)
    breach_point.add_argument("--gas", type=float, default=None, help="Gas price in gwei (L1)")
    _add_json(breach_point)

    return parser


def _sanitize_error_text(value: str) -> str:
    redacted = redact(value)
    return re.sub(r"(?i)([?&](?:ticket|token|auth)=)([^&\s]+)", r"\1[REDACTED]", redacted)


def _print_error(stderr, prefix: str, message: str, *, code: int) -> int:
    print(f"{prefix}: {_sanitize_error_text(message)}", file=stderr)
    return code


def _print_cli_error(stderr, exc: AzimuthCLIError) -> int:
    if isinstance(exc, ChainCommunicationError):
        return _print_error(stderr, "network error", str(exc), code=EXIT_NETWORK_ERROR)
    return _print_error(stderr, "error", str(exc), code=EXIT_VALIDATION_ERROR)


def _load_runtime_config(args) -> AzimuthConfig:
    data_source = None
    if args.use_roller:
        data_source = "l2"
    elif args.use_azimuth:
        data_source = "l1"
    config = load_config(args.config)
    return config.with_overrides(
        work_dir=args.work_dir,
        eth_provider=args.eth_provider,
        eth_rpc_url=args.eth_rpc_url,
        roller_provider=args.roller_provider,
        roller_url=args.roller_url,
        data_source=data_source,
        gas_price_gwei=getattr(args, "gas", None),
        log_level="DEBUG" if args.verbose else None,
    )


@dataclass
class Runtime:
    config: AzimuthConfig
    store: ArtifactStore
    l1: L1Backend
    l2: L2Backend
    selector: DataSourceSelector
    aggregator: PointInfoAggregator
    cache: NetworkKeyCache

    def dispatcher(self) -> KeyConfigurationDispatcher:
        return KeyConfigurationDispatcher({Dominion.L1: self.l1, Dominion.L2: self.l2}, self.store)


def _build_runtime(config: AzimuthConfig) -> Runtime:
    store = FileArtifactStore(config.work_dir)
    l1 = L1Backend(create_context(config), config)
    l2 = L2Backend(
        RollerClient(
            config.resolved_roller_url,
            timeout=config.request_timeout,
            connect_retries=config.request_retries,
        )
    )
    selector = DataSourceSelector(l1, l2, force=parse_data_source(config.data_source))
    return Runtime(
        config=config,
        store=store,
        l1=l1,
        l2=l2,
        selector=selector,
        aggregator=PointInfoAggregator(selector),
        cache=NetworkKeyCache(store),
    )


def _load_signer(args) -> SigningIdentity:
    return load_signing_identity(private_key=args.private_key, wallet_file=args.wallet_file)


def _seed_source(args, config: AzimuthConfig) -> SeedSource | None:
    if args.ticket:
        ticket = args.ticket
        return lambda point: ticket
    if config.ticket_base_url:
        client = TicketClient(
            config.ticket_base_url,
            admin_token=args.auth or config.ticket_token,
            timeout=config.request_timeout,
        )
        return client.master_ticket
    return None


def _split_points(raw: Sequence[str] | None) -> list[str] | None:
    if not raw:
        return None
    return [entry for item in raw for entry in item.split(",") if entry.strip()]


def _resolve(args, config: AzimuthConfig, stderr) -> ResolvedPoints:
    resolved = resolve_points(
        points=_split_points(args.points),
        points_file=args.points_file,
        wallet_dir=config.work_dir if args.use_wallet_files else None,
    )
    for invalid in resolved.invalid:
        print(f"skipping invalid point: {_sanitize_error_text(str(invalid))}", file=stderr)
    if not resolved.points:
        raise ValidationError("no valid points to process")
    return resolved


def _batch_exit_code(batch: BatchResult | OperationBatch) -> int:
    return EXIT_SUCCESS if batch.ok else EXIT_PARTIAL_FAILURE


def _print_invalid(batch: BatchResult | OperationBatch, stdout) -> None:
    for exc in batch.invalid:
        print(f"{exc.raw}: invalid: {_sanitize_error_text(str(exc))}", file=stdout)


def _print_key_batch(batch: BatchResult, *, as_json: bool, stdout) -> int:
    if as_json:
        print(json.dumps(batch.to_dict(), sort_keys=True), file=stdout)
        return _batch_exit_code(batch)
    for outcome in batch.outcomes:
        name = outcome.point.name
        error = outcome.error or (outcome.result.error if outcome.result is not None else None)
        if error is not None:
            print(f"{name}: failed: {_sanitize_error_text(str(error))}", file=stdout)
            continue
        if outcome.result is not None:
            line = (
                f"{name}: {outcome.result.status} on {outcome.result.dominion.value} "
                f"(revision {outcome.result.revision}, continuity {outcome.result.continuity})"
            )
            if outcome.result.receipt_path:
                line += f" receipt: {outcome.result.receipt_path}"
            print(line, file=stdout)
            continue
        if outcome.entry is not None:
            print(
                f"{name}: revision {outcome.entry.revision} "
                f"keyfile: {keyfile_name(outcome.point, outcome.entry.revision)}",
                file=stdout,
            )
    for point in batch.cancelled:
        print(f"{point.name}: cancelled", file=stdout)
    _print_invalid(batch, stdout)
    return _batch_exit_code(batch)


def _print_operation_batch(batch: OperationBatch, *, as_json: bool, stdout) -> int:
    if as_json:
        print(json.dumps(batch.to_dict(), sort_keys=True), file=stdout)
        return _batch_exit_code(batch)
    for outcome in batch.outcomes:
        if outcome.error is not None:
            message = _sanitize_error_text(str(outcome.error))
            print(f"{outcome.point.name}: failed: {message}", file=stdout)
        elif outcome.receipt is not None:
            print(
                f"{outcome.point.name}: {outcome.operation} {outcome.receipt.status} "
                f"({outcome.receipt.hash}) receipt: {outcome.receipt_path}",
                file=stdout,
            )
        else:
            print(f"{outcome.point.name}: {outcome.status}: {outcome.reason}", file=stdout)
    _print_invalid(batch, stdout)
    return _batch_exit_code(batch)


def _run_get_details(*, args, runtime: Runtime, stdout) -> int:
    point = parse_point(args.point)
    info = runtime.aggregator.get_point_info(point)
    payload = info.model_dump(mode="json")
    if args.json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    for key, value in payload.items():
        if isinstance(value, dict):
            value = ", ".join(f"{inner}={item}" for inner, item in value.items())
        print(f"{key}: {value}", file=stdout)
    return EXIT_SUCCESS


def _run_get_sponsored(*, args, runtime: Runtime, stdout) -> int:
    point = parse_point(args.point)
    sponsored = runtime.aggregator.sponsored_points(point)
    payload = {
        "point": point.name,
        "residents": list(sponsored.get("residents") or []),
        "requests": list(sponsored.get("requests") or []),
    }
    if args.json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    print(f"point: {payload['point']}", file=stdout)
    print(f"residents: {', '.join(map(str, payload['residents'])) or '-'}", file=stdout)
    print(f"requests: {', '.join(map(str, payload['requests'])) or '-'}", file=stdout)
    return EXIT_SUCCESS


def _run_generate_network_key(*, args, runtime: Runtime, stdout, stderr) -> int:
    resolved = _resolve(args, runtime.config, stderr)
    orchestrator = BreachOrchestrator(
        runtime.aggregator,
        runtime.cache,
        seed_source=_seed_source(args, runtime.config),
    )
    batch = orchestrator.generate(resolved.points, breach=args.breach, wallets=resolved.wallets)
    batch.invalid.extend(resolved.invalid)
    return _print_key_batch(batch, as_json=args.json, stdout=stdout)


def _run_generate_spawn_list(*, args, runtime: Runtime, stdout) -> int:
    parent = parse_point(args.point)
    result = generate_spawn_list(
        runtime.l1,
        runtime.store,
        parent,
        count=args.count,
        pick=args.pick,
        name=args.output,
        force=args.force,
    )
    if args.json:
        print(json.dumps(result.to_dict(), sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    if not result.written:
        print("spawn list already exists, will not recreate it", file=stdout)
        return EXIT_SUCCESS
    print(
        f"spawn list for {len(result.points)} point(s) written to {result.location}",
        file=stdout,
    )
    return EXIT_SUCCESS


def _key_orchestrator(args, runtime: Runtime) -> BreachOrchestrator:
    return BreachOrchestrator(
        runtime.aggregator,
        runtime.cache,
        runtime.dispatcher(),
        signer=_load_signer(args),
        seed_source=_seed_source(args, runtime.config),
    )


def _run_set_network_key(*, args, runtime: Runtime, dominion: Dominion, stdout, stderr) -> int:
    resolved = _resolve(args, runtime.config, stderr)
    orchestrator = _key_orchestrator(args, runtime)
    batch = orchestrator.set_keys(
        resolved.points,
        breach=args.breach,
        expected_dominion=dominion,
        wallets=resolved.wallets,
    )
    batch.invalid.extend(resolved.invalid)
    return _print_key_batch(batch, as_json=args.json, stdout=stdout)


def _run_breach_point(*, args, runtime: Runtime, stdout, stderr) -> int:
    resolved = _resolve(args, runtime.config, stderr)
    orchestrator = _key_orchestrator(args, runtime)
    batch = orchestrator.breach(resolved.points, wallets=resolved.wallets)
    batch.invalid.extend(resolved.invalid)
    return _print_key_batch(batch, as_json=args.json, stdout=stdout)


def _run_l2_operation(*, args, runtime: Runtime, stdout, stderr) -> int:
    resolved = _resolve(args, runtime.config, stderr)
    operations = L2Operations(runtime.l2, runtime.store, _load_signer(args))
    if args.modify_command == "escape":
        batch = operations.escape(resolved.points, parse_point(args.sponsor))
    elif args.modify_command == "adopt":
        batch = operations.adopt(resolved.points, parse_point(args.adoptee))
    else:
        batch = operations.transfer(
            resolved.points,
            address=args.address,
            wallets=resolved.wallets,
            reset=args.reset,
        )
    batch.invalid.extend(resolved.invalid)
    return _print_operation_batch(batch, as_json=args.json, stdout=stdout)


def _dispatch(args, runtime: Runtime, *, stdout, stderr) -> int:
    if args.command == "get":
        if args.get_command == "details":
            return _run_get_details(args=args, runtime=runtime, stdout=stdout)
        return _run_get_sponsored(args=args, runtime=runtime, stdout=stdout)

    if args.command == "generate":
        if args.generate_command == "network-key":
            return _run_generate_network_key(
                args=args, runtime=runtime, stdout=stdout, stderr=stderr
            )
        return _run_generate_spawn_list(args=args, runtime=runtime, stdout=stdout)

    if args.command in ("modify-l1", "modify-l2"):
        dominion = Dominion.L1 if args.command == "modify-l1" else Dominion.L2
        if args.modify_command == "network-key":
            return _run_set_network_key(
                args=args, runtime=runtime, dominion=dominion, stdout=stdout, stderr=stderr
            )
        return _run_l2_operation(args=args, runtime=runtime, stdout=stdout, stderr=stderr)

    if args.command == "breach":
        return _run_breach_point(args=args, runtime=runtime, stdout=stdout, stderr=stderr)

    print("unknown command", file=stderr)
    return EXIT_VALIDATION_ERROR


def main(argv: Sequence[str] | None = None, *, stdout=sys.stdout, stderr=sys.stderr) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_runtime_config(args)
    except AzimuthCLIError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)

    setup_logging(level=config.log_level, stream=stderr)

    try:
        runtime = _build_runtime(config)
        return _dispatch(args, runtime, stdout=stdout, stderr=stderr)
    except AzimuthCLIError as exc:
        return _print_cli_error(stderr, exc)


if __name__ == "__main__":
    raise SystemExit(main())
