"""Command line entry point of the Ringward sidecar.

    ringward identity                     bootstrap and show this node's identity
    ringward seeds                        bootstrap and print the seed list
    ringward acl list                     show peer ingress rules
    ringward acl add 10.0.0.5/32 ...      authorize peers
    ringward acl remove 10.0.0.5/32 ...   revoke peers
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

from injector import Injector
from loguru import logger
from rich.console import Console
from rich.table import Table

from ringward.config import Settings, resolve_settings
from ringward.core.exceptions import ConfigurationError, RingwardError
from ringward.identity.identity import InstanceIdentity
from ringward.identity.registry import InMemoryInstanceRegistry
from ringward.logging import setup_logging
from ringward.membership import AWSMembership
from ringward.module import RingwardModule

console = Console()


def _build_injector(settings: Settings, registry: InMemoryInstanceRegistry) -> Injector:
    if settings.instance is None:
        raise ConfigurationError("No [instance] section found in configuration")
    return Injector([RingwardModule(settings.cluster, settings.instance, registry)])


def _show_identity(identity: InstanceIdentity) -> None:
    me = identity.instance
    table = Table(title=f"{identity.config.app_name} identity", show_header=False)
    table.add_column("field", style="cyan")
    table.add_column("value")
    table.add_row("slot", str(me.id))
    table.add_row("instance", me.instance_id)
    table.add_row("rack", me.rac)
    table.add_row("region", me.dc)
    table.add_row("host", f"{me.host_name} ({me.host_ip})")
    table.add_row("token", me.token or "-")
    table.add_row("backup identifier", identity.backup_identifier)
    table.add_row("replace", f"{identity.is_replace} {identity.replaced_ip}".strip())
    table.add_row("pre-generated", str(identity.is_token_pregenerated))
    table.add_row("out of service", str(identity.is_out_of_service))
    console.print(table)


def _save(registry: InMemoryInstanceRegistry, path: Path | None) -> None:
    """Persist claims made during bootstrap back to the snapshot file."""
    if path is not None:
        registry.dump(path)
        logger.debug("Wrote registry snapshot to {path}", path=path)


def _run(args: argparse.Namespace, settings: Settings) -> None:
    registry = (
        InMemoryInstanceRegistry.from_file(args.registry_file)
        if args.registry_file
        else InMemoryInstanceRegistry()
    )
    injector = _build_injector(settings, registry)

    match args.command:
        case "identity":
            _show_identity(injector.get(InstanceIdentity))
            _save(registry, args.registry_file)
        case "seeds":
            console.print(",".join(injector.get(InstanceIdentity).get_seeds()))
            _save(registry, args.registry_file)
        case "acl":
            membership = injector.get(AWSMembership)
            from_port = args.from_port if args.from_port is not None else settings.cluster.storage_port
            to_port = args.to_port if args.to_port is not None else settings.cluster.ssl_storage_port
            match args.action:
                case "list":
                    for cidr in sorted(membership.list_acl(from_port, to_port)):
                        console.print(cidr)
                case "add":
                    membership.add_acl(args.cidrs, from_port, to_port)
                case "remove":
                    membership.remove_acl(args.cidrs, from_port, to_port)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ringward", description="Token ring identity sidecar")
    parser.add_argument("--project-dir", type=Path, default=None)
    parser.add_argument("--global-config", type=Path, default=None)
    parser.add_argument(
        "--registry-file",
        type=Path,
        default=None,
        help="JSON registry snapshot, updated with any slot claimed during bootstrap",
    )
    parser.add_argument("--log-level", type=str, default=None)

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("identity", help="Bootstrap and show this node's identity")
    sub.add_parser("seeds", help="Bootstrap and print the seed list")

    acl = sub.add_parser("acl", help="Manage peer ingress rules")
    acl.add_argument("action", choices=("list", "add", "remove"))
    acl.add_argument("cidrs", nargs="*", default=[])
    acl.add_argument("--from-port", type=int, default=None)
    acl.add_argument("--to-port", type=int, default=None)
    return parser


def cli(argv: Sequence[str] | None = None) -> None:
    args = _parser().parse_args(argv)

    try:
        settings = resolve_settings(project_dir=args.project_dir, global_path=args.global_config)
    except RingwardError as e:
        raise SystemExit(f"ringward: {e}") from e

    log_config = settings.logging
    if args.log_level:
        log_config = replace(log_config, level=args.log_level.upper())
    setup_logging(log_config)

    try:
        _run(args, settings)
    except RingwardError as e:
        logger.opt(exception=e).error("Fatal: {err}", err=e)
        raise SystemExit(f"ringward: {e}") from e


if __name__ == "__main__":
    cli()
