"""Command line interface of the signer."""

from __future__ import annotations

import argparse
import os
import sys

from horcrux.config import (
    Config,
    ConfigError,
    RuntimeConfig,
    SignMode,
    ThresholdModeConfig,
    chain_nodes_from_flag,
    cosigners_from_flag,
)
from horcrux.version_info import new_info

_VERSION_COMMAND = "version"


def load_runtime_config(home: str | None) -> RuntimeConfig:
    """Build the runtime configuration for a home directory and read its config file."""
    if not home:
        home = os.path.join(os.path.expanduser("~"), ".horcrux")
    runtime = RuntimeConfig(
        home_dir=home,
        config_file=os.path.join(home, "config.yaml"),
        state_dir=os.path.join(home, "state"),
        pid_file=os.path.join(home, "horcrux.pid"),
    )
    try:
        with open(runtime.config_file, encoding="utf-8") as fh:
            text = fh.read()
    except OSError as exc:
        print("no config exists at default location", exc)
        return runtime
    try:
        runtime.config = Config.from_yaml(text)
    except (ValueError, TypeError, AttributeError) as exc:
        raise ConfigError(f"failed to read config file: {exc}") from exc
    return runtime


def _split_list(values: list[str] | None) -> list[str]:
    return [part for value in values or () for part in value.split(",") if part]


def _init_config(args: argparse.Namespace, runtime: RuntimeConfig) -> None:
    chain_nodes = chain_nodes_from_flag(_split_list(args.node))

    if os.path.lexists(runtime.config_file) and not args.overwrite:
        raise ConfigError(
            f"{runtime.config_file} already exists. "
            "Provide the -o flag to overwrite the existing config"
        )

    key_dir = args.key_dir or None
    if args.mode == SignMode.THRESHOLD.value:
        cfg = Config(
            sign_mode=SignMode.THRESHOLD,
            priv_val_key_dir=key_dir,
            threshold_mode_config=ThresholdModeConfig(
                threshold=args.threshold,
                cosigners=cosigners_from_flag(_split_list(args.cosigner)),
                grpc_timeout=args.grpc_timeout,
                raft_timeout=args.raft_timeout,
            ),
            chain_nodes=chain_nodes,
            debug_addr=args.debug_addr,
            grpc_addr=args.grpc_address,
        )
        if not args.bare:
            cfg.validate_threshold_mode_config()
    else:
        cfg = Config(
            sign_mode=SignMode.SINGLE,
            priv_val_key_dir=key_dir,
            chain_nodes=chain_nodes,
            debug_addr=args.debug_addr,
        )
        if not args.bare:
            cfg.validate_single_signer_config()

    os.makedirs(runtime.state_dir, mode=0o755, exist_ok=True)
    runtime.config = cfg
    runtime.write_config_file()
    print(f"Successfully initialized configuration: {runtime.config_file}")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    home = argparse.ArgumentParser(add_help=False)
    home.add_argument(
        "--home",
        default=argparse.SUPPRESS,
        help="Directory for config and data (default is $HOME/.horcrux)",
    )

    parser = argparse.ArgumentParser(
        prog="horcrux",
        description="A tendermint remote signer with both threshold signer and single signer modes",
    )
    parser.add_argument(
        "--home", default=None, help="Directory for config and data (default is $HOME/.horcrux)"
    )
    commands = parser.add_subparsers(dest="command")

    config_cmd = commands.add_parser(
        "config", parents=[home], help="Commands to configure the horcrux signer"
    )
    config_commands = config_cmd.add_subparsers(dest="config_command")
    config_cmd.set_defaults(handler=None, help_parser=config_cmd)

    init = config_commands.add_parser(
        "init",
        aliases=["i"],
        parents=[home],
        help="initialize configuration file and home directory if one doesn't already exist",
    )
    init.add_argument(
        "-m", "--mode", default=SignMode.THRESHOLD.value,
        help='sign mode, "threshold" (recommended) or "single" (unsupported)',
    )
    init.add_argument(
        "-n", "--node", action="append", default=[],
        help="chain nodes in format tcp://{node-addr}:{privval-port}",
    )
    init.add_argument(
        "-c", "--cosigner", action="append", default=[],
        help="cosigners in format tcp://{cosigner-addr}:{p2p-port}",
    )
    init.add_argument(
        "-t", "--threshold", type=int, default=0,
        help="number of shards required for threshold signature",
    )
    init.add_argument(
        "-d", "--debug-addr", default="",
        help="listen address for debug server and prometheus metrics",
    )
    init.add_argument("-k", "--key-dir", default="", help="key directory if other than home directory")
    init.add_argument("--raft-timeout", default="500ms", help="cosigner raft timeout value, e.g. 1s")
    init.add_argument("--grpc-timeout", default="500ms", help="cosigner grpc timeout value, e.g. 1s")
    init.add_argument("-o", "--overwrite", action="store_true", help="overwrite an existing config.yaml")
    init.add_argument(
        "--bare", action="store_true",
        help="allows initialization without providing any flags; skips final validation",
    )
    init.add_argument(
        "-g", "--flagGRPCAddress", dest="grpc_address", default="",
        help="GRPC address if listener should be enabled",
    )
    init.set_defaults(handler=_init_config)

    version = commands.add_parser(
        _VERSION_COMMAND, parents=[home], help="Version information for horcrux"
    )
    version.set_defaults(handler=None, help_parser=version)

    parser.set_defaults(handler=None, help_parser=parser)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the command line and return the exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    is_version = args.command == _VERSION_COMMAND
    if args.handler is None and not is_version:
        args.help_parser.print_help()
        return 0
    try:
        runtime = load_runtime_config(args.home)
        if is_version:
            print(new_info().to_json())
        else:
            args.handler(args, runtime)
    except (ConfigError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())