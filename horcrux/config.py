"""On-disk configuration for the signer."""

from __future__ import annotations

import enum
import os
import re
from dataclasses import dataclass, field

import yaml

from horcrux.address import AddressError, go_quote, multi_address, parse_url, split_host_port


class ConfigError(ValueError):
    """Raised when configuration is invalid."""


class SignMode(str, enum.Enum):
    THRESHOLD = "threshold"
    SINGLE = "single"


_UNITS = {
    "ns": 1e-9, "us": 1e-6, "\u00b5s": 1e-6, "\u03bcs": 1e-6,
    "ms": 1e-3, "s": 1.0, "m": 60.0, "h": 3600.0,
}
_SEGMENT = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]*)")


def parse_duration(text: str) -> float:
    """Parse a duration such as "1.5s" or "500ms" into seconds."""
    quoted = go_quote(text)
    s = text
    sign = 1.0
    if s[:1] in "+-" and s:
        sign = -1.0 if s[0] == "-" else 1.0
        s = s[1:]
    if s == "0":
        return 0.0
    if not s:
        raise ConfigError(f"time: invalid duration {quoted}")
    total = 0.0
    while s:
        match = _SEGMENT.match(s)
        whole, frac, unit = match.group(1), match.group(2), match.group(3)
        if not whole and not frac:
            raise ConfigError(f"time: invalid duration {quoted}")
        if not unit:
            raise ConfigError(f"time: missing unit in duration {quoted}")
        unit_match = re.match(r"ns|us|\u00b5s|\u03bcs|ms|s|m|h", unit)
        known = unit_match.group(0) if unit_match else None
        if known is None:
            raise ConfigError(f"time: unknown unit {go_quote(unit)} in duration {quoted}")
        number = float(f"{whole or '0'}.{frac or '0'}")
        total += number * _UNITS[known]
        s = s[match.start(3) + len(known):]
    return sign * total


@dataclass
class CosignerConfig:
    shard_id: int
    p2p_addr: str


@dataclass
class ChainNode:
    priv_val_addr: str

    def validate(self) -> None:
        try:
            parse_url(self.priv_val_addr)
        except AddressError as exc:
            raise ConfigError(str(exc)) from exc


def _duplicates(cosigners: list[CosignerConfig]) -> dict[int, list[str]]:
    by_id: dict[int, list[str]] = {}
    for c in cosigners:
        by_id.setdefault(c.shard_id, []).append(c.p2p_addr)
    return {k: v for k, v in by_id.items() if len(v) > 1}


def validate_cosigners(cosigners: list[CosignerConfig]) -> None:
    """Check shard IDs and peer addresses of a cosigner list."""
    dupl = _duplicates(cosigners)
    if dupl:
        rendered = " ".join(f"{k}:[{' '.join(v)}]" for k, v in sorted(dupl.items()))
        raise ConfigError(f"found duplicate cosigner shard ID(s) in args: map[{rendered}]")
    shards = len(cosigners)
    for c in cosigners:
        if not 1 <= c.shard_id <= shards:
            raise ConfigError(
                f"cosigner shard ID {c.shard_id} in args is out of range, "
                f"must be between 1 and {shards}, inclusive"
            )
        try:
            url = parse_url(c.p2p_addr)
        except AddressError as exc:
            raise ConfigError(
                f"failed to parse cosigner (shard ID: {c.shard_id}) p2p address: {exc}"
            ) from exc
        try:
            host, _ = split_host_port(url.host)
        except AddressError as exc:
            raise ConfigError(
                f"failed to parse cosigner (shard ID: {c.shard_id}) host port: {exc}"
            ) from exc
        if host == "0.0.0.0":
            raise ConfigError("host cannot be 0.0.0.0, must be reachable from other cosigners")


def validate_chain_nodes(nodes: list[ChainNode] | None) -> None:
    for node in nodes or ():
        node.validate()


def cosigners_from_flag(cosigners: list[str]) -> list[CosignerConfig]:
    return [CosignerConfig(shard_id=i, p2p_addr=c) for i, c in enumerate(cosigners, start=1)]


def chain_nodes_from_flag(nodes: list[str]) -> list[ChainNode]:
    out = [ChainNode(priv_val_addr=n) for n in nodes]
    validate_chain_nodes(out)
    return out


@dataclass
class ThresholdModeConfig:
    threshold: int
    cosigners: list[CosignerConfig] = field(default_factory=list)
    grpc_timeout: str = ""
    raft_timeout: str = ""

    def leader_elect_multi_address(self) -> str:
        return multi_address([c.p2p_addr for c in self.cosigners])


class _Dumper(yaml.SafeDumper):
    pass


def _represent_str(dumper: yaml.SafeDumper, value: str) -> yaml.Node:
    style = '"' if value == "" else None
    return dumper.represent_scalar("tag:yaml.org,2002:str", value, style=style)


_Dumper.add_representer(str, _represent_str)


@dataclass
class Config:
    sign_mode: SignMode | str = ""
    priv_val_key_dir: str | None = None
    threshold_mode_config: ThresholdModeConfig | None = None
    chain_nodes: list[ChainNode] = field(default_factory=list)
    debug_addr: str = ""
    grpc_addr: str = ""

    def nodes(self) -> list[str]:
        return [n.priv_val_addr for n in self.chain_nodes]

    def to_yaml(self) -> str:
        data: dict = {}
        if self.priv_val_key_dir:
            data["keyDir"] = self.priv_val_key_dir
        mode = self.sign_mode
        data["signMode"] = mode.value if isinstance(mode, SignMode) else str(mode)
        tm = self.threshold_mode_config
        if tm is not None:
            data["thresholdMode"] = {
                "threshold": tm.threshold,
                "cosigners": [{"shardID": c.shard_id, "p2pAddr": c.p2p_addr} for c in tm.cosigners],
                "grpcTimeout": tm.grpc_timeout,
                "raftTimeout": tm.raft_timeout,
            }
        data["chainNodes"] = [{"privValAddr": n.priv_val_addr} for n in self.chain_nodes]
        data["debugAddr"] = self.debug_addr
        data["grpcAddr"] = self.grpc_addr
        return yaml.dump(data, Dumper=_Dumper, sort_keys=False, default_flow_style=False)

    @classmethod
    def from_yaml(cls, text: str) -> "Config":
        data = yaml.safe_load(text) or {}
        tm_data = data.get("thresholdMode")
        tm = None
        if tm_data:
            tm = ThresholdModeConfig(
                threshold=int(tm_data.get("threshold") or 0),
                cosigners=[
                    CosignerConfig(int(c.get("shardID") or 0), str(c.get("p2pAddr") or ""))
                    for c in tm_data.get("cosigners") or []
                ],
                grpc_timeout=str(tm_data.get("grpcTimeout") or ""),
                raft_timeout=str(tm_data.get("raftTimeout") or ""),
            )
        mode = str(data.get("signMode") or "")
        try:
            sign_mode: SignMode | str = SignMode(mode)
        except ValueError:
            sign_mode = mode
        return cls(
            sign_mode=sign_mode,
            priv_val_key_dir=data.get("keyDir"),
            threshold_mode_config=tm,
            chain_nodes=[ChainNode(str(n.get("privValAddr") or "")) for n in data.get("chainNodes") or []],
            debug_addr=str(data.get("debugAddr") or ""),
            grpc_addr=str(data.get("grpcAddr") or ""),
        )

    def validate_single_signer_config(self) -> None:
        validate_chain_nodes(self.chain_nodes)

    def validate_threshold_mode_config(self) -> None:
        self.validate_single_signer_config()
        tm = self.threshold_mode_config
        if tm is None:
            raise ConfigError("cosigner config can't be empty")
        shards = len(tm.cosigners)
        if tm.threshold <= shards // 2:
            raise ConfigError(
                f"threshold ({tm.threshold}) must be greater than number of shards ({shards}) / 2"
            )
        if shards < tm.threshold:
            raise ConfigError(
                f"number of shards ({shards}) must be greater or equal to threshold ({tm.threshold})"
            )
        try:
            parse_duration(tm.raft_timeout)
        except ConfigError as exc:
            raise ConfigError(f"invalid raftTimeout: {exc}") from exc
        try:
            parse_duration(tm.grpc_timeout)
        except ConfigError as exc:
            raise ConfigError(f"invalid grpcTimeout: {exc}") from exc
        validate_cosigners(tm.cosigners)


def _require_file(path: str) -> str:
    try:
        st = os.stat(path)
    except FileNotFoundError as exc:
        raise ConfigError(
            f"file doesn't exist at path ({path}): stat {path}: no such file or directory"
        ) from exc
    except OSError as exc:
        raise ConfigError(f"unexpected error checking file existence ({path}): {exc}") from exc
    if os.path.isdir(path) or (st.st_mode & 0o170000) == 0o040000:
        raise ConfigError(f"path is not a file ({path})")
    return path


@dataclass
class RuntimeConfig:
    home_dir: str = ""
    config_file: str = ""
    state_dir: str = ""
    pid_file: str = ""
    config: Config = field(default_factory=Config)

    def _key_dir(self) -> str:
        return self.config.priv_val_key_dir or self.home_dir

    def key_file_path_single_signer(self, chain_id: str) -> str:
        return os.path.join(self._key_dir(), f"{chain_id}_priv_validator_key.json")

    def key_file_path_cosigner(self, chain_id: str) -> str:
        return os.path.join(self._key_dir(), f"{chain_id}_shard.json")

    def key_file_path_cosigner_rsa(self) -> str:
        return os.path.join(self._key_dir(), "rsa_keys.json")

    def key_file_path_cosigner_ecies(self) -> str:
        return os.path.join(self._key_dir(), "ecies_keys.json")

    def priv_val_state_file(self, chain_id: str) -> str:
        return os.path.join(self.state_dir, f"{chain_id}_priv_validator_state.json")

    def cosigner_state_file(self, chain_id: str) -> str:
        return os.path.join(self.state_dir, f"{chain_id}_share_sign_state.json")

    def write_config_file(self) -> None:
        fd = os.open(self.config_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(self.config.to_yaml())

    def key_file_exists_single_signer(self, chain_id: str) -> str:
        return _require_file(self.key_file_path_single_signer(chain_id))

    def key_file_exists_cosigner(self, chain_id: str) -> str:
        return _require_file(self.key_file_path_cosigner(chain_id))

    def key_file_exists_cosigner_rsa(self) -> str:
        return _require_file(self.key_file_path_cosigner_rsa())

    def key_file_exists_cosigner_ecies(self) -> str:
        return _require_file(self.key_file_path_cosigner_ecies())