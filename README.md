# horcrux

Building blocks for a threshold remote signer for CometBFT validators:

- `horcrux.config`: the on-disk YAML configuration (sign mode, chain nodes,
  cosigners, timeouts), its validation, and the locations of key and state
  files under a home directory;
- `horcrux.address`: parsing of cosigner addresses and the combined
  `multi:///host:port,...` address;
- `horcrux.cosigner_key`: Ed25519 key shard files (`CosignerEd25519Key`),
  with public keys stored in protobuf form and older amino-encoded keys still
  readable;
- `horcrux.cosigner`: abstract `Cosigner`, `Leader` and `CosignerSecurity`
  interfaces and the nonce and signing message types;
- `horcrux.cosigner_health`: round-trip tracking of peer cosigners to pick the
  fastest ones;
- `horcrux.nonce_cache`: the leader's cache of nonces fetched ahead of time
  from the cosigners, sized from a moving average of demand;
- `horcrux.cond`: a broadcast-only condition variable with timed waits;
- a `horcrux` command line.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command line

Initialise a threshold-mode configuration in `~/.horcrux/config.yaml`:

```
horcrux config init \
  -n tcp://10.168.0.1:1234 -n tcp://10.168.0.2:1234 \
  -c tcp://10.168.1.1:2222 -c tcp://10.168.1.2:2222 -c tcp://10.168.1.3:2222 \
  -t 2 --raft-timeout 500ms --grpc-timeout 500ms
```

`-n` and `-c` may be repeated or given comma-separated lists; cosigners get
shard IDs 1, 2, 3, ... in the order given. Other options of `config init`
(alias `config i`):

- `--home DIR`: use another home directory;
- `-m single`: single-signer mode (default `threshold`);
- `-k DIR`: key directory other than the home directory;
- `-d ADDR`: debug address written to the configuration;
- `-g ADDR`: gRPC listen address written to the configuration;
- `-o`: overwrite an existing `config.yaml`;
- `--bare`: skip final validation.

The command also creates the `state` directory under the home directory.
Invalid input is reported on standard error with exit status 1.

Show version information as JSON:

```
horcrux version
```

## Library use

```python
from horcrux.config import Config, ThresholdModeConfig, CosignerConfig, ChainNode, SignMode

cfg = Config(
    sign_mode=SignMode.THRESHOLD,
    threshold_mode_config=ThresholdModeConfig(
        threshold=2,
        cosigners=[
            CosignerConfig(shard_id=1, p2p_addr="tcp://127.0.0.1:2222"),
            CosignerConfig(shard_id=2, p2p_addr="tcp://127.0.0.1:2223"),
            CosignerConfig(shard_id=3, p2p_addr="tcp://127.0.0.1:2224"),
        ],
        grpc_timeout="1000ms",
        raft_timeout="1000ms",
    ),
    chain_nodes=[ChainNode(priv_val_addr="tcp://127.0.0.1:1234")],
)
cfg.validate_threshold_mode_config()  # raises ConfigError when invalid
print(cfg.to_yaml())
print(cfg.threshold_mode_config.leader_elect_multi_address())
# multi:///127.0.0.1:2222,127.0.0.1:2223,127.0.0.1:2224
```

`Config.from_yaml` reads the same format back, and `RuntimeConfig` gives the
paths of key and state files (`key_file_path_cosigner`,
`priv_val_state_file`, ...), with `key_file_exists_*` methods that raise
`ConfigError` when a file is missing. `parse_duration` turns timeout strings
such as `"1.5s"` or `"500ms"` into seconds.

Key shard files:

```python
from horcrux.cosigner_key import load_cosigner_ed25519_key, write_cosigner_ed25519_shard_file

key = load_cosigner_ed25519_key("test_shard.json")
write_cosigner_ed25519_shard_file(key, "copy_shard.json")  # written with mode 0600
```

## What this package does not do

It has no signing service: there is no `start` command, no connection to
chain nodes, no gRPC or consensus transport between cosigners, and no leader
election. `Cosigner`, `Leader` and `CosignerSecurity` are interfaces only;
`CosignerHealth` and `CosignerNonceCache` work with whatever implementations
you supply (a cosigner is pinged through a `ping(timeout=...)` method when it
has one). The package does not deal key shards from a validator key, generate
RSA or ECIES encryption keys, migrate older configurations, or manage sign
state files.