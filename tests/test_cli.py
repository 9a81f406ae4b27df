import json
import os

import pytest

from horcrux.cli import build_parser, load_runtime_config, main
from horcrux.config import SignMode

THRESHOLD_ARGS = [
    "-n", "tcp://10.168.0.1:1234",
    "-n", "tcp://10.168.0.2:1234",
    "-c", "tcp://10.168.1.1:2222",
    "-c", "tcp://10.168.1.2:2222",
    "-c", "tcp://10.168.1.3:2222",
    "-t", "2",
    "--raft-timeout", "500ms",
    "--grpc-timeout", "500ms",
]

EXPECTED_THRESHOLD = """signMode: threshold
thresholdMode:
  threshold: 2
  cosigners:
  - shardID: 1
    p2pAddr: tcp://10.168.1.1:2222
  - shardID: 2
    p2pAddr: tcp://10.168.1.2:2222
  - shardID: 3
    p2pAddr: tcp://10.168.1.3:2222
  grpcTimeout: 500ms
  raftTimeout: 500ms
chainNodes:
- privValAddr: tcp://10.168.0.1:1234
- privValAddr: tcp://10.168.0.2:1234
debugAddr: ""
grpcAddr: ""
"""

EXPECTED_SINGLE = """signMode: single
chainNodes:
- privValAddr: tcp://10.168.0.1:1234
- privValAddr: tcp://10.168.0.2:1234
debugAddr: ""
grpcAddr: ""
"""


def _replace(args, flag, value):
    out = list(args)
    out[out.index(flag) + 1] = value
    return out


def _run_init(home, args):
    return main(["--home", str(home), "config", "init", *args])


def test_valid_init_threshold(tmp_path):
    home = tmp_path / ".horcrux"
    assert _run_init(home, THRESHOLD_ARGS) == 0
    assert (home / "config.yaml").read_text() == EXPECTED_THRESHOLD
    assert (home / "state").is_dir()


def test_valid_init_single(tmp_path):
    home = tmp_path / ".horcrux"
    args = ["-m", "single", "-n", "tcp://10.168.0.1:1234", "-n", "tcp://10.168.0.2:1234"]
    assert _run_init(home, args) == 0
    assert (home / "config.yaml").read_text() == EXPECTED_SINGLE


@pytest.mark.parametrize(
    "flag,old,new,expected",
    [
        ("-n", "tcp://10.168.0.1:1234", "://10.168.0.1:1234",
         'parse "://10.168.0.1:1234": missing protocol scheme'),
        ("-c", "tcp://10.168.1.1:2222", "://10.168.1.1:2222",
         'failed to parse cosigner (shard ID: 1) p2p address: '
         'parse "://10.168.1.1:2222": missing protocol scheme'),
        ("-t", "2", "1", "threshold (1) must be greater than number of shards (3) / 2"),
        ("--raft-timeout", "500ms", "1500",
         'invalid raftTimeout: time: missing unit in duration "1500"'),
        ("--grpc-timeout", "500ms", "1500",
         'invalid grpcTimeout: time: missing unit in duration "1500"'),
    ],
)
def test_invalid_init(tmp_path, capsys, flag, old, new, expected):
    args = list(THRESHOLD_ARGS)
    args[args.index(old)] = new
    home = tmp_path / ".horcrux"
    assert _run_init(home, args) == 1
    err = capsys.readouterr().err
    assert err.strip() == f"Error: {expected}"
    assert not (home / "config.yaml").exists()


def test_comma_separated_cosigners(tmp_path):
    home = tmp_path / ".horcrux"
    args = [
        "-n", "tcp://10.168.0.1:1234",
        "-n", "tcp://10.168.0.2:1234",
        "-t", "2",
        "-c", "tcp://10.168.1.1:2222,tcp://10.168.1.2:2222,tcp://10.168.1.3:2222",
    ]
    assert _run_init(home, args) == 0
    assert (home / "config.yaml").read_text() == EXPECTED_THRESHOLD


def test_existing_config_requires_overwrite(tmp_path, capsys):
    home = tmp_path / ".horcrux"
    assert _run_init(home, THRESHOLD_ARGS) == 0
    capsys.readouterr()
    assert _run_init(home, THRESHOLD_ARGS) == 1
    err = capsys.readouterr().err
    assert "already exists. Provide the -o flag to overwrite the existing config" in err
    single = ["-m", "single", "-o", "-n", "tcp://10.168.0.1:1234", "-n", "tcp://10.168.0.2:1234"]
    assert _run_init(home, single) == 0
    assert (home / "config.yaml").read_text() == EXPECTED_SINGLE


def test_bare_skips_validation(tmp_path):
    home = tmp_path / ".horcrux"
    assert _run_init(home, ["--bare"]) == 0
    text = (home / "config.yaml").read_text()
    assert text.startswith("signMode: threshold\n")
    assert "threshold: 0" in text


def test_home_flag_after_subcommand(tmp_path):
    home = tmp_path / ".horcrux"
    assert main(["config", "init", "--home", str(home), *THRESHOLD_ARGS]) == 0
    assert (home / "config.yaml").read_text() == EXPECTED_THRESHOLD


def test_load_runtime_config_reads_written_config(tmp_path):
    home = tmp_path / ".horcrux"
    assert _run_init(home, THRESHOLD_ARGS) == 0
    runtime = load_runtime_config(str(home))
    assert runtime.config_file == os.path.join(str(home), "config.yaml")
    assert runtime.state_dir == os.path.join(str(home), "state")
    assert runtime.pid_file == os.path.join(str(home), "horcrux.pid")
    assert runtime.config.sign_mode == SignMode.THRESHOLD
    assert runtime.config.nodes() == ["tcp://10.168.0.1:1234", "tcp://10.168.0.2:1234"]
    assert runtime.config.threshold_mode_config.threshold == 2


def test_load_runtime_config_without_file(tmp_path):
    runtime = load_runtime_config(str(tmp_path))
    assert runtime.home_dir == str(tmp_path)
    assert runtime.config.chain_nodes == []
    assert runtime.config.threshold_mode_config is None


def test_parser_init_defaults():
    args = build_parser().parse_args(["config", "i"])
    assert args.mode == "threshold"
    assert args.raft_timeout == "500ms"
    assert args.grpc_timeout == "500ms"
    assert args.threshold == 0
    assert args.overwrite is False


def test_version_command(tmp_path, capsys):
    assert main(["--home", str(tmp_path), "version"]) == 0
    out = capsys.readouterr().out
    data = json.loads(out[out.index("{"):])
    assert set(data) == {"version", "commit", "python_version"}
    assert "python" in data["python_version"]
    assert _replace(["-t", "1"], "-t", "2") == ["-t", "2"]