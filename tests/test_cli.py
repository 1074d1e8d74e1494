"""
Tests for the command line entry point (offline commands only).
"""
import json

import pytest

from plantchain.cli import main


def test_deployments_command_writes_registry(tmp_path, capsys):
    network_dir = tmp_path / "deployments" / "sepolia"
    network_dir.mkdir(parents=True)
    (network_dir / "PlantChain.json").write_text(json.dumps({
        "address": "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0",
        "abi": [],
    }))
    output = tmp_path / "deployments.json"

    main(["deployments", "--scan", str(tmp_path / "deployments"), "--output", str(output)])

    assert json.loads(output.read_text())["11155111"]["chainName"] == "sepolia"
    assert "Wrote 1 deployment(s)" in capsys.readouterr().out


def test_points_without_key_exits(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--private-key", "", "--deployments", str(tmp_path / "d.json"), "points", "show"])

    assert excinfo.value.code == 2
    assert "no wallet key" in capsys.readouterr().err


def test_unknown_action_rejected():
    with pytest.raises(SystemExit):
        main(["points", "burn"])
