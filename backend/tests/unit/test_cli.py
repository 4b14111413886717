"""Unit tests for the face-dedup command-line interface."""

import json

import pytest
from click.testing import CliRunner

from face_dedup import __version__
from face_dedup.cli.main import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Isolated data home with a small descriptor length."""
    for var in ('FACE_DEDUP_CONFIG', 'FACE_DEDUP_STORE', 'FACE_DEDUP_DATABASE', 'FACE_DEDUP_THRESHOLD'):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv('FACE_DEDUP_DATA_HOME', str(tmp_path / "home"))
    monkeypatch.setenv('FACE_DEDUP_DESCRIPTOR_LENGTH', '2')
    return tmp_path


@pytest.fixture
def descriptor_file(env):
    def write(name, payload):
        path = env / name
        path.write_text(json.dumps(payload), encoding="utf-8")
        return str(path)
    return write


def test_version(runner):
    result = runner.invoke(cli, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_init_creates_config(runner, env):
    result = runner.invoke(cli, ["init"])

    config_path = env / "home" / "config.json"
    assert result.exit_code == 0
    assert config_path.exists()
    assert json.loads(config_path.read_text())["matching"]["threshold"] == 0.6
    assert "Config created" in result.output


def test_init_keeps_existing_config(runner, env):
    runner.invoke(cli, ["init"])
    result = runner.invoke(cli, ["init"])

    assert result.exit_code == 0
    assert "Config already exists" in result.output


def test_submit_then_match(runner, descriptor_file):
    first = runner.invoke(cli, ["submit", descriptor_file("d1.json", [0.0, 0.0])])
    second = runner.invoke(cli, ["submit", descriptor_file("d2.json", {"descriptor": [0.1, 0.1]})])
    third = runner.invoke(cli, ["submit", descriptor_file("d3.json", [5.0, 5.0])])

    assert first.exit_code == 0, first.output
    assert "New face saved" in first.output
    assert "Face exists" in second.output
    assert "New face saved" in third.output

    count = runner.invoke(cli, ["count"])
    assert count.output.strip() == "2"


def test_submit_invalid_descriptor(runner, descriptor_file):
    result = runner.invoke(cli, ["submit", descriptor_file("bad.json", [0.0, 0.0, 0.0])])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_submit_bad_file(runner, descriptor_file):
    result = runner.invoke(cli, ["submit", descriptor_file("bad.json", {"vector": [0.0]})])

    assert result.exit_code != 0
    assert "descriptor" in result.output


def test_submit_bad_location(runner, descriptor_file):
    result = runner.invoke(cli, ["submit", descriptor_file("d1.json", {"descriptor": [0.0, 0.0], "location": "Oslo"})])

    assert result.exit_code == 1
    assert "location" in result.output
    assert runner.invoke(cli, ["count"]).output.strip() == "0"


def test_show(runner, descriptor_file):
    submitted = runner.invoke(cli, [
        "submit", descriptor_file("d1.json", {"descriptor": [0.5, 0.5], "location": {"city": "Oslo"}}),
        "--device", "pytest",
    ])
    record_id = submitted.output.strip().rsplit("(", 1)[1].rstrip(")")

    result = runner.invoke(cli, ["show", record_id])

    assert result.exit_code == 0
    shown = json.loads(result.output)
    assert shown["id"] == record_id
    assert shown["descriptor"] == [0.5, 0.5]
    assert shown["metadata"]["device"] == "pytest"
    assert shown["metadata"]["network_origin"] == "cli"
    assert shown["metadata"]["location"] == {"city": "Oslo"}


def test_show_missing(runner, env):
    result = runner.invoke(cli, ["show", "nope"])

    assert result.exit_code == 1


def test_config_option(runner, env, descriptor_file):
    config_path = env / "custom.json"
    config_path.write_text(json.dumps({"matching": {"threshold": 0.05}}), encoding="utf-8")

    runner.invoke(cli, ["--config", str(config_path), "submit", descriptor_file("d1.json", [0.0, 0.0])])
    result = runner.invoke(cli, ["--config", str(config_path), "submit", descriptor_file("d2.json", [0.1, 0.1])])

    assert "New face saved" in result.output


def test_invalid_config(runner, env):
    config_path = env / "custom.json"
    config_path.write_text(json.dumps({"storage": {"backend": "mongodb"}}), encoding="utf-8")

    result = runner.invoke(cli, ["--config", str(config_path), "count"])

    assert result.exit_code != 0
    assert "storage.backend" in result.output
