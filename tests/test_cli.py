"""Tests for the command-line entry point."""

import json
import subprocess
from pathlib import Path

import pytest

from dependency_cutoff import cli


LOCKFILE = {
    "lockfileVersion": 2,
    "packages": {"": {"dependencies": {"lodash": "^4.17.21", "missing": "^1.0.0"}}},
    "dependencies": {"lodash": {"version": "4.17.21"}},
}

LODASH_INFO = {
    "versions": ["4.17.15", "4.17.21"],
    "time": {"4.17.15": "2019-10-28T11:12:03.209Z", "4.17.21": "2021-02-20T15:42:16.891Z"},
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "IGNORE_CACHE",
        "USE_PARTIAL_VERSIONS",
        "PROCESS_FULL_GRAPH",
        "PARALLEL_LIMIT",
        "MAX_BUFFER_FOR_EXEC",
        "NPM_DEPENDENCY_DATE_CACHE",
    ):
        monkeypatch.delenv(name, raising=False)


def write_lockfile(tmp_path: Path) -> Path:
    lockfile = tmp_path / "package-lock.json"
    lockfile.write_text(json.dumps(LOCKFILE), encoding="utf-8")
    return lockfile


def test_invalid_date_exits_nonzero(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["not-a-date", "--lockfile", str(write_lockfile(tmp_path))])

    assert excinfo.value.code == 1


def test_unreadable_lockfile_exits_nonzero(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["2020-01-01", "--lockfile", str(tmp_path / "nope.json")])

    assert excinfo.value.code == 1


def test_full_run_prints_remediation(tmp_path: Path, monkeypatch, capsys) -> None:
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, json.dumps(LODASH_INFO), "")

    monkeypatch.setattr(subprocess, "run", fake_run)
    csv_file = tmp_path / "decisions.csv"

    cli.main(
        [
            "2020-01-01",
            "--lockfile", str(write_lockfile(tmp_path)),
            "--cache-dir", str(tmp_path / "cache"),
            "--output-csv", str(csv_file),
        ]
    )

    out = capsys.readouterr().out
    assert calls == [["npm", "info", "--json", "lodash@^4.17.21"]]
    assert "npm install --save-exact lodash@4.17.15" in out
    assert csv_file.exists()


def test_flags_override_environment(monkeypatch) -> None:
    monkeypatch.setenv("PARALLEL_LIMIT", "2")
    monkeypatch.setenv("PROCESS_FULL_GRAPH", "1")
    args = cli.build_parser().parse_args(["2020-01-01", "--parallel-limit", "5", "--progress"])

    config = cli.build_config(args)

    assert config.parallel_limit == 5
    assert config.process_full_graph
    assert config.show_progress


def fake_npm(monkeypatch):
    def fake_run(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 0, json.dumps(LODASH_INFO), "")

    monkeypatch.setattr(subprocess, "run", fake_run)


@pytest.mark.parametrize("name,value", [("PARALLEL_LIMIT", "0"), ("PARALLEL_LIMIT", "abc"), ("MAX_BUFFER_FOR_EXEC", "-1")])
def test_bad_environment_setting_does_not_abort(tmp_path: Path, monkeypatch, capsys, name, value) -> None:
    fake_npm(monkeypatch)
    monkeypatch.setenv(name, value)

    cli.main(["2020-01-01", "--lockfile", str(write_lockfile(tmp_path)), "--cache-dir", str(tmp_path / "cache")])

    assert "npm install --save-exact lodash@4.17.15" in capsys.readouterr().out


@pytest.mark.parametrize("flag", ["--parallel-limit", "--max-buffer"])
def test_non_positive_flag_is_a_usage_error(tmp_path: Path, flag) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["2020-01-01", "--lockfile", str(write_lockfile(tmp_path)), flag, "0"])

    assert excinfo.value.code == 2


@pytest.mark.parametrize("content", ["{not json", "[]", '{"packages": ["x"]}'])
def test_malformed_lockfile_exits_with_message(tmp_path: Path, capsys, content) -> None:
    lockfile = tmp_path / "package-lock.json"
    lockfile.write_text(content, encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["2020-01-01", "--lockfile", str(lockfile)])

    assert excinfo.value.code == 1
    assert "#! " in capsys.readouterr().err


def test_cutoff_banner_is_printed_once(tmp_path: Path, monkeypatch, capsys, caplog) -> None:
    fake_npm(monkeypatch)

    cli.main(["2020-01-01", "--lockfile", str(write_lockfile(tmp_path)), "--cache-dir", str(tmp_path / "cache")])

    out = capsys.readouterr().out
    assert out.count("Looking for packages released after 2020-01-01T00:00:00.000Z") == 1
    assert "Looking for packages" not in caplog.text
