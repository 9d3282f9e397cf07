from datetime import date
import json
import os
from pathlib import Path
import subprocess
import sys


def _base_env(tmp_path: Path) -> dict[str, str]:
    env = os.environ.copy()
    env["DATABASE_URL"] = f"sqlite:///{tmp_path / 'cli.db'}"
    env["INPUT_DIR"] = str(tmp_path / "data" / "input")
    env["OUTPUT_DIR"] = str(tmp_path / "outputs")
    env["MAX_OPEN_RETRIES"] = "1"
    env["RETRY_BACKOFF_SECONDS"] = "0"
    env["TOLERATE_RECORD_FAILURES"] = "false"
    return env


def _run_cli(tmp_path: Path, *args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "-m", "recordflow.main", "run", *args],
        cwd=Path(__file__).resolve().parents[1],
        env=_base_env(tmp_path),
        check=False,
        capture_output=True,
        text=True,
    )


def _write_input(tmp_path: Path, run_date: date, rows: list[dict[str, object]]) -> None:
    input_dir = tmp_path / "data" / "input"
    input_dir.mkdir(parents=True, exist_ok=True)
    with (input_dir / f"contacts-{run_date.isoformat()}.jsonl").open("w", encoding="utf-8") as outfile:
        for row in rows:
            outfile.write(json.dumps(row))
            outfile.write("\n")


def test_cli_returns_nonzero_on_import_failure(tmp_path: Path) -> None:
    (tmp_path / "data" / "input").mkdir(parents=True, exist_ok=True)

    proc = _run_cli(tmp_path, "--run-date", "2026-02-26", "--run-key", "daily-2026-02-26")

    assert proc.returncode == 1
    assert "status=failed" in proc.stdout


def test_cli_returns_zero_on_success(tmp_path: Path) -> None:
    run_date = date(2026, 2, 27)
    _write_input(
        tmp_path,
        run_date,
        [{"record_key": "1", "full_name": "Ada Lovelace", "email": "ada@example.com", "age": 31}],
    )

    proc = _run_cli(
        tmp_path,
        "--run-date",
        run_date.isoformat(),
        "--run-key",
        "daily-2026-02-27",
        "--max-writer-concurrency",
        "2",
    )

    assert proc.returncode == 0
    assert "status=succeeded" in proc.stdout
    assert "written=1" in proc.stdout


def test_cli_tolerate_failures_flag_commits_partial_import(tmp_path: Path) -> None:
    run_date = date(2026, 2, 28)
    _write_input(
        tmp_path,
        run_date,
        [
            {"record_key": "1", "full_name": "Ada Lovelace", "email": "ada@example.com", "age": 31},
            {"record_key": "2", "full_name": "Nobody", "email": "nobody@example.com", "age": "old"},
        ],
    )

    proc = _run_cli(tmp_path, "--run-date", run_date.isoformat(), "--tolerate-failures")

    assert proc.returncode == 0
    assert "failed=1" in proc.stdout
