import pytest
from click.testing import CliRunner

from gitty.cli import cli
from gitty.serialization import load_puzzle_yaml

CONFIG = """
max_attempts: 3
tiers:
  tiny:
    branches: [main, feature]
    file_count: 2
    min_depth: 1
    max_depth: 1
    par_min: 1
    par_max: 8
    command_slack: 2
"""

SCRIPT = """
commands:
  - git branch feature
  - git checkout feature
  - name: commit
    params:
      message: "work on feature"
  - git checkout main
  - git commit -m "work on main"
  - git merge feature
"""


@pytest.fixture
def workdir(tmp_path):
    (tmp_path / "gitty.yaml").write_text(CONFIG, encoding="utf-8")
    (tmp_path / "script.yaml").write_text(SCRIPT, encoding="utf-8")
    return tmp_path


def generate(runner, workdir):
    return runner.invoke(
        cli,
        [
            "--config", str(workdir / "gitty.yaml"),
            "generate", "--date", "2026-10-15", "--difficulty", "tiny",
            "-o", str(workdir / "puzzle.yaml"),
        ],
    )


def test_generate_writes_puzzle(workdir):
    result = generate(CliRunner(), workdir)

    assert result.exit_code == 0, result.output
    assert "Puzzle daily-2026-10-15 (tiny), par 6" in result.output
    assert "git checkout feature" in result.output
    puzzle = load_puzzle_yaml(str(workdir / "puzzle.yaml"))
    assert puzzle.par_score == 6


def test_solve_confirms_stored_par(workdir):
    runner = CliRunner()
    generate(runner, workdir)

    result = runner.invoke(cli, ["solve", str(workdir / "puzzle.yaml")])

    assert result.exit_code == 0, result.output
    assert "Par 6 (stored 6)" in result.output


def test_play_script_wins(workdir):
    runner = CliRunner()
    generate(runner, workdir)

    result = runner.invoke(cli, ["play", str(workdir / "puzzle.yaml"), str(workdir / "script.yaml")])

    assert result.exit_code == 0, result.output
    assert "$ git checkout feature" in result.output
    assert "[error]" not in result.output
    assert "Status: won, commands 6, files 2/2" in result.output
    assert "Score: 100 (par 6)" in result.output


def test_play_reports_failed_commands(workdir):
    runner = CliRunner()
    generate(runner, workdir)
    (workdir / "bad.yaml").write_text("commands:\n  - git merge feature\n", encoding="utf-8")

    result = runner.invoke(cli, ["play", str(workdir / "puzzle.yaml"), str(workdir / "bad.yaml")])

    assert result.exit_code == 0
    assert "[error]" in result.output
    assert "Status: in_progress" in result.output


def test_generate_needs_date_or_archive():
    result = CliRunner().invoke(cli, ["generate"])

    assert result.exit_code != 0
    assert "Pass --date or --archive" in result.output


def test_generate_reports_failure(workdir):
    (workdir / "strict.yaml").write_text(CONFIG.replace("par_min: 1", "par_min: 7"), encoding="utf-8")

    result = CliRunner().invoke(
        cli,
        ["--config", str(workdir / "strict.yaml"), "generate", "--date", "2026-10-15", "--difficulty", "tiny"],
    )

    assert result.exit_code == 1
    assert "Could not generate" in result.output
