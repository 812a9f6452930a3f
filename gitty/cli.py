"""Офлайн-команды для генерации головоломок и прогона скриптов команд."""
import logging

import click

from .command import format_git, load_commands_from_yaml
from .config import load_config
from .errors import GameError, GenerationFailure
from .executor import WON, apply_command, start_game
from .generator import generate_puzzle
from .serialization import dump_puzzle_yaml, load_puzzle_yaml
from .session import calculate_score
from .solver import DEFAULT_MAX_STATES, solve


def _print_solution(commands) -> None:
    for idx, command in enumerate(commands, start=1):
        click.echo(f"  {idx:>2}. {format_git(command)}")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "config_path",
    envvar="GITTY_CONFIG",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML file with generator settings",
)
@click.pass_context
def cli(ctx, verbose, config_path):
    """Gitty - daily version-control puzzles."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.option("--date", "day", type=click.DateTime(formats=["%Y-%m-%d"]), help="Puzzle date (YYYY-MM-DD)")
@click.option("--archive", "archive_id", help="Archive puzzle identifier")
@click.option("--difficulty", help="Difficulty tier (defaults to the weekday tier)")
@click.option("-o", "--output", type=click.Path(dir_okay=False), help="Write the puzzle to a YAML file")
@click.pass_context
def generate(ctx, day, archive_id, difficulty, output):
    """Generate and verify a puzzle."""
    if day is None and archive_id is None:
        raise click.UsageError("Pass --date or --archive")
    try:
        config = load_config(ctx.obj["config_path"])
        puzzle = generate_puzzle(
            date=day.date() if day else None,
            archive_id=archive_id,
            difficulty=difficulty,
            config=config,
        )
    except (GenerationFailure, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"Puzzle {puzzle.id} ({puzzle.difficulty}), par {puzzle.par_score}")
    for target in puzzle.files:
        click.echo(f"  file {target.name} at {target.branch}@{target.depth}")
    _print_solution(puzzle.solution)
    if output:
        dump_puzzle_yaml(puzzle, output)
        click.echo(f"Written to {output}")


@cli.command(name="solve")
@click.argument("puzzle_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--max-states", default=DEFAULT_MAX_STATES, show_default=True, help="Search state limit")
def solve_command(puzzle_file, max_states):
    """Re-solve a stored puzzle and compare with its par."""
    try:
        puzzle = load_puzzle_yaml(puzzle_file)
        solution = solve(puzzle, max_states=max_states)
    except GameError as exc:
        raise click.ClickException(str(exc)) from exc

    if solution is None:
        raise click.ClickException(f"Puzzle {puzzle.id} is unsolvable within {puzzle.constraints.max_commands} commands")
    click.echo(f"Par {solution.par_score} (stored {puzzle.par_score}), explored {solution.explored} states")
    _print_solution(solution.commands)
    if solution.par_score != puzzle.par_score:
        raise click.ClickException("Stored par score does not match the solver")


@cli.command()
@click.argument("puzzle_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("script", type=click.Path(exists=True, dir_okay=False))
def play(puzzle_file, script):
    """Replay a YAML command script against a puzzle."""
    try:
        puzzle = load_puzzle_yaml(puzzle_file)
        commands = load_commands_from_yaml(script)
    except GameError as exc:
        raise click.ClickException(str(exc)) from exc

    state = start_game(puzzle)
    for command in commands:
        state, result = apply_command(state, command)
        mark = "ok" if result.success else "error"
        click.echo(f"$ {format_git(command)}")
        click.echo(f"  [{mark}] {result.message}")
        if result.files_collected:
            click.echo(f"  collected: {', '.join(f.name for f in result.files_collected)}")

    collected = sum(1 for f in state.files if f.collected)
    click.echo(f"Status: {state.status}, commands {state.commands_used}, files {collected}/{len(state.files)}")
    if state.status == WON:
        click.echo(f"Score: {calculate_score(state.commands_used, puzzle.par_score)} (par {puzzle.par_score})")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
