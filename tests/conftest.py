import pytest

from gitty.executor import start_game
from gitty.models import FileTarget, Graph, Puzzle, PuzzleConstraints


def build_puzzle(
        files=(("feature", 9),),
        branch_names=("main", "feature"),
        trunk="main",
        max_commands=20,
        puzzle_id="test-puzzle",
        **limits,
):
    """
    files: список позиций (ветка, глубина). По умолчанию один недостижимый
    файл, чтобы игра не заканчивалась победой после первого коммита в trunk.
    """
    targets = tuple(
        FileTarget(id=str(idx), name=f"file{idx}.txt", branch=branch, depth=depth)
        for idx, (branch, depth) in enumerate(files, start=1)
    )
    return Puzzle(
        id=puzzle_id,
        date=None,
        difficulty="custom",
        trunk=trunk,
        branch_names=tuple(branch_names),
        initial_graph=Graph.init(trunk),
        files=targets,
        constraints=PuzzleConstraints(max_commands=max_commands, **limits),
    )


@pytest.fixture
def make_puzzle():
    return build_puzzle


@pytest.fixture
def make_game():
    def factory(*args, **kwargs):
        return start_game(build_puzzle(*args, **kwargs))

    return factory
