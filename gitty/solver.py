"""
Поиск оптимального решения головоломки.

BFS по каноническим состояниям: каждое ребро стоит одну команду, поэтому
первое найденное выигрышное состояние даёт минимальное число команд (par).
"""
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Tuple

from .canonical import Signature, signature
from .command import (
    BranchCommand,
    CheckoutCommand,
    Command,
    CommitCommand,
    MergeCommand,
    RebaseCommand,
)
from .errors import SolverLimitExceeded
from .executor import GameState, apply_command, start_game
from .models import Puzzle, copy_files
from .undo import UndoStack

logger = logging.getLogger(__name__)

DEFAULT_MAX_STATES = 200_000

Usage = Tuple[int, int, int]


@dataclass
class Solution:
    commands: List[Command]
    explored: int

    @property
    def par_score(self) -> int:
        return len(self.commands)


def legal_commands(state: GameState) -> List[Command]:
    """
    Все ходы из состояния с точностью до аргументов. Ходы, которые заведомо
    ничего не меняют (checkout текущей ветки, merge ветки в саму себя), пропускаются.
    Квоты здесь не проверяются: это делает исполнитель.
    """
    constraints = state.constraints
    graph = state.graph
    current_branch = graph.current_branch()
    current_name = current_branch.name if current_branch else None
    branch_names = list(graph.branches)
    moves: List[Command] = []

    if constraints.allows("commit"):
        moves.append(CommitCommand())
    if constraints.allows("branch"):
        moves.extend(BranchCommand(name) for name in state.puzzle.branch_names if name not in graph.branches)
    if constraints.allows("checkout"):
        moves.extend(CheckoutCommand(name) for name in branch_names if name != current_name)
    if current_name is not None:
        others = [name for name in branch_names if name != current_name]
        if constraints.allows("merge"):
            moves.extend(MergeCommand(name) for name in others)
        if constraints.allows("rebase"):
            moves.extend(RebaseCommand(name) for name in others)
    if constraints.allows("checkout"):
        head_commit = graph.head.ref if graph.head and graph.head.is_detached else None
        moves.extend(
            CheckoutCommand(commit_id)
            for commit_id in sorted(graph.reachable_commit_ids())
            if commit_id != head_commit
        )
    return moves


def fork_state(state: GameState) -> GameState:
    return GameState(
        puzzle=state.puzzle,
        graph=state.graph.copy(),
        files=copy_files(state.files),
        undo_stack=UndoStack(0),
        commands_used=state.commands_used,
        checkouts_used=state.checkouts_used,
        consecutive_commits=state.consecutive_commits,
        status=state.status,
    )


def _usage(state: GameState) -> Usage:
    """Расход квот, которые не входят в подпись, но ограничивают будущие ходы."""
    constraints = state.constraints
    return (
        state.checkouts_used if constraints.max_checkouts is not None else 0,
        state.consecutive_commits if constraints.max_consecutive_commits is not None else 0,
        len(state.graph.commits) if constraints.max_commits is not None else 0,
    )


def _dominated(seen: List[Usage], usage: Usage) -> bool:
    return any(all(old <= new for old, new in zip(entry, usage)) for entry in seen)


def replay(puzzle: Puzzle, commands: List[Command]) -> GameState:
    """Прогнать последовательность команд с начального состояния; неудачные команды пропускаются."""
    state = start_game(puzzle)
    for command in commands:
        state, _ = apply_command(state, command)
    return state


def solve(
        puzzle: Puzzle,
        max_states: int = DEFAULT_MAX_STATES,
        max_depth: Optional[int] = None,
) -> Optional[Solution]:
    """
    Кратчайшая последовательность команд, приводящая к победе, или None,
    если в пределах max_depth (по умолчанию max_commands) решения нет.
    При превышении max_states бросает SolverLimitExceeded.
    """
    if max_depth is None:
        max_depth = puzzle.constraints.max_commands

    start = start_game(puzzle, undo_limit=0)
    visited: Dict[Signature, List[Usage]] = {signature(start.graph, start.files): [_usage(start)]}
    stored = 1
    queue: Deque[Tuple[GameState, Tuple[Command, ...]]] = deque([(start, ())])

    while queue:
        state, path = queue.popleft()
        if len(path) >= max_depth:
            continue

        for command in legal_commands(state):
            child, result = apply_command(fork_state(state), command)
            if not result.success:
                continue
            child_path = path + (command,)
            if result.game_won:
                logger.debug("Puzzle %s solved: par %d, %d states", puzzle.id, len(child_path), stored)
                return Solution(commands=list(child_path), explored=stored)

            key = signature(child.graph, child.files)
            usage = _usage(child)
            seen = visited.setdefault(key, [])
            if _dominated(seen, usage):
                continue
            seen.append(usage)
            stored += 1
            if stored > max_states:
                raise SolverLimitExceeded(f"Solver explored more than {max_states} states for {puzzle.id}")
            queue.append((child, child_path))

    logger.debug("Puzzle %s is unsolvable within %d commands (%d states)", puzzle.id, max_depth, stored)
    return None
