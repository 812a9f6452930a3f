import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Literal, Optional, Set, Tuple

from .ancestry import commits_to_replay, reachable_ids
from .command import (
    BranchCommand,
    CheckoutCommand,
    Command,
    CommitCommand,
    MergeCommand,
    RebaseCommand,
    UndoCommand,
)
from .errors import GameError, ReferenceNotFoundError, StateError, ValidationError
from .models import DETACHED, Commit, FileTarget, Graph, Head, Puzzle, PuzzleConstraints, copy_files
from .undo import Snapshot, UndoStack

logger = logging.getLogger(__name__)

GameStatus = Literal["in_progress", "won", "abandoned"]
IN_PROGRESS: GameStatus = "in_progress"
WON: GameStatus = "won"
ABANDONED: GameStatus = "abandoned"
GAME_STATUSES = (IN_PROGRESS, WON, ABANDONED)


@dataclass
class GameState:
    """Состояние одной игровой сессии. Меняется только через apply_command/undo."""
    puzzle: Puzzle
    graph: Graph
    files: List[FileTarget]
    command_history: List[Command] = field(default_factory=list)
    undo_stack: UndoStack = field(default_factory=UndoStack)
    commands_used: int = 0
    checkouts_used: int = 0
    consecutive_commits: int = 0
    status: GameStatus = IN_PROGRESS

    @property
    def constraints(self) -> PuzzleConstraints:
        return self.puzzle.constraints

    def collected_ids(self) -> Set[str]:
        return {f.id for f in self.files if f.collected}

    def all_files_collected(self) -> bool:
        return all(f.collected for f in self.files)


@dataclass
class CommandResult:
    success: bool
    message: str
    graph: Optional[Graph] = None
    files_collected: List[FileTarget] = field(default_factory=list)
    game_won: bool = False
    error: Optional[GameError] = None

    @classmethod
    def failure(cls, error: GameError) -> "CommandResult":
        return cls(success=False, message=str(error), error=error)


def start_game(puzzle: Puzzle, undo_limit: Optional[int] = None) -> GameState:
    """Новая сессия: копия начального графа и файлов головоломки."""
    limit = puzzle.constraints.max_commands if undo_limit is None else undo_limit
    return GameState(
        puzzle=puzzle,
        graph=puzzle.initial_graph.copy(),
        files=copy_files(puzzle.files),
        undo_stack=UndoStack(limit),
    )


def abandon(state: GameState) -> GameState:
    if state.status == IN_PROGRESS:
        state.status = ABANDONED
    return state


# --- проверки перед выполнением ---

def _check_quotas(state: GameState, command: Command) -> None:
    constraints = state.constraints
    if state.status != IN_PROGRESS:
        raise StateError(f"Game is {state.status.replace('_', ' ')}")
    if not constraints.allows(command.type):
        raise ValidationError(f"Command '{command.type}' is not allowed in this puzzle")
    if isinstance(command, UndoCommand):
        return
    if state.commands_used >= constraints.max_commands:
        raise ValidationError(f"Maximum commands ({constraints.max_commands}) reached. Use undo or restart.")

    if isinstance(command, CheckoutCommand):
        if constraints.max_checkouts is not None and state.checkouts_used >= constraints.max_checkouts:
            raise ValidationError(f"Maximum checkouts ({constraints.max_checkouts}) reached")
    elif isinstance(command, CommitCommand):
        if constraints.max_commits is not None and len(state.graph.commits) >= constraints.max_commits:
            raise ValidationError(f"Maximum commits ({constraints.max_commits}) reached")
        if (
            constraints.max_consecutive_commits is not None
            and state.consecutive_commits >= constraints.max_consecutive_commits
        ):
            raise ValidationError(
                f"Maximum consecutive commits ({constraints.max_consecutive_commits}) reached"
            )
    elif isinstance(command, BranchCommand):
        if constraints.max_branches is not None and len(state.graph.branches) >= constraints.max_branches:
            raise ValidationError(f"Maximum branches ({constraints.max_branches}) reached")


def _collect_files(state: GameState, commit: Commit) -> List[FileTarget]:
    collected = []
    for target in state.files:
        if not target.collected and target.position == (commit.origin_branch, commit.depth):
            target.collected = True
            target.collected_by = commit.id
            collected.append(target)
    return collected


def _trunk_holds_all_files(state: GameState) -> bool:
    """Каждый коммит, собравший файл, входит в историю trunk."""
    trunk = state.graph.branches.get(state.puzzle.trunk)
    if trunk is None:
        return False
    history = reachable_ids(state.graph.commits, [trunk.tip_commit_id])
    return all(f.collected_by in history for f in state.files)


def _is_win(state: GameState, advanced_branch: Optional[str]) -> bool:
    """
    Победа: все файлы собраны, только что продвинут trunk, и trunk содержит
    коммиты, собравшие файлы. Файл, собранный на другой ветке, засчитывается
    только после merge или rebase в trunk.
    """
    return (
        advanced_branch == state.puzzle.trunk
        and state.all_files_collected()
        and _trunk_holds_all_files(state)
    )


def _require_attached(graph: Graph, action: str):
    branch = graph.current_branch()
    if branch is None:
        raise StateError(f"Cannot {action} in detached HEAD state")
    return branch


def _require_branch(graph: Graph, name: str):
    branch = graph.branches.get(name)
    if branch is None:
        raise ReferenceNotFoundError(f"Branch '{name}' not found")
    return branch


# --- команды ---

def _commit(state: GameState, command: CommitCommand) -> CommandResult:
    graph = state.graph
    current = graph.current_commit()
    if current is None:
        raise StateError("No current commit found")

    branch = graph.current_branch()
    label = branch.name if branch else DETACHED
    new_commit = graph.add_commit(command.message, [current.id], label)
    if branch is not None:
        graph.move_branch_tip(branch.name, new_commit.id)
    else:
        # detached HEAD двигается сам, ветки не трогаем
        graph.set_head(Head.detached(new_commit.id))

    collected = _collect_files(state, new_commit)
    return CommandResult(
        success=True,
        message=f"Created commit {new_commit.id[:7]}: {command.message}",
        graph=graph,
        files_collected=collected,
        game_won=branch is not None and _is_win(state, branch.name),
    )


def _branch(state: GameState, command: BranchCommand) -> CommandResult:
    graph = state.graph
    name = command.name
    if name not in state.puzzle.branch_names:
        raise ReferenceNotFoundError(f"Branch name '{name}' is not available in this puzzle")
    if name in graph.branches:
        raise ValidationError(f"Branch '{name}' already exists")
    current = graph.current_commit()
    if current is None:
        raise StateError("No current commit found")

    graph.create_branch(name, current.id)
    return CommandResult(success=True, message=f"Created branch '{name}'", graph=graph)


def _checkout(state: GameState, command: CheckoutCommand) -> CommandResult:
    graph = state.graph
    target = command.target
    if not target:
        raise ValidationError("Checkout target is required")

    if target in graph.branches:
        graph.set_head(Head.attached(target))
        tip = graph.commits[graph.branches[target].tip_commit_id]
        return CommandResult(
            success=True,
            message=f"Switched to branch '{target}' (HEAD at {tip.id[:7]}: \"{tip.message}\")",
            graph=graph,
        )

    commit_id = graph.resolve_commit(target)
    if commit_id is None:
        raise ReferenceNotFoundError(f"pathspec '{target}' did not match any branch or commit")
    graph.set_head(Head.detached(commit_id))
    return CommandResult(success=True, message=f"HEAD is now at {commit_id[:7]}", graph=graph)


def _merge(state: GameState, command: MergeCommand) -> CommandResult:
    graph = state.graph
    current_branch = _require_attached(graph, "merge")
    target_branch = _require_branch(graph, command.branch)
    current_tip = graph.commits[current_branch.tip_commit_id]
    target_tip = graph.commits[target_branch.tip_commit_id]

    if graph.is_ancestor(current_tip.id, target_tip.id):
        graph.move_branch_tip(current_branch.name, target_tip.id)
        if current_tip.id == target_tip.id:
            message = "Already up to date"
        else:
            message = f"Fast-forward merge: {current_branch.name} -> {target_branch.name}"
        return CommandResult(
            success=True,
            message=message,
            graph=graph,
            game_won=_is_win(state, current_branch.name),
        )

    merge_commit = graph.add_commit(
        f"Merge branch '{target_branch.name}' into {current_branch.name}",
        [current_tip.id, target_tip.id],
        current_branch.name,
    )
    graph.move_branch_tip(current_branch.name, merge_commit.id)
    collected = _collect_files(state, merge_commit)
    return CommandResult(
        success=True,
        message=f"Merged '{target_branch.name}' into '{current_branch.name}'",
        graph=graph,
        files_collected=collected,
        game_won=_is_win(state, current_branch.name),
    )


def _rebase(state: GameState, command: RebaseCommand) -> CommandResult:
    graph = state.graph
    current_branch = _require_attached(graph, "rebase")
    onto_branch = _require_branch(graph, command.onto)

    replay = commits_to_replay(graph.commits, current_branch.tip_commit_id, onto_branch.tip_commit_id)
    if not replay:
        return CommandResult(
            success=True,
            message="Already up to date",
            graph=graph,
            game_won=_is_win(state, current_branch.name),
        )

    parent_id = onto_branch.tip_commit_id
    collected: List[FileTarget] = []
    replayed: Dict[str, str] = {}
    for original in replay:
        # глубина пересчитывается от нового родителя, исходные коммиты остаются в графе
        new_commit = graph.add_commit(original.message, [parent_id], current_branch.name)
        replayed[original.id] = new_commit.id
        collected.extend(_collect_files(state, new_commit))
        parent_id = new_commit.id
    graph.move_branch_tip(current_branch.name, parent_id)

    # файл, собранный переигранным коммитом, теперь принадлежит его копии
    for target in state.files:
        if target.collected_by in replayed:
            target.collected_by = replayed[target.collected_by]

    return CommandResult(
        success=True,
        message=f"Rebased '{current_branch.name}' onto '{onto_branch.name}' ({len(replay)} commits replayed)",
        graph=graph,
        files_collected=collected,
        game_won=_is_win(state, current_branch.name),
    )


_HANDLERS: Dict[str, Callable[[GameState, Command], CommandResult]] = {
    "commit": _commit,
    "branch": _branch,
    "checkout": _checkout,
    "merge": _merge,
    "rebase": _rebase,
}


def apply_command(state: GameState, command: Command) -> Tuple[GameState, CommandResult]:
    """
    Выполнить одну команду над состоянием сессии.

    Ошибки не пробрасываются: неудачная команда возвращает CommandResult с
    success=False и исключением в поле error, состояние и квоты не меняются.
    """
    try:
        _check_quotas(state, command)
    except GameError as exc:
        logger.debug("Rejected %s: %s", command.type, exc)
        return state, CommandResult.failure(exc)

    if isinstance(command, UndoCommand):
        state, undone = undo(state)
        if not undone:
            return state, CommandResult.failure(StateError("Nothing to undo"))
        return state, CommandResult(success=True, message="Undid last command", graph=state.graph)

    snapshot = None
    if state.undo_stack.enabled:
        snapshot = Snapshot.capture(state.graph, state.files, command.type, state.consecutive_commits)

    try:
        result = _HANDLERS[command.type](state, command)
    except GameError as exc:
        logger.debug("Rejected %s: %s", command.type, exc)
        return state, CommandResult.failure(exc)

    if snapshot is not None:
        state.undo_stack.push(snapshot)
    state.command_history.append(command)
    state.commands_used += 1
    if isinstance(command, CheckoutCommand):
        state.checkouts_used += 1
    state.consecutive_commits = state.consecutive_commits + 1 if isinstance(command, CommitCommand) else 0

    if result.game_won:
        state.status = WON
        logger.info("Puzzle %s won in %d commands", state.puzzle.id, state.commands_used)
    return state, result


def undo(state: GameState) -> Tuple[GameState, bool]:
    """
    Откатить последнюю успешную команду. Квота checkout возвращается,
    только если откатывается сам checkout. В головоломке, где undo
    запрещён, ничего не откатывается.
    """
    if state.status != IN_PROGRESS or not state.constraints.allows("undo"):
        return state, False
    snapshot = state.undo_stack.pop()
    if snapshot is None:
        return state, False

    state.graph = snapshot.graph
    state.files = snapshot.files
    state.consecutive_commits = snapshot.consecutive_commits
    if state.command_history:
        state.command_history.pop()
    state.commands_used = max(0, state.commands_used - 1)
    if snapshot.command_type == "checkout":
        state.checkouts_used = max(0, state.checkouts_used - 1)
    return state, True
