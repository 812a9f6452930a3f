"""
Единственная граница сериализации: граф, головоломка и состояние сессии
превращаются в обычные словари (для хранилища хоста) и обратно.
Внутри движка используется только представление из models.
"""
from datetime import datetime
from typing import Any, Dict

import yaml

from .command import decode_command, encode_command
from .errors import StateError
from .executor import GAME_STATUSES, IN_PROGRESS, GameState
from .models import Branch, Commit, FileTarget, Graph, Head, Puzzle, PuzzleConstraints
from .undo import Snapshot, UndoStack


def commit_to_dict(commit: Commit) -> Dict[str, Any]:
    return {
        "id": commit.id,
        "message": commit.message,
        "parentIds": list(commit.parent_ids),
        "originBranch": commit.origin_branch,
        "depth": commit.depth,
        "timestamp": commit.timestamp.isoformat(),
    }


def commit_from_dict(data: Dict[str, Any]) -> Commit:
    return Commit(
        id=str(data["id"]),
        message=str(data["message"]),
        parent_ids=tuple(data["parentIds"]),
        origin_branch=str(data["originBranch"]),
        depth=int(data["depth"]),
        timestamp=datetime.fromisoformat(data["timestamp"]),
    )


def graph_to_dict(graph: Graph) -> Dict[str, Any]:
    return {
        "commits": {cid: commit_to_dict(c) for cid, c in graph.commits.items()},
        "branches": {
            name: {"name": b.name, "tipCommitId": b.tip_commit_id} for name, b in graph.branches.items()
        },
        "head": graph.head.ref if graph.head else None,
        "isDetached": bool(graph.head and graph.head.is_detached),
    }


def graph_from_dict(data: Dict[str, Any]) -> Graph:
    """Восстановить граф и проверить его инварианты."""
    try:
        commits = {cid: commit_from_dict(c) for cid, c in data["commits"].items()}
        branches = {
            name: Branch(name=name, tip_commit_id=str(b["tipCommitId"])) for name, b in data["branches"].items()
        }
        ref = data["head"]
        head = Head.detached(ref) if data.get("isDetached") else Head.attached(ref)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise StateError(f"Malformed graph data: {exc!r}") from exc

    graph = Graph(commits, branches, head)
    graph.validate()
    return graph


def file_to_dict(target: FileTarget) -> Dict[str, Any]:
    return {
        "id": target.id,
        "name": target.name,
        "branch": target.branch,
        "depth": target.depth,
        "collected": target.collected,
        "collectedBy": target.collected_by,
    }


def file_from_dict(data: Dict[str, Any]) -> FileTarget:
    return FileTarget(
        id=str(data["id"]),
        name=str(data["name"]),
        branch=str(data["branch"]),
        depth=int(data["depth"]),
        collected=bool(data.get("collected", False)),
        collected_by=data.get("collectedBy"),
    )


def constraints_to_dict(constraints: PuzzleConstraints) -> Dict[str, Any]:
    return {
        "maxCommands": constraints.max_commands,
        "maxCommits": constraints.max_commits,
        "maxCheckouts": constraints.max_checkouts,
        "maxBranches": constraints.max_branches,
        "maxConsecutiveCommits": constraints.max_consecutive_commits,
        "allowedCommands": list(constraints.allowed_commands),
    }


def constraints_from_dict(data: Dict[str, Any]) -> PuzzleConstraints:
    kwargs: Dict[str, Any] = {
        "max_commands": int(data["maxCommands"]),
        "max_commits": data.get("maxCommits"),
        "max_checkouts": data.get("maxCheckouts"),
        "max_branches": data.get("maxBranches"),
        "max_consecutive_commits": data.get("maxConsecutiveCommits"),
    }
    if "allowedCommands" in data:
        kwargs["allowed_commands"] = tuple(data["allowedCommands"])
    return PuzzleConstraints(**kwargs)


def puzzle_to_dict(puzzle: Puzzle) -> Dict[str, Any]:
    return {
        "id": puzzle.id,
        "date": puzzle.date,
        "difficulty": puzzle.difficulty,
        "trunk": puzzle.trunk,
        "branchNames": list(puzzle.branch_names),
        "initialGraph": graph_to_dict(puzzle.initial_graph),
        "files": [file_to_dict(f) for f in puzzle.files],
        "constraints": constraints_to_dict(puzzle.constraints),
        "parScore": puzzle.par_score,
        "solution": [encode_command(c) for c in puzzle.solution],
    }


def puzzle_from_dict(data: Dict[str, Any]) -> Puzzle:
    try:
        return Puzzle(
            id=str(data["id"]),
            date=data.get("date"),
            difficulty=str(data.get("difficulty", "custom")),
            trunk=str(data["trunk"]),
            branch_names=tuple(data["branchNames"]),
            initial_graph=graph_from_dict(data["initialGraph"]),
            files=tuple(file_from_dict(f) for f in data["files"]),
            constraints=constraints_from_dict(data["constraints"]),
            par_score=int(data.get("parScore", 0)),
            solution=tuple(decode_command(c) for c in data.get("solution", [])),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise StateError(f"Malformed puzzle data: {exc!r}") from exc


def game_state_to_dict(state: GameState) -> Dict[str, Any]:
    return {
        "puzzleId": state.puzzle.id,
        "graph": graph_to_dict(state.graph),
        "files": [file_to_dict(f) for f in state.files],
        "commandHistory": [encode_command(c) for c in state.command_history],
        "undoStack": [
            {
                "graph": graph_to_dict(s.graph),
                "files": [file_to_dict(f) for f in s.files],
                "commandType": s.command_type,
                "consecutiveCommits": s.consecutive_commits,
            }
            for s in state.undo_stack.snapshots
        ],
        "undoLimit": state.undo_stack.limit,
        "commandsUsed": state.commands_used,
        "checkoutsUsed": state.checkouts_used,
        "consecutiveCommits": state.consecutive_commits,
        "status": state.status,
    }


def game_state_from_dict(data: Dict[str, Any], puzzle: Puzzle) -> GameState:
    """Состояние сессии из чекпоинта хоста; головоломку хост достаёт отдельно по puzzleId."""
    if data.get("puzzleId") != puzzle.id:
        raise StateError(f"Saved game belongs to puzzle {data.get('puzzleId')!r}, not {puzzle.id!r}")
    status = data.get("status", IN_PROGRESS)
    if status not in GAME_STATUSES:
        raise StateError(f"Unknown game status: {status!r}")
    try:
        snapshots = [
            Snapshot(
                graph=graph_from_dict(s["graph"]),
                files=[file_from_dict(f) for f in s["files"]],
                command_type=str(s["commandType"]),
                consecutive_commits=int(s.get("consecutiveCommits", 0)),
            )
            for s in data.get("undoStack", [])
        ]
        return GameState(
            puzzle=puzzle,
            graph=graph_from_dict(data["graph"]),
            files=[file_from_dict(f) for f in data["files"]],
            command_history=[decode_command(c) for c in data.get("commandHistory", [])],
            undo_stack=UndoStack(data.get("undoLimit", puzzle.constraints.max_commands), snapshots),
            commands_used=int(data.get("commandsUsed", 0)),
            checkouts_used=int(data.get("checkoutsUsed", 0)),
            consecutive_commits=int(data.get("consecutiveCommits", 0)),
            status=status,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise StateError(f"Malformed game state: {exc!r}") from exc


def dump_puzzle_yaml(puzzle: Puzzle, path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(puzzle_to_dict(puzzle), f, sort_keys=False, allow_unicode=True)


def load_puzzle_yaml(path: str) -> Puzzle:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return puzzle_from_dict(data)
