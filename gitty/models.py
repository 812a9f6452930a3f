import hashlib
from dataclasses import dataclass, replace
from datetime import datetime
from typing import TYPE_CHECKING, Dict, Iterable, List, Literal, Optional, Set, Tuple

from .ancestry import is_ancestor, reachable_ids
from .command import COMMAND_TYPES
from .errors import ReferenceNotFoundError, StateError, ValidationError

if TYPE_CHECKING:
    from .command import Command

DEFAULT_TRUNK = "main"
DETACHED = "detached"  # метка ветки для коммитов, сделанных в detached HEAD


def make_commit_id(
        parent_ids: Tuple[str, ...],
        origin_branch: str,
        depth: int,
        message: str,
        salt: int = 0,
) -> str:
    """Id коммита выводится из его содержимого: одинаковый id означает одинаковую историю."""
    payload = f"{parent_ids!r}|{origin_branch}|{depth}|{message}|{salt}"
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()[:12]


@dataclass(frozen=True)
class Commit:
    id: str
    message: str
    parent_ids: Tuple[str, ...]
    origin_branch: str
    depth: int
    timestamp: datetime

    @property
    def is_root(self) -> bool:
        return not self.parent_ids

    @property
    def is_merge(self) -> bool:
        return len(self.parent_ids) > 1


@dataclass(frozen=True)
class Branch:
    name: str
    tip_commit_id: str


@dataclass(frozen=True)
class Head:
    kind: Literal["attached", "detached"]
    ref: str  # имя ветки, если attached; id коммита, если detached

    @classmethod
    def attached(cls, branch_name: str) -> "Head":
        return cls(kind="attached", ref=branch_name)

    @classmethod
    def detached(cls, commit_id: str) -> "Head":
        return cls(kind="detached", ref=commit_id)

    @property
    def is_detached(self) -> bool:
        return self.kind == "detached"


class Graph:
    """
    Граф коммитов головоломки: коммиты, указатели веток и HEAD.

    Коммиты неизменяемы, поэтому copy() дешёвый: копируются только словари,
    сами объекты Commit/Branch/Head разделяются между копиями.
    """

    def __init__(
            self,
            commits: Optional[Dict[str, Commit]] = None,
            branches: Optional[Dict[str, Branch]] = None,
            head: Optional[Head] = None,
    ):
        self.commits: Dict[str, Commit] = dict(commits or {})
        self.branches: Dict[str, Branch] = dict(branches or {})
        self.head: Optional[Head] = head

    @classmethod
    def init(
            cls,
            trunk: str = DEFAULT_TRUNK,
            message: str = "Initial commit",
            timestamp: Optional[datetime] = None,
    ) -> "Graph":
        """Граф из одного корневого коммита, HEAD на trunk."""
        graph = cls()
        root = graph.add_commit(message, parent_ids=(), origin_branch=trunk, timestamp=timestamp)
        graph.branches[trunk] = Branch(name=trunk, tip_commit_id=root.id)
        graph.head = Head.attached(trunk)
        return graph

    # --- запросы ---

    def current_commit(self) -> Optional[Commit]:
        if self.head is None:
            return None
        if self.head.is_detached:
            return self.commits.get(self.head.ref)
        branch = self.branches.get(self.head.ref)
        return self.commits.get(branch.tip_commit_id) if branch else None

    def current_branch(self) -> Optional[Branch]:
        if self.head is None or self.head.is_detached:
            return None
        return self.branches.get(self.head.ref)

    def root(self) -> Commit:
        for commit in self.commits.values():
            if commit.is_root:
                return commit
        raise StateError("Graph has no root commit")

    def is_ancestor(self, ancestor_id: str, commit_id: str) -> bool:
        return is_ancestor(self.commits, ancestor_id, commit_id)

    def resolve_commit(self, target: str) -> Optional[str]:
        """Точный id коммита или первый (в лексическом порядке) id с таким префиксом."""
        if target in self.commits:
            return target
        for commit_id in sorted(self.commits):
            if commit_id.startswith(target):
                return commit_id
        return None

    def reachable_commit_ids(self) -> Set[str]:
        """Коммиты, достижимые из веток и HEAD. Осиротевшие коммиты сюда не входят."""
        starts = [b.tip_commit_id for b in self.branches.values()]
        current = self.current_commit()
        if current is not None:
            starts.append(current.id)
        return reachable_ids(self.commits, starts)

    # --- мутации (используются только исполнителем команд) ---

    def add_commit(
            self,
            message: str,
            parent_ids: Iterable[str],
            origin_branch: str,
            depth: Optional[int] = None,
            timestamp: Optional[datetime] = None,
    ) -> Commit:
        parent_ids = tuple(parent_ids)
        for parent_id in parent_ids:
            if parent_id not in self.commits:
                raise ReferenceNotFoundError(f"Parent commit '{parent_id}' does not exist")
        if not parent_ids and self.commits:
            raise StateError("Graph already has a root commit")

        if depth is None:
            depth = max((self.commits[p].depth for p in parent_ids), default=-1) + 1

        salt = 0
        commit_id = make_commit_id(parent_ids, origin_branch, depth, message)
        while commit_id in self.commits:
            salt += 1
            commit_id = make_commit_id(parent_ids, origin_branch, depth, message, salt)

        commit = Commit(
            id=commit_id,
            message=message,
            parent_ids=parent_ids,
            origin_branch=origin_branch,
            depth=depth,
            timestamp=timestamp or datetime.now(),
        )
        self.commits[commit_id] = commit
        return commit

    def create_branch(self, name: str, commit_id: str) -> Branch:
        if name in self.branches:
            raise ValidationError(f"Branch '{name}' already exists")
        if commit_id not in self.commits:
            raise ReferenceNotFoundError(f"Commit '{commit_id}' does not exist")
        branch = Branch(name=name, tip_commit_id=commit_id)
        self.branches[name] = branch
        return branch

    def move_branch_tip(self, name: str, commit_id: str) -> Branch:
        if name not in self.branches:
            raise ReferenceNotFoundError(f"Branch '{name}' does not exist")
        if commit_id not in self.commits:
            raise ReferenceNotFoundError(f"Commit '{commit_id}' does not exist")
        branch = Branch(name=name, tip_commit_id=commit_id)
        self.branches[name] = branch
        return branch

    def set_head(self, head: Head) -> None:
        if head.is_detached and head.ref not in self.commits:
            raise ReferenceNotFoundError(f"Commit '{head.ref}' does not exist")
        if not head.is_detached and head.ref not in self.branches:
            raise ReferenceNotFoundError(f"Branch '{head.ref}' does not exist")
        self.head = head

    # --- снимки и проверки ---

    def copy(self) -> "Graph":
        return Graph(self.commits, self.branches, self.head)

    def validate(self) -> None:
        """Проверить инварианты графа; при нарушении StateError."""
        roots = [c for c in self.commits.values() if c.is_root]
        if len(roots) != 1:
            raise StateError(f"Graph must have exactly one root commit, found {len(roots)}")
        if roots[0].depth != 0:
            raise StateError("Root commit must have depth 0")

        for commit in self.commits.values():
            if len(commit.parent_ids) > 2:
                raise StateError(f"Commit '{commit.id}' has more than two parents")
            for parent_id in commit.parent_ids:
                if parent_id not in self.commits:
                    raise StateError(f"Commit '{commit.id}' references missing parent '{parent_id}'")
            if commit.parent_ids and commit.depth != max(self.commits[p].depth for p in commit.parent_ids) + 1:
                raise StateError(f"Commit '{commit.id}' has inconsistent depth {commit.depth}")

        for branch in self.branches.values():
            if branch.tip_commit_id not in self.commits:
                raise StateError(f"Branch '{branch.name}' points to missing commit")

        if self.head is None:
            raise StateError("HEAD is not set")
        if self.head.is_detached and self.head.ref not in self.commits:
            raise StateError("Detached HEAD points to missing commit")
        if not self.head.is_detached and self.head.ref not in self.branches:
            raise StateError(f"HEAD is attached to missing branch '{self.head.ref}'")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Graph):
            return NotImplemented
        return (
            self.commits == other.commits
            and self.branches == other.branches
            and self.head == other.head
        )

    def __repr__(self) -> str:
        return f"Graph(commits={len(self.commits)}, branches={list(self.branches)}, head={self.head})"


@dataclass
class FileTarget:
    id: str
    name: str
    branch: str
    depth: int
    collected: bool = False
    collected_by: Optional[str] = None  # id коммита, собравшего файл

    @property
    def position(self) -> Tuple[str, int]:
        return self.branch, self.depth


def copy_files(files: Iterable[FileTarget]) -> List[FileTarget]:
    return [replace(f) for f in files]


@dataclass(frozen=True)
class PuzzleConstraints:
    max_commands: int
    max_commits: Optional[int] = None
    max_checkouts: Optional[int] = None
    max_branches: Optional[int] = None
    max_consecutive_commits: Optional[int] = None
    allowed_commands: Tuple[str, ...] = COMMAND_TYPES

    def allows(self, command_type: str) -> bool:
        return command_type in self.allowed_commands


@dataclass(frozen=True)
class Puzzle:
    """Головоломка дня. После генерации не меняется; каждая сессия копирует граф и файлы."""
    id: str
    date: Optional[str]
    difficulty: str
    trunk: str
    branch_names: Tuple[str, ...]
    initial_graph: Graph
    files: Tuple[FileTarget, ...]
    constraints: PuzzleConstraints
    par_score: int = 0
    solution: Tuple["Command", ...] = ()
