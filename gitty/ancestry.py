from collections import deque
from typing import TYPE_CHECKING, Dict, Iterable, List, Set

if TYPE_CHECKING:
    from .models import Commit


def is_ancestor(commits: Dict[str, "Commit"], ancestor_id: str, commit_id: str) -> bool:
    """
    Достижим ли ancestor_id из commit_id по рёбрам родительства.
    BFS по всем родителям (включая второго родителя merge-коммита).
    Коммит считается предком самого себя.
    """
    visited: Set[str] = set()
    queue = deque([commit_id])
    while queue:
        current = queue.popleft()
        if current == ancestor_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        commit = commits.get(current)
        if commit is not None:
            queue.extend(commit.parent_ids)
    return False


def reachable_ids(commits: Dict[str, "Commit"], start_ids: Iterable[str]) -> Set[str]:
    """Все коммиты, достижимые из start_ids (сами start_ids включены)."""
    seen: Set[str] = set()
    stack = [c for c in start_ids if c in commits]
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        stack.extend(commits[current].parent_ids)
    return seen


def commits_to_replay(
        commits: Dict[str, "Commit"],
        tip_id: str,
        onto_id: str,
) -> List["Commit"]:
    """
    Коммиты текущей ветки, которые нужно переиграть при rebase.

    Идём от tip_id назад по первым родителям и останавливаемся на первом
    коммите, который уже достижим из onto_id (в том числе на самом onto_id).
    Возвращаем в исходном порядке: от старых к новым.
    """
    base = reachable_ids(commits, [onto_id])
    chain: List["Commit"] = []
    current = commits.get(tip_id)
    while current is not None and current.id not in base:
        chain.append(current)
        if not current.parent_ids:
            break
        current = commits.get(current.parent_ids[0])
    chain.reverse()
    return chain
