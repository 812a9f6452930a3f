from dataclasses import dataclass
from typing import List, Optional

from .models import FileTarget, Graph, copy_files


@dataclass
class Snapshot:
    """Состояние перед успешной командой: граф, файлы и то, что нужно для отката счётчиков."""
    graph: Graph
    files: List[FileTarget]
    command_type: str
    consecutive_commits: int

    @classmethod
    def capture(
            cls,
            graph: Graph,
            files: List[FileTarget],
            command_type: str,
            consecutive_commits: int,
    ) -> "Snapshot":
        return cls(
            graph=graph.copy(),
            files=copy_files(files),
            command_type=command_type,
            consecutive_commits=consecutive_commits,
        )


class UndoStack:
    """
    Ограниченный LIFO снимков. При переполнении выбрасывается самый старый снимок.
    limit=0 отключает запись (так работает солвер).
    """

    def __init__(self, limit: Optional[int] = None, snapshots: Optional[List[Snapshot]] = None):
        self.limit = limit
        self.snapshots: List[Snapshot] = list(snapshots or [])

    def __len__(self) -> int:
        return len(self.snapshots)

    @property
    def enabled(self) -> bool:
        return self.limit != 0

    def push(self, snapshot: Snapshot) -> None:
        if not self.enabled:
            return
        self.snapshots.append(snapshot)
        if self.limit is not None and len(self.snapshots) > self.limit:
            del self.snapshots[0]

    def pop(self) -> Optional[Snapshot]:
        if not self.snapshots:
            return None
        return self.snapshots.pop()
