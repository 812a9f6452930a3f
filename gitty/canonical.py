from typing import Iterable, Tuple

from .models import FileTarget, Graph

Signature = Tuple[Tuple[Tuple[str, str], ...], Tuple[str, str], Tuple[Tuple[str, str], ...]]


def signature(graph: Graph, files: Iterable[FileTarget]) -> Signature:
    """
    Каноническая подпись состояния: указатели веток, HEAD и собранные файлы
    вместе с коммитами, которые их собрали (от них зависит условие победы).

    Осиротевшие коммиты в подпись не входят: на дальнейшие ходы и на условие
    победы влияет только то, что достижимо из веток и HEAD.
    """
    tips = tuple(sorted((name, b.tip_commit_id) for name, b in graph.branches.items()))
    head = (graph.head.kind, graph.head.ref) if graph.head else ("", "")
    collected = tuple(sorted((f.id, f.collected_by or "") for f in files if f.collected))
    return tips, head, collected
