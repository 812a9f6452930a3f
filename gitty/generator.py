"""
Генератор головоломки дня.

Сид выводится из даты (или идентификатора архивной головоломки), файлы
раскладываются по позициям (ветка, глубина), после чего солвер проверяет,
что головоломка решаема и её par попадает в диапазон уровня сложности.
Решение без merge и rebase не принимается.
"""
import hashlib
import logging
import random
from dataclasses import replace
from datetime import date as Date, datetime, time
from typing import List, Optional

from .command import MergeCommand, RebaseCommand
from .config import DifficultyTier, GeneratorConfig, load_config
from .errors import GenerationFailure, SolverLimitExceeded
from .models import FileTarget, Graph, Puzzle, PuzzleConstraints
from .solver import solve

logger = logging.getLogger(__name__)

ARCHIVE_EPOCH = datetime(2026, 1, 1)


def derive_seed(key: str) -> int:
    digest = hashlib.sha256(f"gitty:{key}".encode("utf-8")).hexdigest()
    return int(digest[:16], 16)


def tier_for_date(day: Date, config: GeneratorConfig) -> str:
    return config.weekday_tiers[day.weekday()]


def place_files(
        rng: random.Random,
        tier: DifficultyTier,
        trunk: str,
        file_names: tuple,
) -> List[FileTarget]:
    """Разложить file_count файлов по разным позициям; хотя бы один файл не на trunk."""
    positions = [
        (branch, depth)
        for branch in tier.branches
        for depth in range(tier.min_depth, tier.max_depth + 1)
    ]
    chosen = rng.sample(positions, tier.file_count)
    if all(branch == trunk for branch, _ in chosen):
        off_trunk = [p for p in positions if p[0] != trunk]
        chosen[rng.randrange(len(chosen))] = rng.choice(off_trunk)

    names = rng.sample(list(file_names), tier.file_count)
    return [
        FileTarget(id=str(idx), name=name, branch=branch, depth=depth)
        for idx, ((branch, depth), name) in enumerate(zip(sorted(chosen), names), start=1)
    ]


def build_constraints(tier: DifficultyTier, max_commands: int) -> PuzzleConstraints:
    return PuzzleConstraints(
        max_commands=max_commands,
        max_commits=tier.max_commits,
        max_checkouts=tier.max_checkouts,
        max_branches=tier.max_branches,
        max_consecutive_commits=tier.max_consecutive_commits,
        allowed_commands=tier.allowed_commands,
    )


def generate_puzzle(
        date: Optional[Date] = None,
        archive_id: Optional[str] = None,
        difficulty: Optional[str] = None,
        config: Optional[GeneratorConfig] = None,
) -> Puzzle:
    """
    Сгенерировать головоломку для даты или архивного идентификатора.

    Попытки повторяются с сидом, сдвинутым на номер попытки. Если ни одна
    попытка не дала решаемую головоломку с подходящим par, бросается
    GenerationFailure: подменять её головоломкой по умолчанию нельзя.
    """
    if date is None and archive_id is None:
        raise ValueError("Either date or archive_id is required")
    config = config or load_config()

    key = archive_id if archive_id is not None else date.isoformat()
    if difficulty is None:
        difficulty = tier_for_date(date, config) if date is not None else "medium"
    tier = config.tier(difficulty)
    puzzle_id = archive_id if archive_id is not None else f"daily-{key}"
    created_at = datetime.combine(date, time()) if date is not None else ARCHIVE_EPOCH
    seed = derive_seed(key)

    initial_graph = Graph.init(config.trunk, timestamp=created_at)

    for attempt in range(config.max_attempts):
        rng = random.Random(seed + attempt)
        files = place_files(rng, tier, config.trunk, config.file_names)
        draft = Puzzle(
            id=puzzle_id,
            date=date.isoformat() if date is not None else None,
            difficulty=tier.name,
            trunk=config.trunk,
            branch_names=tier.branches,
            initial_graph=initial_graph,
            files=tuple(files),
            constraints=build_constraints(tier, tier.par_max),
        )

        try:
            solution = solve(draft, max_states=config.max_states)
        except SolverLimitExceeded as exc:
            logger.warning("Attempt %d for %s rejected: %s", attempt, puzzle_id, exc)
            continue
        if solution is None:
            logger.info("Attempt %d for %s rejected: unsolvable within %d commands", attempt, puzzle_id, tier.par_max)
            continue
        if solution.par_score < tier.par_min:
            logger.info("Attempt %d for %s rejected: par %d below %d", attempt, puzzle_id, solution.par_score,
                        tier.par_min)
            continue
        if not any(isinstance(c, (MergeCommand, RebaseCommand)) for c in solution.commands):
            logger.info("Attempt %d for %s rejected: solvable without merge or rebase", attempt, puzzle_id)
            continue

        logger.info("Generated %s (%s): par %d after %d attempts", puzzle_id, tier.name, solution.par_score,
                    attempt + 1)
        return replace(
            draft,
            constraints=build_constraints(tier, solution.par_score + tier.command_slack),
            par_score=solution.par_score,
            solution=tuple(solution.commands),
        )

    logger.error("Puzzle generation failed for %s after %d attempts", puzzle_id, config.max_attempts)
    raise GenerationFailure(
        f"Could not generate a solvable '{tier.name}' puzzle for {key} in {config.max_attempts} attempts"
    )
