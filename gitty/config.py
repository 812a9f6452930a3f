import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional, Tuple

import yaml

from .command import COMMAND_TYPES
from .models import DEFAULT_TRUNK, DETACHED
from .solver import DEFAULT_MAX_STATES

logger = logging.getLogger(__name__)

FILE_NAMES = (
    "README.md",
    "index.ts",
    "config.json",
    "styles.css",
    "app.py",
    "Makefile",
    "schema.sql",
    "LICENSE",
)


@dataclass(frozen=True)
class DifficultyTier:
    name: str
    branches: Tuple[str, ...]
    file_count: int
    min_depth: int
    max_depth: int
    par_min: int
    par_max: int
    command_slack: int = 4
    max_checkouts: Optional[int] = None
    max_commits: Optional[int] = None
    max_branches: Optional[int] = None
    max_consecutive_commits: Optional[int] = None
    allowed_commands: Tuple[str, ...] = COMMAND_TYPES

    def validate(self, trunk: str) -> None:
        if trunk not in self.branches:
            raise ValueError(f"Уровень '{self.name}': ветка {trunk!r} должна быть в списке branches")
        if DETACHED in self.branches:
            raise ValueError(f"Уровень '{self.name}': имя ветки {DETACHED!r} зарезервировано")
        if len(set(self.branches)) < 2:
            raise ValueError(f"Уровень '{self.name}': нужно хотя бы две ветки")
        if not 1 <= self.min_depth <= self.max_depth:
            raise ValueError(f"Уровень '{self.name}': нужно 1 <= min_depth <= max_depth")
        positions = len(set(self.branches)) * (self.max_depth - self.min_depth + 1)
        if not 1 <= self.file_count <= positions:
            raise ValueError(f"Уровень '{self.name}': file_count должен быть от 1 до {positions}")
        if not 1 <= self.par_min <= self.par_max:
            raise ValueError(f"Уровень '{self.name}': нужно 1 <= par_min <= par_max")
        unknown = set(self.allowed_commands) - set(COMMAND_TYPES)
        if unknown:
            raise ValueError(f"Уровень '{self.name}': неизвестные команды {sorted(unknown)}")


DEFAULT_TIERS: Dict[str, DifficultyTier] = {
    "easy": DifficultyTier(
        name="easy",
        branches=("main", "feature"),
        file_count=2,
        min_depth=1,
        max_depth=2,
        par_min=3,
        par_max=6,
        command_slack=5,
        max_checkouts=4,
    ),
    "medium": DifficultyTier(
        name="medium",
        branches=("main", "feature"),
        file_count=3,
        min_depth=1,
        max_depth=3,
        par_min=5,
        par_max=8,
        command_slack=4,
        max_checkouts=5,
        max_consecutive_commits=3,
    ),
    "hard": DifficultyTier(
        name="hard",
        branches=("main", "feature", "hotfix"),
        file_count=3,
        min_depth=1,
        max_depth=3,
        par_min=7,
        par_max=10,
        command_slack=3,
        max_checkouts=5,
        max_consecutive_commits=2,
    ),
}

# понедельник ... воскресенье
DEFAULT_WEEKDAY_TIERS = ("easy", "easy", "medium", "medium", "medium", "hard", "hard")


@dataclass(frozen=True)
class GeneratorConfig:
    tiers: Dict[str, DifficultyTier] = field(default_factory=lambda: dict(DEFAULT_TIERS))
    weekday_tiers: Tuple[str, ...] = DEFAULT_WEEKDAY_TIERS
    trunk: str = DEFAULT_TRUNK
    max_attempts: int = 25
    max_states: int = DEFAULT_MAX_STATES
    file_names: Tuple[str, ...] = FILE_NAMES

    def tier(self, name: str) -> DifficultyTier:
        try:
            return self.tiers[name]
        except KeyError:
            raise ValueError(f"Unknown difficulty tier: {name!r}") from None

    def validate(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts должен быть положительным")
        if len(self.weekday_tiers) != 7:
            raise ValueError("weekday_tiers должен содержать 7 элементов (пн..вс)")
        for name in self.weekday_tiers:
            self.tier(name)
        for tier in self.tiers.values():
            tier.validate(self.trunk)
            if tier.file_count > len(self.file_names):
                raise ValueError(f"Уровень '{tier.name}': не хватает имён файлов")


_TIER_FIELDS = {f.name for f in fields(DifficultyTier)}
_TUPLE_FIELDS = {"branches", "allowed_commands"}


def _tier_from_dict(name: str, data: Dict[str, Any], base: Optional[DifficultyTier]) -> DifficultyTier:
    if not isinstance(data, dict):
        raise ValueError(f"Уровень '{name}' в YAML должен быть объектом")
    unknown = set(data) - _TIER_FIELDS
    if unknown:
        raise ValueError(f"Уровень '{name}': неизвестные поля {sorted(unknown)}")
    values = {k: tuple(v) if k in _TUPLE_FIELDS else v for k, v in data.items()}
    values["name"] = name
    if base is not None:
        return replace(base, **values)
    return DifficultyTier(**values)


def load_config(path: Optional[str] = None) -> GeneratorConfig:
    """
    Конфигурация генератора: встроенные уровни, поверх которых
    накладывается YAML-файл (если указан).

    Ожидаемый формат YAML:

    max_attempts: 10
    weekday_tiers: [easy, easy, medium, medium, medium, hard, hard]
    tiers:
      easy:
        par_max: 5
    """
    config = GeneratorConfig()
    if path is None:
        config.validate()
        return config

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("Конфигурация в YAML должна быть объектом")
    unknown = set(data) - {"tiers", "trunk", "max_attempts", "max_states", "weekday_tiers", "file_names"}
    if unknown:
        raise ValueError(f"Неизвестные поля конфигурации: {sorted(unknown)}")

    tiers = dict(config.tiers)
    for name, tier_data in (data.get("tiers") or {}).items():
        tiers[name] = _tier_from_dict(name, tier_data, tiers.get(name))

    overrides: Dict[str, Any] = {"tiers": tiers}
    for key in ("trunk", "max_attempts", "max_states"):
        if key in data:
            overrides[key] = data[key]
    for key in ("weekday_tiers", "file_names"):
        if key in data:
            overrides[key] = tuple(data[key])

    config = replace(config, **overrides)
    config.validate()
    logger.debug("Loaded generator config from %s (%d tiers)", path, len(config.tiers))
    return config
