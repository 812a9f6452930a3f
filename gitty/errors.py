class GameError(Exception):
    """Базовая ошибка игрового движка."""


class ValidationError(GameError):
    """Команда запрещена в головоломке или исчерпана квота."""


class ReferenceNotFoundError(GameError):
    """Ветка или коммит не найдены."""


class StateError(GameError):
    """Команда недопустима в текущем состоянии (detached HEAD, пустой undo и т.п.)."""


class CommandDecodeError(ValidationError):
    """Не удалось разобрать команду из внешнего представления."""


class SolverLimitExceeded(GameError):
    pass


class GenerationFailure(GameError):
    """Генератор не смог построить решаемую головоломку за отведённые попытки."""
