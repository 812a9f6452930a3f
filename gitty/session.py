import functools
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol

from .command import Command, UndoCommand, decode_command, format_command
from .errors import CommandDecodeError
from .executor import WON, CommandResult, GameState, abandon, apply_command, start_game
from .models import Puzzle

logger = logging.getLogger(__name__)


def log_call(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.debug("Calling '%s' with %s %s", func.__name__, args[1:], kwargs)
        return func(*args, **kwargs)

    return wrapper


class PuzzleStore(Protocol):
    def get_puzzle(self, puzzle_id: str) -> Puzzle: ...


class SessionStore(Protocol):
    def hydrate(self, puzzle_id: str, user_id: str) -> Optional[GameState]: ...

    def save(self, puzzle_id: str, user_id: str, state: GameState) -> None: ...


@dataclass(frozen=True)
class GameReward:
    score: int
    par_score: int
    commands_used: int
    commands_under_par: int
    bonus_points: int
    optimal_solution: List[Command]

    @property
    def performance(self) -> str:
        if self.commands_under_par > 0:
            return "under_par"
        if self.commands_under_par == 0:
            return "at_par"
        return "over_par"


def calculate_score(commands_used: int, par_score: int) -> int:
    """100 за par, +20 за каждую команду меньше par, -10 за каждую сверх (не меньше 10)."""
    diff = par_score - commands_used
    if diff >= 0:
        return 100 + diff * 20
    return max(10, 100 + diff * 10)


class GameSession:
    """
    Обёртка над GameState для хоста: одна сессия на пару (пользователь, головоломка).
    После каждой успешной мутации состояние сохраняется в SessionStore,
    до того как результат вернётся вызывающему.
    """

    def __init__(self, puzzles: PuzzleStore, sessions: SessionStore, puzzle_id: str, user_id: str):
        self.sessions = sessions
        self.user_id = user_id
        self.puzzle = puzzles.get_puzzle(puzzle_id)
        state = sessions.hydrate(puzzle_id, user_id)
        if state is None:
            state = start_game(self.puzzle)
            logger.info("Started new game of %s for %s", puzzle_id, user_id)
        self.state: GameState = state

    def _checkpoint(self) -> None:
        self.sessions.save(self.puzzle.id, self.user_id, self.state)

    @log_call
    def execute(self, payload: Any) -> CommandResult:
        """Выполнить команду во внешнем представлении ({type: ..., ...})."""
        try:
            command = decode_command(payload)
        except CommandDecodeError as exc:
            return CommandResult.failure(exc)
        return self.apply(command)

    @log_call
    def apply(self, command: Command) -> CommandResult:
        self.state, result = apply_command(self.state, command)
        if result.success:
            self._checkpoint()
        logger.debug("%s -> %s", format_command(command), result.message)
        return result

    def undo(self) -> bool:
        """Тот же путь, что и команда undo: с проверкой allowed_commands."""
        return self.apply(UndoCommand()).success

    @log_call
    def abandon(self) -> None:
        self.state = abandon(self.state)
        self._checkpoint()

    def reward(self) -> Optional[GameReward]:
        if self.state.status != WON:
            return None
        par = self.puzzle.par_score
        used = self.state.commands_used
        return GameReward(
            score=calculate_score(used, par),
            par_score=par,
            commands_used=used,
            commands_under_par=par - used,
            bonus_points=max(0, (par - used) * 20),
            optimal_solution=list(self.puzzle.solution),
        )
