import shlex
from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, List, Union

import yaml

from .errors import CommandDecodeError

COMMAND_TYPES = ("commit", "branch", "checkout", "merge", "rebase", "undo")
DEFAULT_COMMIT_MESSAGE = "Commit"

ALIASES = {
    "ci": "commit",
    "br": "branch",
    "co": "checkout",
    "mg": "merge",
    "rb": "rebase",
}


@dataclass(frozen=True)
class CommitCommand:
    type: ClassVar[str] = "commit"
    message: str = DEFAULT_COMMIT_MESSAGE


@dataclass(frozen=True)
class BranchCommand:
    type: ClassVar[str] = "branch"
    name: str


@dataclass(frozen=True)
class CheckoutCommand:
    type: ClassVar[str] = "checkout"
    target: str


@dataclass(frozen=True)
class MergeCommand:
    type: ClassVar[str] = "merge"
    branch: str


@dataclass(frozen=True)
class RebaseCommand:
    type: ClassVar[str] = "rebase"
    onto: str


@dataclass(frozen=True)
class UndoCommand:
    type: ClassVar[str] = "undo"


Command = Union[CommitCommand, BranchCommand, CheckoutCommand, MergeCommand, RebaseCommand, UndoCommand]

_COMMAND_CLASSES = {
    cls.type: cls
    for cls in (CommitCommand, BranchCommand, CheckoutCommand, MergeCommand, RebaseCommand, UndoCommand)
}


def command_params(cmd: Command) -> Dict[str, Any]:
    return {f.name: getattr(cmd, f.name) for f in fields(cmd)}


def format_command(cmd: Command) -> str:
    """commit(message='c1 on main')"""
    params = command_params(cmd)
    if not params:
        return f"{cmd.type}()"
    params_str = ", ".join(f"{k}={v!r}" for k, v in params.items())
    return f"{cmd.type}({params_str})"


def format_git(cmd: Command) -> str:
    """git commit -m 'c1 on main'"""
    if isinstance(cmd, CommitCommand):
        return f"git commit -m {shlex.quote(cmd.message)}"
    params = command_params(cmd)
    return " ".join(["git", cmd.type, *params.values()])


def encode_command(cmd: Command) -> Dict[str, Any]:
    return {"type": cmd.type, **command_params(cmd)}


def decode_command(payload: Any) -> Command:
    """
    Разобрать команду из внешнего представления {type: ..., ...поля}
    и проверить её поля. Ошибки -> CommandDecodeError.
    """
    if not isinstance(payload, dict):
        raise CommandDecodeError(f"Command must be an object, not {type(payload).__name__}")

    command_type = payload.get("type")
    cls = _COMMAND_CLASSES.get(command_type) if isinstance(command_type, str) else None
    if cls is None:
        raise CommandDecodeError(f"Unknown command type: {command_type!r}")

    expected = {f.name for f in fields(cls)}
    extra = set(payload) - expected - {"type"}
    if extra:
        raise CommandDecodeError(f"Unexpected fields for '{command_type}': {', '.join(sorted(extra))}")

    params: Dict[str, str] = {}
    for name in expected:
        if name not in payload:
            if cls is CommitCommand:
                continue
            raise CommandDecodeError(f"Command '{command_type}' requires field '{name}'")
        value = payload[name]
        if not isinstance(value, str) or not value.strip():
            raise CommandDecodeError(f"Field '{name}' of '{command_type}' must be a non-empty string")
        params[name] = value.strip()
    return cls(**params)


def parse_git_command(text: str) -> Command:
    """
    Разобрать строку вида `git checkout feature` или `git commit -m "msg"`.
    Поддерживаются короткие алиасы (git co, git ci, ...).
    """
    try:
        parts = shlex.split(text)
    except ValueError as exc:
        raise CommandDecodeError(f"Cannot parse command: {exc}") from exc

    if len(parts) < 2 or parts[0].lower() != "git":
        raise CommandDecodeError("Commands must start with 'git'")

    name = parts[1].lower()
    name = ALIASES.get(name, name)
    args = parts[2:]

    if name == "commit":
        if "-m" in args:
            message = " ".join(args[args.index("-m") + 1:])
            if not message:
                raise CommandDecodeError("Option '-m' requires a message")
            return CommitCommand(message=message)
        return CommitCommand()
    if name == "undo":
        return UndoCommand()
    if name not in _COMMAND_CLASSES:
        raise CommandDecodeError(f"Unknown command: git {name}")
    if len(args) != 1:
        raise CommandDecodeError(f"'git {name}' expects exactly one argument")

    field_name = fields(_COMMAND_CLASSES[name])[0].name
    return decode_command({"type": name, field_name: args[0]})


def load_commands_from_yaml(path: str) -> List[Command]:
    """
    Ожидаемый формат YAML:

    commands:
      - name: commit
        params:
          message: "c1 on main"
      - git checkout feature
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    items = data.get("commands", [])
    commands: List[Command] = []
    for idx, item in enumerate(items, start=1):
        if isinstance(item, str):
            commands.append(parse_git_command(item))
            continue
        if not isinstance(item, dict):
            raise CommandDecodeError(f"Команда #{idx} в YAML должна быть объектом или строкой, а не {type(item)}")
        name = item.get("name")
        if not isinstance(name, str):
            raise CommandDecodeError(f"Команда #{idx} в YAML: поле 'name' обязательно и должно быть строкой")
        params = item.get("params") or {}
        if not isinstance(params, dict):
            raise CommandDecodeError(f"Команда #{idx} в YAML: 'params' должен быть объектом")
        commands.append(decode_command({"type": name, **params}))
    return commands
