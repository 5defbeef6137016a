# src/task_mirror/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ..core.state import AppState
from ..errors import RemoteStoreError
from ..tasks.task_models import DEFAULT_STATUS, FIELD_GROUP_CODE, FIELD_NAME, FIELD_STATUS, Task, local_date_str
from .bootstrap import switch_group

CommandHandler = Callable[[AppState, list[str]], Awaitable[str]]

logger = logging.getLogger(__name__)

_NONE_WORDS = {"none", "null", "-", "clear"}


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return await handler(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def format_task_line(task: Task) -> str:
    star = "*" if task.is_favorite else " "
    prio = task.priority or "-"
    who = task.assigned_to or "-"
    return f"{star} [{task.id}] {task.name} | {task.status} | priority: {prio} | assignee: {who} | {task.date}"


def _optional(raw: str) -> str | None:
    return None if raw.lower() in _NONE_WORDS else raw


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_list(state: AppState, args: list[str]) -> str:
    if state.group_code is None:
        return "Not subscribed to any group. Use /group <code>."
    tasks = state.cache.tasks
    if not tasks:
        return f"No tasks in group {state.group_code}."
    lines = [f"Tasks in group {state.group_code} ({len(tasks)}):"]
    lines.extend(format_task_line(t) for t in tasks)
    return "\n".join(lines)


async def cmd_show(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /show <id>"
    task = state.cache.get(args[0])
    if task is None:
        return f"Task not found: {args[0]}"
    return format_task_line(task)


async def cmd_group(state: AppState, args: list[str]) -> str:
    if not args:
        current = state.group_code or "(none)"
        return f"Current group: {current}. Use /group <code> to switch."
    result = await switch_group(state, args[0])
    if not result.ok:
        return f"Could not subscribe to group {args[0]}: {result.error}"
    return f"Subscribed to group {args[0]} ({len(state.cache)} tasks)."


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <name...>  -> create a task in the current group on the remote store
    The task shows up in the list once the subscription delivers it.
    """
    if state.group_code is None:
        return "Not subscribed to any group. Use /group <code>."
    if not args:
        return "Usage: /add <name>"
    fields = {
        FIELD_NAME: " ".join(args),
        FIELD_STATUS: DEFAULT_STATUS,
        FIELD_GROUP_CODE: state.group_code,
        "date": local_date_str(),
    }
    try:
        task_id = await state.remote.create_record(fields)
    except RemoteStoreError as e:
        return f"Failed to create task: {e}"
    return f"Created task {task_id}."


async def cmd_status(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /status <id> <status...>"
    task_id, status = args[0], " ".join(args[1:])
    try:
        ok = await state.reconciler.set_status(task_id, status)
    except RemoteStoreError as e:
        return f"Failed to update status of {task_id}: {e}"
    return f"Task {task_id} moved to {status}." if ok else f"Status of {task_id} not changed."


async def cmd_priority(state: AppState, args: list[str]) -> str:
    """
    /priority <id> <value>  -> set priority
    /priority <id> none     -> clear priority
    """
    if len(args) < 2:
        return "Usage: /priority <id> <value|none>"
    task_id, priority = args[0], _optional(" ".join(args[1:]))
    try:
        ok = await state.reconciler.set_priority(task_id, priority)
    except RemoteStoreError as e:
        return f"Failed to update priority of {task_id}: {e}"
    return f"Task {task_id} priority set to {priority}." if ok else f"Task not found: {task_id}"


async def cmd_rename(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /rename <id> <name...>"
    task_id, name = args[0], " ".join(args[1:])
    try:
        ok = await state.reconciler.set_name(task_id, name)
    except RemoteStoreError as e:
        return f"Failed to rename {task_id}: {e}"
    return f"Task {task_id} renamed to {name}." if ok else f"Task {task_id} not renamed."


async def cmd_fav(state: AppState, args: list[str]) -> str:
    if len(args) != 2 or args[1].lower() not in ("on", "off"):
        return "Usage: /fav <id> on|off"
    task_id, flag = args[0], args[1].lower() == "on"
    try:
        ok = await state.reconciler.set_favorite(task_id, flag)
    except RemoteStoreError as e:
        return f"Failed to update favorite of {task_id}: {e}"
    return f"Task {task_id} favorite {'ON' if flag else 'OFF'}." if ok else f"Favorite of {task_id} not changed."


async def cmd_assign(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /assign <id> <user>"
    try:
        ok = await state.reconciler.assign_user(args[0], args[1])
    except RemoteStoreError as e:
        return f"Failed to assign {args[0]}: {e}"
    return f"Task {args[0]} assigned to {args[1]}." if ok else f"Task {args[0]} not assigned."


async def cmd_assignment(state: AppState, args: list[str]) -> str:
    """
    /assignment <id> <user>  -> set assignee (persisted as assignedTo)
    /assignment <id> none    -> unassign

    Works on ids outside the cached group too; the remote write is still issued.
    """
    if len(args) != 2:
        return "Usage: /assignment <id> <user|none>"
    task_id, user_id = args[0], _optional(args[1])
    try:
        ok = await state.reconciler.set_assignment(task_id, user_id)
    except RemoteStoreError as e:
        return f"Failed to update assignment of {task_id}: {e}"
    if not ok:
        return f"Assignment of {task_id} not changed."
    return f"Task {task_id} unassigned." if user_id is None else f"Task {task_id} assigned to {user_id}."


async def cmd_delete(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /delete <id>"
    try:
        await state.reconciler.delete_task(args[0])
    except RemoteStoreError as e:
        return f"Failed to delete {args[0]}: {e}"
    return f"Task {args[0]} deleted."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="List tasks of the current group.", aliases=["ls"])
registry.register("show", cmd_show, help_text="Show one task: /show <id>.")
registry.register("group", cmd_group, help_text="Show or switch group: /group <code>.")
registry.register("add", cmd_add, help_text="Create a task: /add <name>.")
registry.register("status", cmd_status, help_text="Set status: /status <id> <status>.")
registry.register("priority", cmd_priority, help_text="Set priority: /priority <id> <value|none>.")
registry.register("rename", cmd_rename, help_text="Rename: /rename <id> <name>.")
registry.register("fav", cmd_fav, help_text="Favorite flag: /fav <id> on|off.")
registry.register("assign", cmd_assign, help_text="Assign a user: /assign <id> <user>.")
registry.register(
    "assignment", cmd_assignment, help_text="Set or clear assignee: /assignment <id> <user|none>."
)
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
