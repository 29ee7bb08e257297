# src/sitewatch/services/scheduled_task_service.py

"""
Scheduled-task reporting.

Reads task definitions and Task Scheduler operational events through a
ScheduledTaskReader, describes triggers, translates result codes, and groups
raw events into task runs.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from sitewatch.models.scheduled_task import (
    BootTrigger,
    DailyTrigger,
    EventTrigger,
    IdleTrigger,
    LogonTrigger,
    MonthlyTrigger,
    OnceTrigger,
    ScheduledTask,
    TaskAction,
    TaskEvent,
    TaskRun,
    TaskTrigger,
    Trigger,
    WeeklyTrigger,
)
from sitewatch.services.inventory_provider import parse_timespan
from sitewatch.services.platform_files import PlatformReadError, load_document

logger = logging.getLogger(__name__)

# Task Scheduler operational event ids
START_EVENT_IDS = frozenset({100, 107, 110, 129})
COMPLETED_EVENT_IDS = frozenset({102, 201})
FAILED_EVENT_IDS = frozenset({103, 202})

UNKNOWN_TRIGGER = "Manual/Unknown"

RESULT_MESSAGES: Dict[int, str] = {
    0: "Success",
    1: "Incorrect function (or task still running)",
    2: "File not found",
    10: "Environment incorrect",
    0x00041300: "Task is ready to run",
    0x00041301: "Task is currently running",
    0x00041302: "Task is disabled",
    0x00041303: "Task has not yet run",
    0x00041304: "No more runs scheduled",
    0x00041305: "Task is not scheduled to run again",
    0x00041306: "Task terminated by user",
    0x00041307: "No instances running",
    0x00041308: "Queued",
    0x8004130F: "Credentials required",
    0x8004131F: "Instance already running",
    0x80070005: "Access denied",
    0x80070002: "File not found",
    0x80004005: "Unspecified failure",
}


def result_message(code: int) -> str:
    """Human-readable text for a task result code (signed or unsigned HRESULT)."""
    unsigned = code & 0xFFFFFFFF
    message = RESULT_MESSAGES.get(unsigned)
    if message is not None:
        return message
    return f"Error code: 0x{unsigned:08X} ({code})"


def describe_trigger(trigger: Trigger) -> str:
    """
    One-line description of a trigger.

    Raises:
        TypeError: for a trigger type with no description, so new variants
            cannot be silently reported as something else
    """
    if isinstance(trigger, DailyTrigger):
        return f"Daily at {trigger.start_boundary:%H:%M}, every {trigger.days_interval} day(s)"
    if isinstance(trigger, WeeklyTrigger):
        days = ", ".join(trigger.days_of_week) or "no days"
        return f"Weekly on {days} at {trigger.start_boundary:%H:%M}"
    if isinstance(trigger, MonthlyTrigger):
        days = ",".join(str(d) for d in trigger.days_of_month)
        return f"Monthly on day {days} at {trigger.start_boundary:%H:%M}"
    if isinstance(trigger, OnceTrigger):
        return f"Once at {trigger.start_boundary:%Y-%m-%d %H:%M}"
    if isinstance(trigger, LogonTrigger):
        return f"At logon of {trigger.user_id}" if trigger.user_id else "At logon"
    if isinstance(trigger, BootTrigger):
        return "At startup"
    if isinstance(trigger, IdleTrigger):
        return "On idle"
    if isinstance(trigger, EventTrigger):
        return f"On event: {trigger.subscription}"
    raise TypeError(f"Unknown trigger type: {type(trigger).__name__}")


def _event_result_code(event: TaskEvent) -> int:
    try:
        return int(event.data.get("ResultCode", ""))
    except ValueError:
        return -1


def _event_result_message(event: TaskEvent) -> str:
    message = event.data.get("Message")
    if message:
        return message
    return result_message(_event_result_code(event))


def build_run_history(
    task_path: str,
    task_name: str,
    events: Iterable[TaskEvent],
    max_entries: int = 100,
) -> List[TaskRun]:
    """
    Group Task Scheduler events into runs, newest first.

    A run opens on the first start-phase event and closes on a completion
    or failure event. Seeing the same start-phase event again while a run
    is open means the earlier run never reported completion; it is closed
    with result -1. A run still open at the end is reported as "Running".
    A failure with no open run is a failed start and becomes an instant run.
    """
    # Chronological; events sharing a timestamp keep their log order
    recent = sorted(events, key=lambda e: e.time_created)[-max_entries * 2:]

    history: List[TaskRun] = []
    current: Optional[TaskRun] = None
    seen_start_ids: set = set()

    for event in recent:
        event_id = event.event_id
        when = event.time_created

        if event_id in START_EVENT_IDS:
            if current is not None and event_id not in seen_start_ids:
                seen_start_ids.add(event_id)
                if current.triggered_by == UNKNOWN_TRIGGER and event.data.get("TriggerName"):
                    current.triggered_by = event.data["TriggerName"]
                continue

            if current is not None:
                current.end_time = when
                current.result_code = -1
                current.result_message = "Unknown (no completion event)"
                history.append(current)

            current = TaskRun(
                task_path=task_path,
                task_name=task_name,
                start_time=when,
                triggered_by=event.data.get("TriggerName") or UNKNOWN_TRIGGER,
            )
            seen_start_ids = {event_id}

        elif event_id in COMPLETED_EVENT_IDS:
            if current is not None:
                current.end_time = when
                current.result_code = 0
                current.result_message = "Success"
                history.append(current)
                current = None

        elif event_id in FAILED_EVENT_IDS:
            if current is not None:
                current.end_time = when
                current.result_code = _event_result_code(event)
                current.result_message = _event_result_message(event)
                history.append(current)
                current = None
            else:
                history.append(
                    TaskRun(
                        task_path=task_path,
                        task_name=task_name,
                        start_time=when,
                        end_time=when,
                        result_code=_event_result_code(event),
                        result_message=_event_result_message(event),
                    )
                )

    if current is not None:
        current.result_message = "Running"
        history.append(current)

    history.sort(key=lambda run: run.start_time, reverse=True)
    return history[:max_entries]


class ScheduledTaskReader(Protocol):
    def list_tasks(self) -> List[ScheduledTask]:
        ...

    def task_events(self, task_path: str) -> List[TaskEvent]:
        ...


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def parse_trigger(raw: Dict[str, Any]) -> Trigger:
    """
    Build a trigger variant from its exported form ({"type": "daily", ...}).

    Raises:
        ValueError: unknown trigger type
    """
    kind = str(raw.get("type", "")).lower()
    start = _parse_datetime(raw.get("start_boundary"))

    if kind == "daily":
        return DailyTrigger(start_boundary=start, days_interval=int(raw.get("days_interval", 1)))
    if kind == "weekly":
        return WeeklyTrigger(start_boundary=start, days_of_week=tuple(raw.get("days_of_week") or ()))
    if kind == "monthly":
        return MonthlyTrigger(
            start_boundary=start,
            days_of_month=tuple(int(d) for d in raw.get("days_of_month") or ()),
        )
    if kind in ("once", "time"):
        return OnceTrigger(start_boundary=start)
    if kind == "logon":
        return LogonTrigger(user_id=raw.get("user_id"))
    if kind == "boot":
        delay = raw.get("delay")
        return BootTrigger(delay=parse_timespan(delay) if delay is not None else None)
    if kind == "idle":
        return IdleTrigger()
    if kind == "event":
        return EventTrigger(subscription=raw.get("subscription", ""))
    raise ValueError(f"Unknown trigger type: {raw.get('type')!r}")


def _task_from_dict(raw: Dict[str, Any]) -> ScheduledTask:
    path = raw["path"]
    folder = path.rsplit("\\", 1)[0] or "\\"
    return ScheduledTask(
        name=raw.get("name") or path.rsplit("\\", 1)[-1],
        path=path,
        folder_path=raw.get("folder_path") or folder,
        description=raw.get("description") or "",
        author=raw.get("author") or "",
        state=raw.get("state", "Unknown"),
        enabled=bool(raw.get("enabled", True)),
        last_run_time=_parse_datetime(raw.get("last_run_time")),
        next_run_time=_parse_datetime(raw.get("next_run_time")),
        last_task_result=int(raw.get("last_task_result", 0)),
        triggers=[
            TaskTrigger(trigger=parse_trigger(t), enabled=bool(t.get("enabled", True)))
            for t in raw.get("triggers") or []
        ],
        actions=[
            TaskAction(
                type=a.get("type", "Execute"),
                path=a.get("path"),
                arguments=a.get("arguments"),
                working_directory=a.get("working_directory"),
            )
            for a in raw.get("actions") or []
        ],
    )


class FileScheduledTaskReader:
    """ScheduledTaskReader over an exported YAML/JSON task listing, re-read per call."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _tasks_raw(self) -> List[Dict[str, Any]]:
        return load_document(self.path).get("tasks") or []

    def list_tasks(self) -> List[ScheduledTask]:
        try:
            return [_task_from_dict(raw) for raw in self._tasks_raw()]
        except (KeyError, TypeError, ValueError) as e:
            raise PlatformReadError(f"Invalid task entry in {self.path}: {e}") from e

    def task_events(self, task_path: str) -> List[TaskEvent]:
        for raw in self._tasks_raw():
            if raw.get("path") != task_path:
                continue
            try:
                return [
                    TaskEvent(
                        event_id=int(e["event_id"]),
                        time_created=_parse_datetime(e["time_created"]),
                        data={k: str(v) for k, v in (e.get("data") or {}).items()},
                    )
                    for e in raw.get("events") or []
                ]
            except (KeyError, TypeError, ValueError) as e:
                raise PlatformReadError(f"Invalid event for {task_path}: {e}") from e
        return []


class ScheduledTaskService:
    """Task listing and run history on top of a ScheduledTaskReader."""

    def __init__(self, reader: ScheduledTaskReader):
        self.reader = reader

    def list_tasks(self, folder_path: Optional[str] = None) -> List[ScheduledTask]:
        """All tasks, optionally limited to a folder and its subfolders."""
        tasks = self.reader.list_tasks()
        if not folder_path:
            return tasks
        prefix = folder_path.rstrip("\\")
        return [
            t for t in tasks
            if t.folder_path == folder_path or t.folder_path.startswith(prefix + "\\")
        ]

    def get_task(self, task_path: str) -> Optional[ScheduledTask]:
        for task in self.reader.list_tasks():
            if task.path == task_path:
                return task
        return None

    def folders(self) -> List[str]:
        return sorted({t.folder_path for t in self.reader.list_tasks()})

    def run_history(self, task_path: str, max_entries: int = 100) -> List[TaskRun]:
        """
        Runs of a task, newest first.

        Falls back to the task's last-run information when its events
        cannot be read.
        """
        task = self.get_task(task_path)
        if task is None:
            return []

        try:
            events = self.reader.task_events(task_path)
        except PlatformReadError as e:
            logger.warning(f"Could not read task events for {task_path}, using last run info: {e}")
            if task.last_run_time is None:
                return []
            return [
                TaskRun(
                    task_path=task.path,
                    task_name=task.name,
                    start_time=task.last_run_time,
                    end_time=task.last_run_time,
                    result_code=task.last_task_result,
                    result_message=result_message(task.last_task_result),
                )
            ]

        return build_run_history(task.path, task.name, events, max_entries=max_entries)
