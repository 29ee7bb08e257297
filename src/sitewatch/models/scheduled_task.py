"""
Scheduled-task types.

Triggers are a closed set of variants, each carrying its own parameters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class DailyTrigger:
    start_boundary: datetime
    days_interval: int = 1


@dataclass(frozen=True)
class WeeklyTrigger:
    start_boundary: datetime
    days_of_week: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MonthlyTrigger:
    start_boundary: datetime
    days_of_month: Tuple[int, ...] = ()


@dataclass(frozen=True)
class OnceTrigger:
    start_boundary: datetime


@dataclass(frozen=True)
class LogonTrigger:
    user_id: Optional[str] = None


@dataclass(frozen=True)
class BootTrigger:
    delay: Optional[timedelta] = None


@dataclass(frozen=True)
class IdleTrigger:
    pass


@dataclass(frozen=True)
class EventTrigger:
    subscription: str


Trigger = Union[
    DailyTrigger,
    WeeklyTrigger,
    MonthlyTrigger,
    OnceTrigger,
    LogonTrigger,
    BootTrigger,
    IdleTrigger,
    EventTrigger,
]


@dataclass(frozen=True)
class TaskTrigger:
    trigger: Trigger
    enabled: bool = True


@dataclass(frozen=True)
class TaskAction:
    type: str
    path: Optional[str] = None
    arguments: Optional[str] = None
    working_directory: Optional[str] = None


@dataclass(frozen=True)
class ScheduledTask:
    name: str
    path: str
    folder_path: str = "\\"
    description: str = ""
    author: str = ""
    state: str = "Unknown"
    enabled: bool = True
    last_run_time: Optional[datetime] = None
    next_run_time: Optional[datetime] = None
    last_task_result: int = 0
    triggers: List[TaskTrigger] = field(default_factory=list)
    actions: List[TaskAction] = field(default_factory=list)


@dataclass(frozen=True)
class TaskEvent:
    """One entry of the Task Scheduler operational log."""
    event_id: int
    time_created: datetime
    data: Dict[str, str] = field(default_factory=dict)


@dataclass
class TaskRun:
    task_path: str
    task_name: str
    start_time: datetime
    end_time: Optional[datetime] = None
    result_code: Optional[int] = None
    result_message: str = ""
    triggered_by: str = ""

    @property
    def duration(self) -> Optional[timedelta]:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time
