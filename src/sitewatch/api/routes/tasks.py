"""
API routes for scheduled tasks.

Endpoints:
- GET /api/tasks - Task definitions (optionally one folder)
- GET /api/tasks/folders - Task folders
- GET /api/tasks/detail?path= - One task
- GET /api/tasks/history?path= - Run history of a task, newest first
"""

from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from sitewatch.api.dependencies import get_task_service
from sitewatch.models.scheduled_task import ScheduledTask
from sitewatch.services.platform_files import PlatformReadError
from sitewatch.services.scheduled_task_service import (
    ScheduledTaskService,
    describe_trigger,
    result_message,
)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


# Response Models

class TriggerResponse(BaseModel):
    type: str
    enabled: bool
    description: str


class ActionResponse(BaseModel):
    type: str
    path: Optional[str]
    arguments: Optional[str]
    working_directory: Optional[str]

    class Config:
        from_attributes = True


class TaskResponse(BaseModel):
    name: str
    path: str
    folder_path: str
    description: str
    author: str
    state: str
    enabled: bool
    last_run_time: Optional[datetime]
    next_run_time: Optional[datetime]
    last_task_result: int
    last_task_result_message: str
    triggers: List[TriggerResponse]
    actions: List[ActionResponse]


class TaskRunResponse(BaseModel):
    task_path: str
    task_name: str
    start_time: datetime
    end_time: Optional[datetime]
    duration: Optional[timedelta]
    result_code: Optional[int]
    result_message: str
    triggered_by: str

    class Config:
        from_attributes = True


def _task_response(task: ScheduledTask) -> TaskResponse:
    return TaskResponse(
        name=task.name,
        path=task.path,
        folder_path=task.folder_path,
        description=task.description,
        author=task.author,
        state=task.state,
        enabled=task.enabled,
        last_run_time=task.last_run_time,
        next_run_time=task.next_run_time,
        last_task_result=task.last_task_result,
        last_task_result_message=result_message(task.last_task_result),
        triggers=[
            TriggerResponse(
                type=type(t.trigger).__name__.replace("Trigger", ""),
                enabled=t.enabled,
                description=describe_trigger(t.trigger),
            )
            for t in task.triggers
        ],
        actions=[ActionResponse.model_validate(a) for a in task.actions],
    )


def _unavailable(e: PlatformReadError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Scheduled tasks unavailable: {e}",
    )


# Endpoints

@router.get("", response_model=List[TaskResponse])
def list_tasks(
    folder: Optional[str] = Query(None, description="Folder path, e.g. \\Backups"),
    service: ScheduledTaskService = Depends(get_task_service),
):
    try:
        tasks = service.list_tasks(folder)
    except PlatformReadError as e:
        raise _unavailable(e)
    return [_task_response(task) for task in tasks]


@router.get("/folders", response_model=List[str])
def list_folders(service: ScheduledTaskService = Depends(get_task_service)):
    try:
        return service.folders()
    except PlatformReadError as e:
        raise _unavailable(e)


@router.get("/detail", response_model=TaskResponse)
def get_task(
    path: str = Query(..., description="Full task path"),
    service: ScheduledTaskService = Depends(get_task_service),
):
    try:
        task = service.get_task(path)
    except PlatformReadError as e:
        raise _unavailable(e)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return _task_response(task)


@router.get("/history", response_model=List[TaskRunResponse])
def get_task_history(
    path: str = Query(..., description="Full task path"),
    limit: int = Query(100, ge=1, le=1000),
    service: ScheduledTaskService = Depends(get_task_service),
):
    try:
        if service.get_task(path) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
        runs = service.run_history(path, max_entries=limit)
    except PlatformReadError as e:
        raise _unavailable(e)
    return [TaskRunResponse.model_validate(run) for run in runs]
