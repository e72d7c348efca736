"""
Compliance tasks module — /api/v1/tasks
"""
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.database import get_session
from opengrc.models.task import Task, TaskComment
from opengrc.schemas.common import DeletedOut
from opengrc.schemas.task import (
    TASK_PRIORITY, TASK_STATUS, TASK_TYPE,
    TaskCommentCreate, TaskCommentOut, TaskCreate, TaskOut, TaskStats, TaskUpdate,
)

router = APIRouter(prefix="/api/v1/tasks", tags=["Tasks"])


def is_overdue(t: Task, now: datetime | None = None) -> bool:
    now = now or datetime.utcnow()
    return t.due_at is not None and t.due_at < now and t.status != "completed"


async def _get_task(s: AsyncSession, task_id: int) -> Task:
    t = await s.get(Task, task_id)
    if not t:
        raise HTTPException(404, "Task not found")
    return t


def _task_out(t: Task, comment_count: int = 0) -> TaskOut:
    return TaskOut(
        id=t.id, title=t.title, description=t.description,
        task_type=t.task_type, priority=t.priority, status=t.status,
        assignee=t.assignee, due_at=t.due_at, completed_at=t.completed_at,
        related_entity_type=t.related_entity_type, related_entity_id=t.related_entity_id,
        is_overdue=is_overdue(t), comment_count=comment_count,
        created_at=t.created_at, updated_at=t.updated_at,
    )


async def _comment_counts(s: AsyncSession, task_ids: list[int]) -> dict[int, int]:
    if not task_ids:
        return {}
    q = (
        select(TaskComment.task_id, func.count())
        .where(TaskComment.task_id.in_(task_ids))
        .group_by(TaskComment.task_id)
    )
    return dict((await s.execute(q)).all())


def _set_status(t: Task, status: str) -> None:
    if status == "completed" and t.status != "completed":
        t.completed_at = datetime.utcnow()
    elif status != "completed":
        t.completed_at = None
    t.status = status


# ═══════════════════ STATS (before /{id}) ═══════════════════

@router.get("/stats", response_model=TaskStats, summary="Task summary")
async def task_stats(s: AsyncSession = Depends(get_session)):
    tasks = (await s.execute(select(Task))).scalars().all()
    now = datetime.utcnow()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    end_of_day = start_of_day + timedelta(days=1)
    end_of_week = start_of_day + timedelta(days=7)

    by_type: dict[str, int] = {}
    by_priority: dict[str, int] = {}
    for t in tasks:
        by_type[t.task_type] = by_type.get(t.task_type, 0) + 1
        by_priority[t.priority] = by_priority.get(t.priority, 0) + 1

    pending = [t for t in tasks if t.status != "completed" and t.due_at is not None]
    return TaskStats(
        total=len(tasks),
        open=sum(1 for t in tasks if t.status == "open"),
        in_progress=sum(1 for t in tasks if t.status == "in_progress"),
        completed=sum(1 for t in tasks if t.status == "completed"),
        overdue=sum(1 for t in tasks if is_overdue(t, now)),
        by_type=by_type,
        by_priority=by_priority,
        due_today=sum(1 for t in pending if start_of_day <= t.due_at < end_of_day),
        due_this_week=sum(1 for t in pending if start_of_day <= t.due_at < end_of_week),
    )


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=list[TaskOut], summary="List tasks")
async def list_tasks(
    search: str | None = Query(None),
    status: str | None = Query(None, pattern=TASK_STATUS),
    priority: str | None = Query(None, pattern=TASK_PRIORITY),
    task_type: str | None = Query(None, pattern=TASK_TYPE),
    assignee: str | None = Query(None),
    overdue: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    q = select(Task)
    if search:
        term = f"%{search}%"
        q = q.where(or_(Task.title.ilike(term), Task.description.ilike(term)))
    if status:
        q = q.where(Task.status == status)
    if priority:
        q = q.where(Task.priority == priority)
    if task_type:
        q = q.where(Task.task_type == task_type)
    if assignee:
        q = q.where(Task.assignee == assignee)
    if overdue:
        q = q.where(
            Task.due_at.is_not(None),
            Task.due_at < datetime.utcnow(),
            Task.status != "completed",
        )
    q = q.order_by(Task.due_at.is_(None), Task.due_at, Task.created_at).limit(limit).offset(offset)
    tasks = (await s.execute(q)).scalars().all()
    counts = await _comment_counts(s, [t.id for t in tasks])
    return [_task_out(t, counts.get(t.id, 0)) for t in tasks]


@router.get("/{task_id}", response_model=TaskOut, summary="Task details")
async def get_task(task_id: int, s: AsyncSession = Depends(get_session)):
    t = await _get_task(s, task_id)
    counts = await _comment_counts(s, [t.id])
    return _task_out(t, counts.get(t.id, 0))


@router.post("", response_model=TaskOut, status_code=201, summary="Create task")
async def create_task(body: TaskCreate, s: AsyncSession = Depends(get_session)):
    t = Task(**body.model_dump())
    if t.status == "completed":
        t.completed_at = datetime.utcnow()
    s.add(t)
    await s.commit()
    await s.refresh(t)
    return _task_out(t)


@router.put("/{task_id}", response_model=TaskOut, summary="Update task")
async def update_task(task_id: int, body: TaskUpdate, s: AsyncSession = Depends(get_session)):
    t = await _get_task(s, task_id)
    data = body.model_dump(exclude_unset=True)
    status = data.pop("status", None)
    for k, val in data.items():
        setattr(t, k, val)
    if status is not None:
        _set_status(t, status)
    await s.commit()
    await s.refresh(t)
    counts = await _comment_counts(s, [t.id])
    return _task_out(t, counts.get(t.id, 0))


@router.post("/{task_id}/complete", response_model=TaskOut, summary="Mark task completed")
async def complete_task(task_id: int, s: AsyncSession = Depends(get_session)):
    t = await _get_task(s, task_id)
    _set_status(t, "completed")
    await s.commit()
    await s.refresh(t)
    counts = await _comment_counts(s, [t.id])
    return _task_out(t, counts.get(t.id, 0))


@router.delete("/{task_id}", response_model=DeletedOut, summary="Delete task")
async def delete_task(task_id: int, s: AsyncSession = Depends(get_session)):
    t = await _get_task(s, task_id)
    await s.execute(delete(TaskComment).where(TaskComment.task_id == task_id))
    await s.delete(t)
    await s.commit()
    return DeletedOut(id=task_id)


# ═══════════════════ COMMENTS ═══════════════════

@router.get("/{task_id}/comments", response_model=list[TaskCommentOut], summary="Task comments")
async def list_comments(task_id: int, s: AsyncSession = Depends(get_session)):
    await _get_task(s, task_id)
    q = (
        select(TaskComment)
        .where(TaskComment.task_id == task_id)
        .order_by(TaskComment.created_at, TaskComment.id)
    )
    return (await s.execute(q)).scalars().all()


@router.post(
    "/{task_id}/comments",
    response_model=TaskCommentOut,
    status_code=201,
    summary="Add comment",
)
async def add_comment(task_id: int, body: TaskCommentCreate, s: AsyncSession = Depends(get_session)):
    await _get_task(s, task_id)
    c = TaskComment(task_id=task_id, **body.model_dump())
    s.add(c)
    await s.commit()
    await s.refresh(c)
    return c
