# services/tasks.py
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reviewdesk.models import Task


async def next_task_order(db: AsyncSession, project_id: int) -> int:
    current = (
        await db.execute(select(func.max(Task.sort_order)).where(Task.project_id == project_id))
    ).scalar()
    return (current or 0) + 1


async def create_task(
    db: AsyncSession,
    project_id: int,
    title: str,
    description: str | None,
    order: int,
) -> Task:
    """The only write the review engine makes into the task board."""
    task = Task(
        project_id=project_id,
        title=title,
        description=description,
        status="todo",
        priority="medium",
        sort_order=order,
    )
    db.add(task)
    await db.flush()
    return task
