from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from civicconnect.models import Issue, IssueCategory, IssuePriority, IssueStatus
from civicconnect.schemas import IssueCreate


async def get_issue(db: AsyncSession, id: int, with_comments: bool = False) -> Optional[Issue]:
    """
    Get an issue by ID, with reporter and assignee loaded.

    Always reloads from the database so relationships reflect the latest commit.
    """
    query = select(Issue).filter(Issue.id == id).execution_options(populate_existing=True)
    if with_comments:
        query = query.options(selectinload(Issue.comments))
    result = await db.execute(query)
    return result.scalars().first()


async def get_issues(
    db: AsyncSession,
    status: Optional[IssueStatus] = None,
    category: Optional[IssueCategory] = None,
    priority: Optional[IssuePriority] = None,
    assigned_to: Optional[int] = None,
    reporter_id: Optional[int] = None,
) -> List[Issue]:
    """
    Get issues matching every given filter, newest first.
    """
    query = select(Issue)
    if status:
        query = query.filter(Issue.status == status)
    if category:
        query = query.filter(Issue.category == category)
    if priority:
        query = query.filter(Issue.priority == priority)
    if assigned_to is not None:
        query = query.filter(Issue.assigned_to == assigned_to)
    if reporter_id is not None:
        query = query.filter(Issue.reporter_id == reporter_id)

    result = await db.execute(query.order_by(Issue.created_at.desc(), Issue.id.desc()))
    return result.scalars().unique().all()


async def create_issue(
    db: AsyncSession, obj_in: IssueCreate, reporter_id: int, photo_path: Optional[str] = None
) -> Issue:
    """
    Create a new issue in the pending state.
    """
    db_obj = Issue(
        title=obj_in.title,
        description=obj_in.description,
        category=obj_in.category,
        latitude=obj_in.latitude,
        longitude=obj_in.longitude,
        priority=obj_in.priority,
        status=IssueStatus.PENDING,
        photo_path=photo_path,
        reporter_id=reporter_id,
    )
    db.add(db_obj)
    await db.commit()
    return await get_issue(db, id=db_obj.id)


async def update_issue(db: AsyncSession, db_obj: Issue, update_data: Dict[str, Any]) -> Issue:
    """
    Write the given fields onto an issue. Only keys present in update_data are touched.
    """
    for field, value in update_data.items():
        setattr(db_obj, field, value)

    db.add(db_obj)
    await db.commit()
    return await get_issue(db, id=db_obj.id)


async def delete_issue(db: AsyncSession, db_obj: Issue) -> Issue:
    """
    Delete an issue together with its comments.
    """
    await db.delete(db_obj)
    await db.commit()
    return db_obj


def _count_where(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


async def get_issue_stats(db: AsyncSession, since: datetime) -> Dict[str, Any]:
    """
    Aggregate issue counts by status and priority, plus a per-category
    breakdown and the number of issues created after `since`.
    """
    overall = await db.execute(
        select(
            func.count(Issue.id).label("total"),
            _count_where(Issue.status == IssueStatus.PENDING).label("pending"),
            _count_where(Issue.status == IssueStatus.IN_PROGRESS).label("in_progress"),
            _count_where(Issue.status == IssueStatus.RESOLVED).label("resolved"),
            _count_where(Issue.status == IssueStatus.CLOSED).label("closed"),
            _count_where(Issue.priority == IssuePriority.LOW).label("low"),
            _count_where(Issue.priority == IssuePriority.MEDIUM).label("medium"),
            _count_where(Issue.priority == IssuePriority.HIGH).label("high"),
            _count_where(Issue.priority == IssuePriority.URGENT).label("urgent"),
            _count_where(Issue.created_at >= since).label("recent"),
        )
    )
    stats = dict(overall.mappings().one())

    by_category = await db.execute(
        select(
            Issue.category,
            func.count(Issue.id).label("count"),
            _count_where(Issue.status == IssueStatus.PENDING).label("pending"),
            _count_where(Issue.status == IssueStatus.RESOLVED).label("resolved"),
        )
        .group_by(Issue.category)
        .order_by(func.count(Issue.id).desc())
    )
    stats["by_category"] = [dict(row) for row in by_category.mappings().all()]
    return stats
