"""
Issue lifecycle: reporting, triage, resolution and comments.

State-changing operations notify the people involved through the
NotificationDispatcher after their own write has been committed. The two
writes are independent, so a lost notification never undoes an issue change.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from civicconnect.core.exceptions import NotFoundError, ValidationError
from civicconnect.crud import comment as crud_comment
from civicconnect.crud import issue as crud_issue
from civicconnect.crud.user import get_staff_users, get_user
from civicconnect.models import (
    Comment,
    Issue,
    IssueCategory,
    IssuePriority,
    IssueStatus,
    NotificationType,
    User,
)
from civicconnect.schemas import IssueCreate, IssueDetail, IssueStats, IssueUpdate
from civicconnect.services.notifications import NotificationDispatcher
from civicconnect.services.storage import PhotoStorage

logger = logging.getLogger("civicconnect.issues")

UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "priority",
        "assigned_to",
        "assigned_department",
        "resolution_notes",
        "resolution_photo_path",
    }
)

STATS_WINDOW = timedelta(days=7)


def _label(value: str) -> str:
    return value.replace("_", " ")


async def _get_or_404(db: AsyncSession, issue_id: int, with_comments: bool = False) -> Issue:
    issue = await crud_issue.get_issue(db, id=issue_id, with_comments=with_comments)
    if not issue:
        raise NotFoundError("Issue not found")
    return issue


async def create_issue(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    reporter: User,
    obj_in: IssueCreate,
    photo_path: Optional[str] = None,
) -> Issue:
    """
    Report a new issue and let every staff member and admin know about it.
    """
    issue = await crud_issue.create_issue(
        db, obj_in=obj_in, reporter_id=reporter.id, photo_path=photo_path
    )
    logger.info(f"Issue created: id={issue.id}, reporter_id={reporter.id}, category={issue.category.value}")

    for member in await get_staff_users(db):
        if member.id == reporter.id:
            continue
        await dispatcher.dispatch(
            db,
            user_id=member.id,
            issue_id=issue.id,
            type=NotificationType.NEW_ISSUE,
            title="New issue reported",
            message=(
                f'"{issue.title}" ({_label(issue.category.value)}, {issue.priority.value} priority) '
                f"was reported by {reporter.full_name}."
            ),
        )

    return issue


async def list_issues(
    db: AsyncSession,
    status: Optional[IssueStatus] = None,
    category: Optional[IssueCategory] = None,
    priority: Optional[IssuePriority] = None,
    assigned_to: Optional[int] = None,
    reporter_id: Optional[int] = None,
) -> List[Issue]:
    return await crud_issue.get_issues(
        db,
        status=status,
        category=category,
        priority=priority,
        assigned_to=assigned_to,
        reporter_id=reporter_id,
    )


async def get_issue(db: AsyncSession, issue_id: int, include_internal: bool = True) -> IssueDetail:
    """
    Fetch an issue with its comments, oldest first.

    Internal comments are dropped unless include_internal is set.
    """
    issue = await _get_or_404(db, issue_id, with_comments=True)
    detail = IssueDetail.model_validate(issue)
    if not include_internal:
        detail.comments = [c for c in detail.comments if not c.is_internal]
    return detail


async def update_issue(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    issue_id: int,
    obj_in: Union[IssueUpdate, Dict[str, Any]],
) -> Issue:
    """
    Apply the fields present in obj_in to an issue.

    Moving into "resolved" from any other status stamps resolved_at. The
    reporter hears about status changes and a new assignee about the
    assignment.
    """
    if isinstance(obj_in, dict):
        changes = dict(obj_in)
    else:
        changes = obj_in.model_dump(exclude_unset=True)

    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    issue = await _get_or_404(db, issue_id)
    if not changes:
        raise ValidationError("No fields to update")

    new_assignee = changes.get("assigned_to")
    if new_assignee is not None and not await get_user(db, id=new_assignee):
        raise ValidationError(f"Assignee {new_assignee} does not exist")

    old_status = issue.status
    old_assignee = issue.assigned_to

    new_status = changes.get("status", old_status)
    if new_status == IssueStatus.RESOLVED and old_status != IssueStatus.RESOLVED:
        changes["resolved_at"] = datetime.utcnow()

    issue = await crud_issue.update_issue(db, db_obj=issue, update_data=changes)
    logger.info(f"Issue updated: id={issue.id}, fields={sorted(changes)}")

    if issue.status != old_status:
        await dispatcher.dispatch(
            db,
            user_id=issue.reporter_id,
            issue_id=issue.id,
            type=NotificationType.STATUS_UPDATE,
            title="Issue status updated",
            message=f'Your issue "{issue.title}" is now {_label(issue.status.value)}.',
        )

    if issue.assigned_to is not None and issue.assigned_to != old_assignee:
        department = f" ({issue.assigned_department})" if issue.assigned_department else ""
        await dispatcher.dispatch(
            db,
            user_id=issue.assigned_to,
            issue_id=issue.id,
            type=NotificationType.ASSIGNMENT,
            title="Issue assigned to you",
            message=f'You have been assigned to "{issue.title}"{department}.',
        )

    return issue


async def delete_issue(db: AsyncSession, storage: PhotoStorage, issue_id: int) -> Issue:
    """
    Delete an issue, its comments and its stored photos.
    """
    issue = await _get_or_404(db, issue_id)
    photos = [issue.photo_path, issue.resolution_photo_path]

    issue = await crud_issue.delete_issue(db, db_obj=issue)
    for path in photos:
        storage.delete(path)

    logger.info(f"Issue deleted: id={issue_id}")
    return issue


async def add_comment(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    issue_id: int,
    author: User,
    body: str,
    is_internal: bool = False,
) -> Comment:
    """
    Append a comment. Public comments notify the issue's reporter.
    """
    body = (body or "").strip()
    if not body:
        raise ValidationError("Comment cannot be empty")

    issue = await _get_or_404(db, issue_id)
    comment = await crud_comment.create_comment(
        db, issue_id=issue.id, user_id=author.id, body=body, is_internal=is_internal
    )
    logger.info(f"Comment added: issue_id={issue.id}, user_id={author.id}, internal={is_internal}")

    if not is_internal:
        await dispatcher.dispatch(
            db,
            user_id=issue.reporter_id,
            issue_id=issue.id,
            type=NotificationType.COMMENT,
            title="New comment on your issue",
            message=f'{author.full_name} commented on "{issue.title}": {body}',
        )

    return comment


async def get_stats(db: AsyncSession) -> IssueStats:
    stats = await crud_issue.get_issue_stats(db, since=datetime.utcnow() - STATS_WINDOW)
    return IssueStats(**stats)
