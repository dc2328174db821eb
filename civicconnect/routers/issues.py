from typing import Any, List, Optional
import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from civicconnect.api.deps import (
    ensure_can_view_issue,
    get_current_active_user,
    get_current_admin_user,
    get_current_staff_user,
    get_dispatcher,
    get_storage,
)
from civicconnect.core.exceptions import CivicConnectError, NotFoundError
from civicconnect.crud.issue import get_issue as fetch_issue
from civicconnect.db.session import get_db
from civicconnect.models import IssueCategory, IssuePriority, IssueStatus, User
from civicconnect.schemas import Comment, CommentCreate, IssueCreate, IssueDetail, IssueStats, IssueUpdate
from civicconnect.schemas import Issue as IssueSchema
from civicconnect.services import issues as issue_service
from civicconnect.services.notifications import NotificationDispatcher
from civicconnect.services.storage import PhotoStorage

logger = logging.getLogger("civicconnect.issues")

router = APIRouter()


@router.post("/issues", response_model=IssueSchema, status_code=status.HTTP_201_CREATED)
async def create_new_issue(
    title: str = Form(...),
    description: str = Form(...),
    category: str = Form(...),
    latitude: float = Form(...),
    longitude: float = Form(...),
    priority: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    storage: PhotoStorage = Depends(get_storage),
) -> Any:
    """
    Report a new issue. Sent as multipart form data so a photo can be attached.
    """
    fields = {
        "title": title,
        "description": description,
        "category": category,
        "latitude": latitude,
        "longitude": longitude,
    }
    if priority:
        fields["priority"] = priority
    try:
        issue_in = IssueCreate(**fields)
    except SchemaValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))

    photo_path = None
    if photo is not None and photo.filename:
        photo_path = await storage.save(photo, prefix="issue")

    try:
        return await issue_service.create_issue(
            db, dispatcher, reporter=current_user, obj_in=issue_in, photo_path=photo_path
        )
    except Exception:
        storage.delete(photo_path)
        raise


@router.get("/issues", response_model=List[IssueSchema])
async def read_issues(
    status: Optional[IssueStatus] = None,
    category: Optional[IssueCategory] = None,
    priority: Optional[IssuePriority] = None,
    assigned_to: Optional[int] = None,
    reporter_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Retrieve issues, newest first.
    Citizens can only see their own issues, staff and admins can see all.
    """
    if not current_user.role.is_staff:
        reporter_id = current_user.id
    return await issue_service.list_issues(
        db,
        status=status,
        category=category,
        priority=priority,
        assigned_to=assigned_to,
        reporter_id=reporter_id,
    )


@router.get("/issues/stats", response_model=IssueStats)
async def read_issue_stats(
    current_user: User = Depends(get_current_staff_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Dashboard counters. Only accessible to staff and admins.
    """
    return await issue_service.get_stats(db)


@router.get("/issues/{issue_id}", response_model=IssueDetail)
async def read_issue(
    issue_id: int,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Get issue by ID with its comments.
    Citizens can only get their own issues and never see internal comments.
    """
    detail = await issue_service.get_issue(
        db, issue_id, include_internal=current_user.role.is_staff
    )
    ensure_can_view_issue(current_user, detail.reporter_id)
    return detail


@router.put("/issues/{issue_id}", response_model=IssueSchema)
async def update_issue(
    issue_id: int,
    issue_in: IssueUpdate,
    current_user: User = Depends(get_current_staff_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Any:
    """
    Triage an issue: status, priority, assignment and resolution notes.
    """
    issue = await issue_service.update_issue(db, dispatcher, issue_id, issue_in)
    logger.info(f"Issue {issue_id} updated by user_id={current_user.id}")
    return issue


@router.post("/issues/{issue_id}/resolution-photo", response_model=IssueSchema)
async def upload_resolution_photo(
    issue_id: int,
    photo: UploadFile = File(...),
    current_user: User = Depends(get_current_staff_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    storage: PhotoStorage = Depends(get_storage),
) -> Any:
    """
    Attach a photo showing the fixed issue. Replaces any earlier one.
    """
    existing = await fetch_issue(db, id=issue_id)
    if not existing:
        raise NotFoundError("Issue not found")
    previous_photo = existing.resolution_photo_path

    path = await storage.save(photo, prefix="resolution")
    try:
        issue = await issue_service.update_issue(
            db, dispatcher, issue_id, {"resolution_photo_path": path}
        )
    except CivicConnectError:
        storage.delete(path)
        raise

    storage.delete(previous_photo)
    return issue


@router.delete("/issues/{issue_id}", response_model=IssueSchema)
async def delete_issue(
    issue_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
    storage: PhotoStorage = Depends(get_storage),
) -> Any:
    """
    Delete an issue and its photos. Only accessible to admins.
    """
    issue = await issue_service.delete_issue(db, storage, issue_id)
    logger.info(f"Issue {issue_id} deleted by user_id={current_user.id}")
    return issue


@router.post(
    "/issues/{issue_id}/comments",
    response_model=Comment,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    issue_id: int,
    comment_in: CommentCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Any:
    """
    Comment on an issue. Citizens can only comment on their own issues
    and cannot post internal comments.
    """
    is_internal = comment_in.is_internal
    if not current_user.role.is_staff:
        issue = await fetch_issue(db, id=issue_id)
        if not issue:
            raise NotFoundError("Issue not found")
        ensure_can_view_issue(current_user, issue.reporter_id)
        is_internal = False

    return await issue_service.add_comment(
        db,
        dispatcher,
        issue_id=issue_id,
        author=current_user,
        body=comment_in.body,
        is_internal=is_internal,
    )
