from sqlalchemy.ext.asyncio import AsyncSession

from civicconnect.models import Comment


async def create_comment(
    db: AsyncSession, issue_id: int, user_id: int, body: str, is_internal: bool = False
) -> Comment:
    """
    Append a comment to an issue. The author is loaded for author_name.
    """
    db_obj = Comment(
        issue_id=issue_id,
        user_id=user_id,
        body=body,
        is_internal=is_internal,
    )
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj, attribute_names=["author"])
    return db_obj
