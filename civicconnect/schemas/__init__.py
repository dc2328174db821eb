from civicconnect.schemas.user import User, UserBrief, UserCreate, UserUpdate, Token, TokenPayload
from civicconnect.schemas.comment import Comment, CommentCreate
from civicconnect.schemas.issue import (
    Issue,
    IssueCreate,
    IssueUpdate,
    IssueDetail,
    IssueStats,
    CategoryStats,
)
from civicconnect.schemas.notification import Notification, UnreadCount
