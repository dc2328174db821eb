from civicconnect.models.user import User, UserRole
from civicconnect.models.issue import Issue, IssueStatus, IssueCategory, IssuePriority
from civicconnect.models.comment import Comment
from civicconnect.models.notification import Notification, NotificationType
