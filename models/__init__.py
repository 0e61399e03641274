from models.base import Base

from models.user import User
from models.project import Project
from models.milestone import Milestone
from models.task import Task
from models.task_comment import TaskComment
from models.milestone_approval import MilestoneApproval
from models.notification import Notification
from models.audit_log import AuditLog
from models.lead import Lead
from models.article import Article

from models.association_tables import project_members, task_assignees
