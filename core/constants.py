# constants.py

AUDIT_ACTIONS = {
    # Users
    "USER_CREATED": "USER_CREATED",
    "USER_UPDATED": "USER_UPDATED",
    "ROLE_CHANGED": "ROLE_CHANGED",

    # Projects
    "PROJECT_CREATED": "PROJECT_CREATED",
    "PROJECT_UPDATED": "PROJECT_UPDATED",
    "PROJECT_MEMBER_ADDED": "PROJECT_MEMBER_ADDED",
    "PROJECT_MEMBER_REMOVED": "PROJECT_MEMBER_REMOVED",

    # Milestones
    "MILESTONE_CREATED": "MILESTONE_CREATED",
    "MILESTONE_UPDATED": "MILESTONE_UPDATED",
    "MILESTONE_DELETED": "MILESTONE_DELETED",
    "MILESTONE_APPROVED": "MILESTONE_APPROVED",
    "MILESTONE_CHANGES_REQUESTED": "MILESTONE_CHANGES_REQUESTED",

    # Tasks
    "TASK_CREATED": "TASK_CREATED",
    "TASK_UPDATED": "TASK_UPDATED",
    "TASK_DELETED": "TASK_DELETED",
    "TASK_REORDERED": "TASK_REORDERED",
    "TASK_COMMENTED": "TASK_COMMENTED",
}

# task statuses that count towards milestone progress
PROGRESS_TASK_STATUSES = ("COMPLETED", "APPROVED")
