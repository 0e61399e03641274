# app/core/exceptions.py


class WorkflowTransitionError(Exception):
    """An approval action was attempted from a state that does not allow it."""

    def __init__(self, milestone_id: int, current_status: str, action: str):
        self.milestone_id = milestone_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} milestone {milestone_id}: "
            f"status is {current_status}, expected READY_FOR_APPROVAL"
        )


class UnknownRoleError(Exception):
    """A session or user row carries a role outside the closed role set."""

    def __init__(self, role, user_id=None):
        self.role = role
        self.user_id = user_id
        super().__init__(f"User {user_id} has unknown role {role!r}")
