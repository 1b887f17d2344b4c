"""Custom exceptions for WorkTrace."""

import uuid


class WorkspaceNotFoundError(Exception):
    """Raised when an operation references a workspace that does not exist."""

    def __init__(self, workspace_id: uuid.UUID):
        self.workspace_id = workspace_id
        super().__init__(f"Workspace {workspace_id} does not exist")


class SessionNotFoundError(Exception):
    """Raised when an operation references a session that does not exist."""

    def __init__(self, session_id: uuid.UUID):
        self.session_id = session_id
        super().__init__(f"Session {session_id} does not exist")


class WorkItemNotFoundError(Exception):
    """Raised when an operation references a work item that does not exist."""

    def __init__(self, work_item_id: uuid.UUID):
        self.work_item_id = work_item_id
        super().__init__(f"Work item {work_item_id} does not exist")


class AllocationNotFoundError(Exception):
    """Raised when an operation references an allocation that does not exist."""

    def __init__(self, allocation_id: uuid.UUID):
        self.allocation_id = allocation_id
        super().__init__(f"Allocation {allocation_id} does not exist")


class NoFieldsToUpdateError(ValueError):
    """Raised when a partial update is requested without any field to change."""

    def __init__(self, entity: str, entity_id: uuid.UUID):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"No fields to update for {entity} {entity_id}")
