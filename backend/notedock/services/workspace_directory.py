"""
NoteDock Backend - Workspace Directory
=======================================

What:  Read-only view of workspaces and memberships.
Why:   Share, copy, create and search all need "does the workspace exist"
       and "may this user read/write there". The workspace service owns the
       data; this module only reads it.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notedock.exceptions import AccessDeniedError, DatabaseError, NotFoundError
from notedock.models.workspace import Workspace, WorkspaceMember

logger = logging.getLogger(__name__)


class WorkspaceRole(str, Enum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"

    @property
    def can_write(self) -> bool:
        return self in (WorkspaceRole.OWNER, WorkspaceRole.EDITOR)


class WorkspaceDirectory(ABC):
    """
    Contract:
        exists(workspace_id) -> bool
        role_of(workspace_id, user_id) -> WorkspaceRole | None (None = not a member)
    """

    @abstractmethod
    async def exists(self, workspace_id: UUID) -> bool:
        ...

    @abstractmethod
    async def role_of(self, workspace_id: UUID, user_id: UUID) -> Optional[WorkspaceRole]:
        ...

    async def require_access(
        self, workspace_id: UUID, user_id: UUID, write: bool = False
    ) -> WorkspaceRole:
        """
        Raise unless `user_id` may read (or write) in `workspace_id`.

        Raises:
            NotFoundError:     workspace does not exist
            AccessDeniedError: not a member, or member without write capability
        """
        if not await self.exists(workspace_id):
            raise NotFoundError(resource="workspace", resource_id=str(workspace_id))

        role = await self.role_of(workspace_id, user_id)
        if role is None:
            raise AccessDeniedError(
                message="Access denied: you are not a member of this workspace",
                reason="not_member",
                context={"workspace_id": str(workspace_id)},
            )
        if write and not role.can_write:
            raise AccessDeniedError(
                message="Access denied: your role in this workspace is read-only",
                reason="read_only",
                context={"workspace_id": str(workspace_id), "role": role.value},
            )
        return role


class SqlWorkspaceDirectory(WorkspaceDirectory):
    """Reads the `workspaces` and `workspace_members` tables."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _get_workspace(self, workspace_id: UUID) -> Optional[Workspace]:
        try:
            result = await self._session.execute(
                select(Workspace).where(Workspace.id == workspace_id)
            )
        except SQLAlchemyError as e:
            logger.error("Database error fetching workspace %s: %s", workspace_id, str(e))
            raise DatabaseError(context={"workspace_id": str(workspace_id)}) from e
        return result.scalar_one_or_none()

    async def exists(self, workspace_id: UUID) -> bool:
        return await self._get_workspace(workspace_id) is not None

    async def role_of(self, workspace_id: UUID, user_id: UUID) -> Optional[WorkspaceRole]:
        workspace = await self._get_workspace(workspace_id)
        if workspace is None:
            return None
        if workspace.owner_id == user_id:
            return WorkspaceRole.OWNER

        try:
            result = await self._session.execute(
                select(WorkspaceMember.role).where(
                    WorkspaceMember.workspace_id == workspace_id,
                    WorkspaceMember.user_id == user_id,
                )
            )
        except SQLAlchemyError as e:
            logger.error("Database error reading membership in %s: %s", workspace_id, str(e))
            raise DatabaseError(context={"workspace_id": str(workspace_id)}) from e

        role = result.scalar_one_or_none()
        if role is None:
            return None
        try:
            return WorkspaceRole(role)
        except ValueError:
            logger.warning("Unknown role '%s' in workspace %s; treating as viewer", role, workspace_id)
            return WorkspaceRole.VIEWER
