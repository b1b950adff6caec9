from scmlink.models.changeset import (
    Change,
    ChangeAction,
    Changeset,
    ChangesetParent,
    ChangesetWorkItem,
)
from scmlink.models.project import Project, ProjectCreate, ProjectStatus
from scmlink.models.repository import Repository, RepositoryCreate, RepositoryUpdate
from scmlink.models.user import User
from scmlink.models.work_item import WorkItem, WorkItemCreate

__all__ = [
    "User",
    "Project",
    "ProjectCreate",
    "ProjectStatus",
    "Repository",
    "RepositoryCreate",
    "RepositoryUpdate",
    "Changeset",
    "Change",
    "ChangeAction",
    "ChangesetParent",
    "ChangesetWorkItem",
    "WorkItem",
    "WorkItemCreate",
]
