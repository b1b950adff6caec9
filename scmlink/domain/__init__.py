from scmlink.domain.changeset_operations import changeset_ops
from scmlink.domain.project_operations import project_ops
from scmlink.domain.repository_operations import repository_ops
from scmlink.domain.user_operations import user_ops
from scmlink.domain.work_item_operations import work_item_ops

__all__ = [
    "changeset_ops",
    "project_ops",
    "repository_ops",
    "user_ops",
    "work_item_ops",
]
