"""
SCM adapter package.

Importing the package registers the built-in backends:
- git: local repositories through the `git` command line client
- github: repositories hosted on GitHub through the REST API
"""

from scmlink.scm.base import ScmAdapter
from scmlink.scm.exceptions import BackendError, BackendUnavailable, ScmAdapterError
from scmlink.scm.git import GitAdapter
from scmlink.scm.github import GitHubAdapter
from scmlink.scm.registry import (
    available_scm,
    build_adapter,
    get_adapter_class,
    is_enabled,
    register_adapter,
)
from scmlink.scm.types import (
    AnnotatedLine,
    Capability,
    ChangedPath,
    CommitRecord,
    Entry,
)

__all__ = [
    # Contract
    "ScmAdapter",
    "Capability",
    # Built-in backends
    "GitAdapter",
    "GitHubAdapter",
    # Registry
    "register_adapter",
    "get_adapter_class",
    "build_adapter",
    "available_scm",
    "is_enabled",
    # Exceptions
    "ScmAdapterError",
    "BackendUnavailable",
    "BackendError",
    # Types
    "AnnotatedLine",
    "ChangedPath",
    "CommitRecord",
    "Entry",
]
