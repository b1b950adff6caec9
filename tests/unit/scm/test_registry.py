"""Unit tests for the SCM adapter registry."""

import pytest

from scmlink.config.settings import settings
from scmlink.scm import GitAdapter, GitHubAdapter
from scmlink.scm.base import ScmAdapter
from scmlink.scm.exceptions import BackendError
from scmlink.scm.registry import (
    available_scm,
    build_adapter,
    get_adapter_class,
    is_enabled,
    register_adapter,
    unregister_adapter,
)
from scmlink.scm.types import Capability


class TestRegistry:
    def test_builtin_backends_registered(self):
        assert get_adapter_class("git") is GitAdapter
        assert get_adapter_class("github") is GitHubAdapter

    def test_unknown_tag_raises_backend_error(self):
        with pytest.raises(BackendError, match="Unknown SCM type"):
            get_adapter_class("cvs")

    def test_available_scm_sorted_by_tag(self):
        backends = available_scm()

        assert ("git", "Git") in backends
        assert ("github", "GitHub") in backends
        assert backends == sorted(backends)

    def test_register_and_unregister(self):
        @register_adapter("temporary")
        class TemporaryAdapter(GitAdapter):
            scm_name = "Temporary"

        try:
            assert get_adapter_class("temporary") is TemporaryAdapter
        finally:
            unregister_adapter("temporary")

        with pytest.raises(BackendError):
            get_adapter_class("temporary")

    def test_build_adapter_passes_configuration(self):
        adapter = build_adapter("git", url="/srv/git/a.git", log_encoding="ISO-8859-1")

        assert isinstance(adapter, GitAdapter)
        assert adapter.url == "/srv/git/a.git"
        assert adapter.log_encoding == "ISO-8859-1"
        assert adapter.path_encoding == "UTF-8"


class TestIsEnabled:
    def test_uses_settings_allow_list(self, monkeypatch):
        monkeypatch.setattr(settings, "enabled_scm", ["git"])

        assert is_enabled("git")
        assert not is_enabled("github")

    def test_explicit_allow_list(self):
        assert is_enabled("github", ["github"])
        assert not is_enabled("git", ["github"])

    def test_unregistered_tag_never_enabled(self):
        assert not is_enabled("cvs", ["cvs"])


class TestCapabilities:
    def test_git_supports_annotate(self):
        adapter: ScmAdapter = build_adapter("git", url="/srv/git/a.git")

        assert adapter.supports(Capability.ANNOTATE)
        assert not adapter.supports(Capability.DIRECTORY_REVISIONS)

    async def test_unsupported_operation_raises_backend_error(self):
        adapter = build_adapter("github", url="octo/hello")

        assert not adapter.supports(Capability.ANNOTATE)
        with pytest.raises(BackendError, match="does not support annotate"):
            await adapter.annotate("README.md")

    async def test_default_branches_and_tags_are_empty(self):
        adapter = GitAdapter(url="/tmp")
        assert await ScmAdapter.branches(adapter) == set()
        assert await ScmAdapter.tags(adapter) == set()
