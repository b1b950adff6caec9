"""Unit tests for Repository derived properties — no database."""

import uuid

from scmlink.models.repository import Repository


def _repository(**overrides) -> Repository:
    data = {
        "project_id": uuid.uuid4(),
        "scm_type": "git",
        "url": "/srv/git/main.git",
        "identifier": "main",
    }
    data.update(overrides)
    return Repository(**data)


class TestRepositoryName:
    def test_identifier_is_the_name(self):
        assert _repository().name == "main"

    def test_default_without_identifier(self):
        repo = _repository(identifier=None, is_default=True)

        assert repo.name == "Default repository"

    def test_falls_back_to_scm_type(self):
        assert _repository(identifier=None).name == "git"


class TestRepositoryIdentifierParam:
    def test_default_repository_has_no_param(self):
        assert _repository(is_default=True).identifier_param is None

    def test_identifier_used(self):
        assert _repository().identifier_param == "main"

    def test_id_used_without_identifier(self):
        repo = _repository(identifier=None)

        assert repo.identifier_param == str(repo.id)


class TestRepositoryLogEncoding:
    def test_defaults_to_utf8(self):
        assert _repository().repo_log_encoding == "UTF-8"

    def test_blank_defaults_to_utf8(self):
        assert _repository(log_encoding="   ").repo_log_encoding == "UTF-8"

    def test_configured_encoding(self):
        assert _repository(log_encoding="ISO-8859-1").repo_log_encoding == "ISO-8859-1"


class TestRepositorySortKey:
    def test_default_first_then_identifier(self):
        repos = [
            _repository(identifier="zeta"),
            _repository(identifier="alpha"),
            _repository(identifier=None, is_default=True),
        ]

        ordered = sorted(repos, key=Repository.sort_key)

        assert [r.name for r in ordered] == ["Default repository", "alpha", "zeta"]
