"""Backend-type tag → adapter class registry."""

import logging
from collections.abc import Callable
from typing import Any

from scmlink.config import settings
from scmlink.scm.base import ScmAdapter
from scmlink.scm.exceptions import BackendError

logger = logging.getLogger(__name__)

_adapters: dict[str, type[ScmAdapter]] = {}


def register_adapter(tag: str) -> Callable[[type[ScmAdapter]], type[ScmAdapter]]:
    """Class decorator registering an adapter under a repository `scm_type` tag."""

    def decorator(cls: type[ScmAdapter]) -> type[ScmAdapter]:
        if tag in _adapters and _adapters[tag] is not cls:
            logger.warning(f"SCM adapter tag {tag!r} re-registered by {cls.__name__}")
        _adapters[tag] = cls
        return cls

    return decorator


def unregister_adapter(tag: str) -> None:
    _adapters.pop(tag, None)


def get_adapter_class(tag: str) -> type[ScmAdapter]:
    try:
        return _adapters[tag]
    except KeyError:
        raise BackendError(f"Unknown SCM type: {tag}") from None


def build_adapter(tag: str, **kwargs: Any) -> ScmAdapter:
    return get_adapter_class(tag)(**kwargs)


def available_scm() -> list[tuple[str, str]]:
    """(tag, display name) for every registered backend, sorted by tag."""
    return sorted((tag, cls.scm_name) for tag, cls in _adapters.items())


def is_enabled(tag: str, enabled_scm: list[str] | None = None) -> bool:
    """Whether new repositories may use this backend.

    Consulted only when a repository is created; existing repositories
    keep working if their backend is later removed from the allow-list.
    """
    allowed = settings.enabled_scm if enabled_scm is None else enabled_scm
    return tag in _adapters and tag in allowed
