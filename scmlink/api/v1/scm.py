from fastapi import APIRouter

from scmlink.domain import repository_ops
from scmlink.schemas import ScmBackendRead

router = APIRouter(prefix="/scm", tags=["scm"])


@router.get("", response_model=list[ScmBackendRead])
async def list_scm_backends():
    """Registered SCM backends and whether new repositories may use them."""
    return repository_ops.available_scm()
