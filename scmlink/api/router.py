from fastapi import APIRouter

from scmlink.api.v1 import internal, projects, repositories, scm

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(projects.router)
api_router.include_router(repositories.router)
api_router.include_router(scm.router)
api_router.include_router(internal.router)
