from scmlink.schemas.repository import CommitterMapUpdate, CommitterRead, ScmBackendRead

__all__ = ["CommitterMapUpdate", "CommitterRead", "ScmBackendRead"]
