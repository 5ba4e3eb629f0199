"""
API v1 routes.
"""

from fastapi import APIRouter

from certpath.api.v1 import assessments, certificates, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(assessments.router, prefix="/assessments", tags=["Assessments"])
router.include_router(certificates.router, prefix="/certificates", tags=["Certificates"])
