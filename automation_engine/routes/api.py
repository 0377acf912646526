"""API router aggregating all route modules."""

from fastapi import APIRouter

from .workflows import router as workflows_router
from .executions import router as executions_router
from .nodes import router as nodes_router

router = APIRouter(prefix="/api")

router.include_router(workflows_router, tags=["Workflows"])
router.include_router(executions_router, tags=["Executions"])
router.include_router(nodes_router, tags=["Nodes"])
