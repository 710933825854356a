"""
app/api/routers package marker.
"""

from app.api.routers.content_import import router as content_import_router
from app.api.routers.record_audit import router as record_audit_router

__all__ = [
    "content_import_router",
    "record_audit_router",
]
