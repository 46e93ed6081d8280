"""Route handlers for Web API."""

from schooltutor.web.routes.health import router as health_router
from schooltutor.web.routes.students import router as students_router
from schooltutor.web.routes.progress import router as progress_router
from schooltutor.web.routes.sessions import router as sessions_router
from schooltutor.web.routes.content import router as content_router

__all__ = [
    "health_router",
    "students_router",
    "progress_router",
    "sessions_router",
    "content_router",
]
