from seqalloc.web.routers.histories import router as histories_router
from seqalloc.web.routers.sequences import router as sequences_router

__all__ = [
    "histories_router",
    "sequences_router",
]
