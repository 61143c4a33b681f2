from fastapi.routing import APIRouter

from table_memory.web.api import vectors

api_router = APIRouter()
api_router.include_router(vectors.router, prefix="/vectors", tags=["vectors"])
