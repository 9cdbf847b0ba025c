from fastapi import APIRouter

from app.api.routers import admin, auth, branches, chat, health, queries, query_actions, remarks, sanctioned, users

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(branches.router)
api_router.include_router(query_actions.router)
api_router.include_router(queries.router)
api_router.include_router(remarks.router)
api_router.include_router(chat.router)
api_router.include_router(sanctioned.router)
api_router.include_router(admin.router)

__all__ = ["api_router"]
