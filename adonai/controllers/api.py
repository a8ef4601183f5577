from fastapi import APIRouter

from . import auth, chat, conversations

router = APIRouter(prefix="/api")
router.include_router(chat.router)
router.include_router(auth.router)
router.include_router(conversations.router)
