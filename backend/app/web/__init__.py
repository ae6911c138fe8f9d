"""Server-rendered dashboard pages"""
from app.web.pages import router as web_router

__all__ = ["web_router"]
