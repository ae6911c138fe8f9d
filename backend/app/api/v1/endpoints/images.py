"""
Image endpoints for entities with a photo gallery (experiences, vehicles).

The same routes are mounted under each parent's prefix:
    POST   /{parent_id}/images                      upload (multipart `file`)
    GET    /{parent_id}/images                      list with presigned URLs
    DELETE /{parent_id}/images/{image_id}           soft delete + S3 move
    PATCH  /{parent_id}/images/{image_id}/primary   repoint the primary image
    PATCH  /{parent_id}/images/reorder              set display order
"""
from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.rate_limiter import read_rate_limit, write_rate_limit
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, get_current_admin
from app.schemas.common import ReorderImagesRequest
from app.services.image_service import ImageService


def create_image_router(image_service: ImageService, kind: str) -> APIRouter:
    router = APIRouter()

    def scoped(func):
        # Rate limits are keyed by function name; keep each parent kind separate
        func.__name__ = f"{func.__name__}_{kind}"
        func.__qualname__ = func.__name__
        return func

    @router.post("/{parent_id}/images", status_code=status.HTTP_201_CREATED)
    @write_rate_limit()
    @scoped
    async def upload_image(
        request: Request,
        parent_id: str,
        file: UploadFile = File(...),
        current_user: User = Depends(get_current_admin),
        db: AsyncSession = Depends(get_db)
    ):
        image = await image_service.upload(db, parent_id, file, current_user, request)
        return {"success": True, "data": image, "message": "Image uploaded"}

    @router.get("/{parent_id}/images")
    @read_rate_limit()
    @scoped
    async def list_images(
        request: Request,
        parent_id: str,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db)
    ):
        images = await image_service.list(db, parent_id)
        return {"success": True, "data": images, "count": len(images)}

    @router.patch("/{parent_id}/images/reorder")
    @write_rate_limit()
    @scoped
    async def reorder_images(
        request: Request,
        parent_id: str,
        body: ReorderImagesRequest,
        current_user: User = Depends(get_current_admin),
        db: AsyncSession = Depends(get_db)
    ):
        images = await image_service.reorder(db, parent_id, body.image_ids, current_user, request)
        return {"success": True, "data": images, "message": "Images reordered"}

    @router.patch("/{parent_id}/images/{image_id}/primary")
    @write_rate_limit()
    @scoped
    async def set_primary_image(
        request: Request,
        parent_id: str,
        image_id: str,
        current_user: User = Depends(get_current_admin),
        db: AsyncSession = Depends(get_db)
    ):
        image = await image_service.set_primary(db, parent_id, image_id, current_user, request)
        return {"success": True, "data": image, "message": "Primary image updated"}

    @router.delete("/{parent_id}/images/{image_id}")
    @write_rate_limit()
    @scoped
    async def delete_image(
        request: Request,
        parent_id: str,
        image_id: str,
        current_user: User = Depends(get_current_admin),
        db: AsyncSession = Depends(get_db)
    ):
        result = await image_service.delete(db, parent_id, image_id, current_user, request)
        return {"success": True, "data": result, "message": "Image deleted"}

    return router
