"""
Image Service - entity images stored in S3

The primary image of a parent is the parent's `main_image_id` pointer. It is
written under a row lock on the parent, in the same transaction that inserts
or soft-deletes the image, so concurrent uploads cannot produce two primaries
and deleting the primary always leaves a valid pointer (or none).
"""

from typing import Any, Dict, List, Optional, Protocol
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import Request

from app.core.config import settings
from app.core.exceptions import (
    ResourceNotFoundError,
    ImageNotFoundError,
    ValidationError,
    InvalidFileTypeError,
    FileTooLargeError,
    StorageError,
)
from app.core.logging_config import logger
from app.core.types import generate_uuid
from app.models.experience import Experience, ExperienceImage
from app.models.user import User
from app.models.vehicle import Vehicle, VehicleImage
from app.services.audit_service import audit_service, AuditAction
from app.services.storage_service import storage_service


class UploadedImage(Protocol):
    """What the service needs from an upload (FastAPI's UploadFile fits)"""
    filename: Optional[str]
    content_type: Optional[str]

    async def read(self) -> bytes: ...


class ImageService:
    """Upload, list, delete and order images of one kind of parent entity"""

    def __init__(self, parent_model, image_model, parent_field: str, parent_label: str, base_folder: str):
        self.parent_model = parent_model
        self.image_model = image_model
        self.parent_field = parent_field
        self.parent_label = parent_label
        self.base_folder = base_folder
        self.storage = storage_service

    @property
    def entity_type(self) -> str:
        return self.image_model.__name__

    def _parent_column(self):
        return getattr(self.image_model, self.parent_field)

    async def _get_parent(self, db: AsyncSession, parent_id: str, lock: bool = False):
        query = select(self.parent_model).where(
            self.parent_model.id == parent_id,
            self.parent_model.exists == True  # noqa: E712
        )
        if lock:
            query = query.with_for_update()
        parent = (await db.execute(query)).scalar_one_or_none()
        if parent is None:
            raise ResourceNotFoundError(self.parent_label, parent_id)
        return parent

    async def _get_image(self, db: AsyncSession, parent_id: str, image_id: str):
        result = await db.execute(
            select(self.image_model).where(
                self.image_model.id == image_id,
                self._parent_column() == parent_id,
                self.image_model.exists == True  # noqa: E712
            )
        )
        image = result.scalar_one_or_none()
        if image is None:
            raise ImageNotFoundError(image_id)
        return image

    async def _existing_images(self, db: AsyncSession, parent_id: str) -> List[Any]:
        result = await db.execute(
            select(self.image_model)
            .where(
                self._parent_column() == parent_id,
                self.image_model.exists == True  # noqa: E712
            )
            .order_by(self.image_model.display_order, self.image_model.uploaded_at)
        )
        return list(result.scalars().all())

    def validate(self, content_type: Optional[str], size: int) -> None:
        """Check MIME type and size against the upload settings"""
        allowed = settings.ALLOWED_IMAGE_TYPES
        if not content_type or content_type.lower() not in allowed:
            raise InvalidFileTypeError(content_type or "unknown", allowed)
        if size == 0:
            raise ValidationError("Uploaded file is empty", field="file")
        if size > settings.MAX_IMAGE_SIZE:
            raise FileTooLargeError(size, settings.MAX_IMAGE_SIZE)

    async def serialize(self, image, parent) -> Dict[str, Any]:
        return {
            "id": image.id,
            self.parent_field: getattr(image, self.parent_field),
            "file_name": image.file_name,
            "file_size": image.file_size,
            "mime_type": image.mime_type,
            "display_order": image.display_order,
            "is_primary": parent.main_image_id == image.id,
            "url": await self.storage.get_presigned_url(image.s3_key),
            "uploaded_at": image.uploaded_at,
            "uploaded_by_id": image.uploaded_by_id,
        }

    async def upload(
        self,
        db: AsyncSession,
        parent_id: str,
        upload: UploadedImage,
        user: User,
        request: Optional[Request] = None,
    ) -> Dict[str, Any]:
        content = await upload.read()
        self.validate(upload.content_type, len(content))

        parent = await self._get_parent(db, parent_id, lock=True)
        display_order = (await db.execute(
            select(func.count(self.image_model.id)).where(
                self._parent_column() == parent_id,
                self.image_model.exists == True  # noqa: E712
            )
        )).scalar() or 0

        file_name = upload.filename or "image"
        s3_key = self.storage.build_key(self.base_folder, parent_id, file_name)
        stored = await self.storage.upload_file(
            content,
            s3_key,
            upload.content_type,
            metadata={"entity_id": parent_id, "uploaded_by": str(user.id), "original_name": file_name},
        )

        try:
            image = self.image_model(
                id=generate_uuid(),
                s3_key=stored["s3_key"],
                s3_bucket=stored["bucket"],
                s3_region=stored["region"],
                file_name=file_name,
                file_size=stored["size_bytes"],
                mime_type=upload.content_type,
                display_order=display_order,
                uploaded_by_id=str(user.id),
            )
            setattr(image, self.parent_field, parent_id)
            db.add(image)
            await db.flush()

            if parent.main_image_id is None:
                parent.main_image_id = image.id
                await db.flush()

            await audit_service.log(
                db, user, AuditAction.UPLOAD, self.entity_type, image.id,
                changes={"file_name": file_name, "is_primary": parent.main_image_id == image.id},
                request=request,
                metadata={"parent_id": parent_id},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            logger.error(f"[Images] Database write failed after upload, removing {s3_key}")
            try:
                await self.storage.delete_file(s3_key, strategy="hard")
            except StorageError as cleanup_error:
                logger.error(f"[Images] Could not remove orphaned object {s3_key}: {cleanup_error}")
            raise

        logger.info(f"[Images] Uploaded {self.entity_type} {image.id} for {self.parent_label} {parent_id}")
        return await self.serialize(image, parent)

    async def list(self, db: AsyncSession, parent_id: str) -> List[Dict[str, Any]]:
        parent = await self._get_parent(db, parent_id)
        images = await self._existing_images(db, parent_id)
        return [await self.serialize(image, parent) for image in images]

    async def delete(
        self,
        db: AsyncSession,
        parent_id: str,
        image_id: str,
        user: User,
        request: Optional[Request] = None,
    ) -> Dict[str, Any]:
        parent = await self._get_parent(db, parent_id, lock=True)
        image = await self._get_image(db, parent_id, image_id)
        was_primary = parent.main_image_id == image.id

        image.soft_delete(str(user.id))
        remaining = [i for i in await self._existing_images(db, parent_id) if i.id != image.id]
        for index, other in enumerate(remaining):
            other.display_order = index

        if was_primary:
            parent.main_image_id = remaining[0].id if remaining else None
        await db.flush()

        try:
            storage_result = await self.storage.delete_file(image.s3_key)
        except StorageError:
            await db.rollback()
            raise

        await audit_service.log(
            db, user, AuditAction.DELETE, self.entity_type, image.id,
            changes={"was_primary": was_primary, "new_primary_image_id": parent.main_image_id},
            request=request,
            metadata={"parent_id": parent_id, "storage": storage_result},
        )
        await db.commit()

        logger.info(f"[Images] Deleted {self.entity_type} {image.id} ({storage_result['strategy']})")
        return {
            "deleted_image_id": image.id,
            "was_primary": was_primary,
            "new_primary_image_id": parent.main_image_id,
            "remaining_images": len(remaining),
            "storage_strategy": storage_result["strategy"],
        }

    async def set_primary(
        self,
        db: AsyncSession,
        parent_id: str,
        image_id: str,
        user: User,
        request: Optional[Request] = None,
    ) -> Dict[str, Any]:
        parent = await self._get_parent(db, parent_id, lock=True)
        image = await self._get_image(db, parent_id, image_id)

        previous = parent.main_image_id
        parent.main_image_id = image.id
        await audit_service.log(
            db, user, AuditAction.SET_PRIMARY, self.parent_label, parent_id,
            changes={"main_image_id": {"old": previous, "new": image.id}},
            request=request,
        )
        await db.commit()
        return await self.serialize(image, parent)

    async def reorder(
        self,
        db: AsyncSession,
        parent_id: str,
        image_ids: List[str],
        user: User,
        request: Optional[Request] = None,
    ) -> List[Dict[str, Any]]:
        if not image_ids:
            raise ValidationError("image_ids must not be empty", field="image_ids")
        if len(set(image_ids)) != len(image_ids):
            raise ValidationError("image_ids contains duplicates", field="image_ids")

        parent = await self._get_parent(db, parent_id, lock=True)
        result = await db.execute(
            select(self.image_model).where(
                self.image_model.id.in_(image_ids),
                self._parent_column() == parent_id,
                self.image_model.exists == True  # noqa: E712
            )
        )
        images = {image.id: image for image in result.scalars().all()}
        if len(images) != len(image_ids):
            raise ValidationError(
                f"Some images do not belong to this {self.parent_label.lower()}",
                field="image_ids"
            )

        for index, image_id in enumerate(image_ids):
            images[image_id].display_order = index

        await audit_service.log(
            db, user, AuditAction.REORDER, self.entity_type, None,
            changes={"order": image_ids},
            request=request,
            metadata={"parent_id": parent_id},
        )
        await db.commit()
        return [await self.serialize(images[image_id], parent) for image_id in image_ids]


experience_image_service = ImageService(
    Experience, ExperienceImage, "experience_id", "Experience", "experiences"
)
vehicle_image_service = ImageService(
    Vehicle, VehicleImage, "vehicle_id", "Vehicle", "vehicles"
)
