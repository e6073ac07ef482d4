# billify/domain/template_service.py
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from billify.delivery.schemas.layout import TemplateLayout
from billify.domain.errors import InvalidInputError, NotFoundError, RemoteServiceError
from billify.infrastructure.database.models import CustomTemplate

# --- LOGGER ---
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

_UPDATABLE = ("name", "description", "layout", "is_default", "thumbnail")


class SavedTemplate(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    layout: TemplateLayout
    is_default: bool = False
    thumbnail: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value)


def _parse_id(template_id) -> Optional[uuid.UUID]:
    try:
        return template_id if isinstance(template_id, uuid.UUID) else uuid.UUID(str(template_id))
    except ValueError:
        return None


class TemplateService:
    """CRUD for named templates in the ``custom_templates`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def get_user_templates(self, user_id: str) -> List[SavedTemplate]:
        try:
            async with self._sessions() as session:
                rows = await session.scalars(
                    select(CustomTemplate)
                    .where(CustomTemplate.user_id == user_id)
                    .order_by(CustomTemplate.created_at.desc())
                )
                return [SavedTemplate.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error fetching templates for user {user_id}: {e}")
            raise RemoteServiceError("Failed to fetch templates") from e

    async def get_template(self, template_id) -> Optional[SavedTemplate]:
        key = _parse_id(template_id)
        if key is None:
            return None
        try:
            async with self._sessions() as session:
                row = await session.get(CustomTemplate, key)
                return SavedTemplate.model_validate(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Error fetching template {template_id}: {e}")
            raise RemoteServiceError("Failed to fetch template") from e

    async def save_template(
        self,
        user_id: str,
        name: str,
        layout: TemplateLayout,
        description: Optional[str] = None,
        is_default: bool = False,
        thumbnail: Optional[str] = None,
    ) -> SavedTemplate:
        if not name or not name.strip():
            raise InvalidInputError("Template name required")
        try:
            async with self._sessions() as session:
                row = CustomTemplate(
                    user_id=user_id,
                    name=name.strip(),
                    description=description,
                    layout=layout.to_blob(),
                    is_default=is_default,
                    thumbnail=thumbnail,
                )
                session.add(row)
                await session.commit()
                await session.refresh(row)
                logger.info(f"Saved template '{row.name}' ({row.id}) for user {user_id}")
                return SavedTemplate.model_validate(row)
        except SQLAlchemyError as e:
            logger.error(f"Error saving template: {e}")
            raise RemoteServiceError("Failed to save template") from e

    async def update_template(self, template_id, **updates) -> SavedTemplate:
        unknown = set(updates) - set(_UPDATABLE)
        if unknown:
            raise InvalidInputError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if "name" in updates and not (updates["name"] or "").strip():
            raise InvalidInputError("Template name required")
        if isinstance(updates.get("layout"), TemplateLayout):
            updates["layout"] = updates["layout"].to_blob()

        key = _parse_id(template_id)
        if key is None:
            raise NotFoundError(f"Template {template_id} not found")
        try:
            async with self._sessions() as session:
                row = await session.get(CustomTemplate, key)
                if row is None:
                    raise NotFoundError(f"Template {template_id} not found")
                for field, value in updates.items():
                    setattr(row, field, value)
                row.updated_at = datetime.now(timezone.utc)
                await session.commit()
                await session.refresh(row)
                return SavedTemplate.model_validate(row)
        except SQLAlchemyError as e:
            logger.error(f"Error updating template {template_id}: {e}")
            raise RemoteServiceError("Failed to update template") from e

    async def delete_template(self, template_id) -> None:
        key = _parse_id(template_id)
        if key is None:
            raise NotFoundError(f"Template {template_id} not found")
        try:
            async with self._sessions() as session:
                row = await session.get(CustomTemplate, key)
                if row is None:
                    raise NotFoundError(f"Template {template_id} not found")
                await session.delete(row)
                await session.commit()
                logger.info(f"Deleted template {template_id}")
        except SQLAlchemyError as e:
            logger.error(f"Error deleting template {template_id}: {e}")
            raise RemoteServiceError("Failed to delete template") from e

    async def set_default_template(self, user_id: str, template_id) -> None:
        """Clear every default of the user, then flag ``template_id``.

        The target is looked up first, so an unknown or foreign id changes
        nothing. The two steps commit separately: a failure between them leaves
        the user with no default until it is set again.
        """
        key = _parse_id(template_id)
        if key is None:
            raise NotFoundError(f"Template {template_id} not found")
        try:
            async with self._sessions() as session:
                target = await session.scalar(
                    select(CustomTemplate.id)
                    .where(CustomTemplate.id == key, CustomTemplate.user_id == user_id)
                )
                if target is None:
                    raise NotFoundError(f"Template {template_id} not found")

                await session.execute(
                    update(CustomTemplate)
                    .where(CustomTemplate.user_id == user_id)
                    .values(is_default=False)
                )
                await session.commit()

                result = await session.execute(
                    update(CustomTemplate)
                    .where(CustomTemplate.id == key, CustomTemplate.user_id == user_id)
                    .values(is_default=True, updated_at=datetime.now(timezone.utc))
                )
                await session.commit()
                if result.rowcount == 0:
                    raise NotFoundError(f"Template {template_id} not found")
                logger.info(f"Template {template_id} is now the default for user {user_id}")
        except SQLAlchemyError as e:
            logger.error(f"Error setting default template: {e}")
            raise RemoteServiceError("Failed to set default template") from e

    async def get_default_template(self, user_id: str) -> Optional[SavedTemplate]:
        try:
            async with self._sessions() as session:
                row = await session.scalar(
                    select(CustomTemplate)
                    .where(CustomTemplate.user_id == user_id, CustomTemplate.is_default.is_(True))
                    .order_by(CustomTemplate.updated_at.desc())
                    .limit(1)
                )
                return SavedTemplate.model_validate(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Error fetching default template for user {user_id}: {e}")
            raise RemoteServiceError("Failed to fetch default template") from e

    async def duplicate_template(self, template_id, user_id: str, new_name: str) -> SavedTemplate:
        original = await self.get_template(template_id)
        if original is None:
            raise NotFoundError("Template not found")
        return await self.save_template(
            user_id,
            new_name,
            original.layout,
            description=original.description,
            is_default=False,
            thumbnail=original.thumbnail,
        )

    async def save_layout(self, user_id: str, layout: TemplateLayout) -> SavedTemplate:
        """Insert the layout, or update the saved template whose layout id matches."""
        if not layout.name or not layout.name.strip():
            raise InvalidInputError("Template name required")
        for existing in await self.get_user_templates(user_id):
            if existing.layout.id == layout.id:
                logger.info(f"Updating saved template {existing.id} from layout {layout.id}")
                return await self.update_template(
                    existing.id, name=layout.name, description=layout.description, layout=layout
                )
        return await self.save_template(user_id, layout.name, layout, description=layout.description)
