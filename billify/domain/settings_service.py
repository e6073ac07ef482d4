# billify/domain/settings_service.py
import logging
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from billify.domain.errors import InvalidInputError, NotFoundError, RemoteServiceError
from billify.infrastructure.database.models import AppSettings

logger = logging.getLogger(__name__)

FEATURE_FLAGS = ("enable_s3_upload", "enable_email_notifications", "enable_default_template_button")
DEFAULT_TEMPLATE_ID = "default"


class UserSettings(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: Optional[str] = None
    enable_s3_upload: bool = True
    enable_email_notifications: bool = True
    enable_default_template_button: bool = False
    theme: Literal["light", "dark"] = "light"
    default_template_id: str = DEFAULT_TEMPLATE_ID

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value)


class SettingsUpdate(BaseModel):
    enable_s3_upload: Optional[bool] = None
    enable_email_notifications: Optional[bool] = None
    enable_default_template_button: Optional[bool] = None
    theme: Optional[Literal["light", "dark"]] = None
    default_template_id: Optional[str] = None


class SettingsService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def get_user_settings(self, user_id: str) -> Optional[UserSettings]:
        try:
            async with self._sessions() as session:
                row = await session.scalar(select(AppSettings).where(AppSettings.user_id == user_id))
                return UserSettings.model_validate(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Error fetching settings for user {user_id}: {e}")
            raise RemoteServiceError("Failed to fetch settings") from e

    async def get_or_create_settings(self, user_id: str) -> UserSettings:
        existing = await self.get_user_settings(user_id)
        if existing:
            return existing
        try:
            async with self._sessions() as session:
                row = AppSettings(
                    user_id=user_id,
                    enable_s3_upload=True,
                    enable_email_notifications=True,
                    enable_default_template_button=False,
                    theme="light",
                    default_template_id=DEFAULT_TEMPLATE_ID,
                )
                session.add(row)
                await session.commit()
                await session.refresh(row)
                logger.info(f"Created default settings for user {user_id}")
                return UserSettings.model_validate(row)
        except SQLAlchemyError as e:
            logger.error(f"Error creating default settings for user {user_id}: {e}")
            raise RemoteServiceError("Failed to create settings") from e

    async def update_settings(self, user_id: str, updates: SettingsUpdate) -> UserSettings:
        changes = updates.model_dump(exclude_none=True)
        if not changes:
            raise InvalidInputError("No settings to update")
        try:
            async with self._sessions() as session:
                row = await session.scalar(select(AppSettings).where(AppSettings.user_id == user_id))
                if row is None:
                    raise NotFoundError(f"Settings for user {user_id} not found")
                for field, value in changes.items():
                    setattr(row, field, value)
                row.updated_at = datetime.now(timezone.utc)
                await session.commit()
                await session.refresh(row)
                return UserSettings.model_validate(row)
        except SQLAlchemyError as e:
            logger.error(f"Error updating settings for user {user_id}: {e}")
            raise RemoteServiceError("Failed to update settings") from e

    async def is_feature_enabled(self, user_id: str, feature: str) -> bool:
        if feature not in FEATURE_FLAGS:
            raise InvalidInputError(f"Unknown feature '{feature}'")
        try:
            current = await self.get_user_settings(user_id)
        except RemoteServiceError:
            return False
        return bool(current and getattr(current, feature))

    async def get_theme(self, user_id: str) -> str:
        try:
            current = await self.get_user_settings(user_id)
        except RemoteServiceError:
            return "light"
        return current.theme if current else "light"

    async def get_default_template_id(self, user_id: str) -> str:
        try:
            current = await self.get_user_settings(user_id)
        except RemoteServiceError:
            return DEFAULT_TEMPLATE_ID
        return current.default_template_id if current else DEFAULT_TEMPLATE_ID
