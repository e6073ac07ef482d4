import pytest

from billify.domain.errors import InvalidInputError, NotFoundError
from billify.domain.settings_service import SettingsService, SettingsUpdate


@pytest.fixture
def service(session_factory):
    return SettingsService(session_factory)


class TestSettings:
    async def test_missing_settings(self, service):
        assert await service.get_user_settings("user-1") is None

    async def test_get_or_create_defaults(self, service):
        created = await service.get_or_create_settings("user-1")
        assert created.enable_s3_upload
        assert created.enable_email_notifications
        assert not created.enable_default_template_button
        assert created.theme == "light"
        assert created.default_template_id == "default"

        again = await service.get_or_create_settings("user-1")
        assert again.id == created.id

    async def test_update_only_given_fields(self, service):
        await service.get_or_create_settings("user-1")
        updated = await service.update_settings("user-1", SettingsUpdate(theme="dark", enable_s3_upload=False))
        assert updated.theme == "dark"
        assert not updated.enable_s3_upload
        assert updated.enable_email_notifications

    async def test_update_without_row(self, service):
        with pytest.raises(NotFoundError):
            await service.update_settings("user-1", SettingsUpdate(theme="dark"))

    async def test_empty_update(self, service):
        await service.get_or_create_settings("user-1")
        with pytest.raises(InvalidInputError):
            await service.update_settings("user-1", SettingsUpdate())


class TestConvenienceReads:
    async def test_fallbacks_without_settings(self, service):
        assert await service.get_theme("user-1") == "light"
        assert await service.get_default_template_id("user-1") == "default"
        assert not await service.is_feature_enabled("user-1", "enable_s3_upload")

    async def test_reads_stored_values(self, service):
        await service.get_or_create_settings("user-1")
        await service.update_settings("user-1", SettingsUpdate(default_template_id="Extrape", theme="dark"))
        assert await service.get_theme("user-1") == "dark"
        assert await service.get_default_template_id("user-1") == "Extrape"
        assert await service.is_feature_enabled("user-1", "enable_email_notifications")

    async def test_unknown_feature(self, service):
        with pytest.raises(InvalidInputError):
            await service.is_feature_enabled("user-1", "enable_teleport")
