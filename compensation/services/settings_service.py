"""
Commission settings service.

Business configuration is an append-only list of versions. Reads return
the latest version (or the built-in defaults as version 0 when nothing
was saved yet); every save validates the whole document and appends the
next version. Commission runs record the version they used, so a retried
run computes with the same rules as its first attempt.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from compensation.config.business_constants import default_commission_settings
from compensation.models.commission_settings_record import CommissionSettingsRecord
from compensation.repositories.commission_run_repository import SettingsRepository
from compensation.schemas.commission_settings import CommissionSettings
from compensation.services.base_service import BaseService
from compensation.utils.exceptions import NotFoundError, ValidationError


DEFAULT_SETTINGS_VERSION = 0


@dataclass(frozen=True)
class VersionedSettings:
    """Settings document with the version it was loaded from."""

    settings: CommissionSettings
    version: int


def parse_settings(data: dict[str, Any] | CommissionSettings) -> CommissionSettings:
    """
    Validate a settings document.

    Raises:
        ValidationError: With the first pydantic error in the message
    """
    if isinstance(data, CommissionSettings):
        data = data.model_dump(mode="json")
    try:
        return CommissionSettings.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "settings"
        raise ValidationError(f"Invalid settings at {location}: {first['msg']}") from e


class SettingsService(BaseService):
    """Versioned commission settings store."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.settings_repo = SettingsRepository(session)

    async def get_settings(self, version: int | None = None) -> VersionedSettings:
        """
        Load settings.

        Args:
            version: Specific version; latest when None

        Raises:
            NotFoundError: Requested version does not exist
        """
        if version == DEFAULT_SETTINGS_VERSION:
            return VersionedSettings(default_commission_settings(), DEFAULT_SETTINGS_VERSION)

        if version is None:
            record = await self.settings_repo.get_latest()
            if record is None:
                return VersionedSettings(
                    default_commission_settings(), DEFAULT_SETTINGS_VERSION
                )
        else:
            record = await self.settings_repo.get_by(version=version)
            if record is None:
                raise NotFoundError("CommissionSettings", version)

        return VersionedSettings(parse_settings(record.payload), record.version)

    async def save_settings(
        self,
        data: dict[str, Any] | CommissionSettings,
        saved_by: str | None = None,
        comment: str | None = None,
    ) -> CommissionSettingsRecord:
        """
        Validate and append a new settings version (caller commits).

        Raises:
            ValidationError: Invalid document
            ConcurrencyConflict: Another save took the same version number
        """
        settings = parse_settings(data)
        version = await self.settings_repo.get_next_version()
        record = CommissionSettingsRecord(
            version=version,
            payload=settings.model_dump(mode="json"),
            saved_by=saved_by,
            comment=comment,
        )
        self.session.add(record)
        await self.flush()

        self.logger.info(
            f"Commission settings version {version} saved",
            extra={"version": version, "saved_by": saved_by},
        )
        return record

    async def get_versions(self, limit: int = 20) -> list[CommissionSettingsRecord]:
        return await self.settings_repo.get_versions(limit)
