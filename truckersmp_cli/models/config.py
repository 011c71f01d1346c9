"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from truckersmp_cli.models.manifest import ContentCategory
from truckersmp_cli.utils.path import get_data_dir

DEFAULT_MANIFEST_URL = "https://update.ets2mp.com/files.json"
DEFAULT_DOWNLOAD_URL = "https://download-new.ets2mp.com/files/"
DEFAULT_VERSION_URL = "https://api.truckersmp.com/v2/version"
DEFAULT_CONTENT_DIR = str(get_data_dir() / "content")


class SyncProfile(str, Enum):
    """Selects which game-specific bucket is synced next to the shared files."""

    ETS2 = "ets2"
    ATS = "ats"

    @property
    def category(self) -> ContentCategory:
        return ContentCategory(self.value)

    @property
    def display_name(self) -> str:
        return {
            SyncProfile.ETS2: "Euro Truck Simulator 2",
            SyncProfile.ATS: "American Truck Simulator",
        }[self]


class SyncConfig(BaseModel):
    """A validated configuration model for a sync run."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Content selection
    profile: SyncProfile = SyncProfile.ETS2
    content_dir: str = DEFAULT_CONTENT_DIR

    # Sync behaviour
    clean: bool = False
    retry_enabled: bool = True
    retry_count: int = 3
    concurrency_limit: int = 8
    fetch_timeout: float = 300.0

    # Remote endpoints
    manifest_url: str = DEFAULT_MANIFEST_URL
    download_url: str = DEFAULT_DOWNLOAD_URL
    version_url: str = DEFAULT_VERSION_URL

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    @field_validator("content_dir")
    @classmethod
    def validate_content_dir(cls, v: str) -> str:
        if not v:
            raise ValueError("Content directory cannot be empty.")
        return v

    @field_validator("retry_count")
    @classmethod
    def validate_retry_count(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Retry count cannot be negative.")
        return v

    @field_validator("concurrency_limit")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Ensures a reasonable number of simultaneous transfers."""
        if v < 1 or v > 64:
            raise ValueError("Concurrency limit must be between 1 and 64.")
        return v

    @field_validator("fetch_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Fetch timeout cannot be negative (use 0 to disable).")
        return v

    @field_validator("manifest_url", "download_url", "version_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL must use http or https: {v!r}")
        return v

    @field_validator("download_url")
    @classmethod
    def validate_download_base(cls, v: str) -> str:
        """Locators are built by concatenation, so the base must end with '/'."""
        return v if v.endswith("/") else v + "/"

    @property
    def effective_fetch_timeout(self) -> float | None:
        return self.fetch_timeout or None

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "clean"}
        return {key for key in cls.model_fields if key not in internal_fields}
