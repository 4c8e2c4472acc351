"""
Pydantic model for application configuration.
Validates the settings read from config.ini and the command line.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

STORAGE_TYPES = ("filesystem", "googledrive")
DEFAULT_DRIVE_FOLDER_NAME = "MarkdownMediaTracker"


class AppConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Storage selection
    storage_type: str = ""

    # Google Drive
    drive_folder_name: str = DEFAULT_DRIVE_FOLDER_NAME
    drive_access_token: str = Field("", repr=False)

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    @field_validator("storage_type")
    @classmethod
    def validate_storage_type(cls, v: str) -> str:
        """Allows an empty value, meaning "pick the first supported backend"."""
        v = v.lower()
        if v and v not in STORAGE_TYPES:
            raise ValueError(
                f"Storage type must be one of {', '.join(STORAGE_TYPES)}, got '{v}'."
            )
        return v

    @field_validator("drive_folder_name")
    @classmethod
    def validate_folder_name(cls, v: str) -> str:
        if not v:
            raise ValueError("Drive folder name cannot be empty.")
        if "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError("Drive folder name must be a single folder name.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
