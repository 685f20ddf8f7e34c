"""
Engine configuration schema using Pydantic for validation and type safety.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..i18n import system_locale


class EngineConfig(BaseModel):
    """Where the settings engine finds its inputs, and how it reports"""
    schema_path: str = Field(
        default="/usr/share/yunohost/config_global.toml",
        description="Panel/section/option definition (TOML, YAML or JSON)",
    )
    store_path: str = Field(
        default="/etc/yunohost/settings.yml",
        description="Persisted override store (YAML or JSON)",
    )
    locales_dir: str = Field(
        default="/usr/share/yunohost/locales",
        description="Directory of <locale>.json translation catalogs",
    )
    locale: Optional[str] = Field(default=None, description="Active locale (default: from LC_ALL/LANG)")
    list_exclude: List[str] = Field(
        default_factory=lambda: ["security.root_access"],
        description="Dotted keys hidden from the classic listing",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="WARNING", description="Logging level")

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v):
        """Accept lowercase level names (env vars and --set are often lowercase)"""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("list_exclude", mode="before")
    @classmethod
    def validate_list_exclude(cls, v):
        """Allow a comma-separated string"""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    def effective_locale(self) -> str:
        return self.locale or system_locale()
