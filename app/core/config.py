from typing import Annotated, List, Literal, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    # Application Information
    app_name: str = Field(default="Test Paper Studio")
    app_description: str = Field(
        default="Compose exam papers, reshape them with AI and export printable PDFs"
    )
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=True)
    production: bool = Field(default=False)

    # Database Configuration
    database_url: str = Field(default="sqlite:///./storage/test_papers.db")

    # Security Settings
    cors_allowed_origins: Annotated[List[str], NoDecode] = Field(default=["http://localhost:3000"])

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_storage_uri: str = Field(default="memory://")
    default_rate_limit: str = Field(default="120/minute")
    export_rate_limit: str = Field(default="20/minute")

    # Logging
    log_level: str = Field(default="info")
    log_file: str = Field(default="logs/app.log")

    # AI Service
    ai_api_key: str = Field(default="")
    ai_api_endpoint: str = Field(default="")
    ai_model: str = Field(default="")
    ai_timeout: float = Field(default=120.0)
    ai_max_retries: int = Field(default=2)
    ai_shaping_mode: Literal["structured", "optimized_layout"] = Field(
        default="structured"
    )

    # PDF rendering
    pdf_oversampling_scale: int = Field(default=2, ge=1, le=4)
    pdf_font_path: Optional[str] = Field(default=None)
    pdf_bold_font_path: Optional[str] = Field(default=None)

    # ============================
    # Generic comma-separated parser
    # ============================
    @staticmethod
    def _parse_csv(value, default):
        if isinstance(value, str):
            items = [x.strip() for x in value.split(",") if x.strip()]
            return items if items else default
        if isinstance(value, list):
            return value
        return default

    @field_validator("cors_allowed_origins", mode="before")
    def validate_cors(cls, v):
        return cls._parse_csv(v, ["http://localhost:3000"])

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


def load_settings():
    try:
        settings = Settings()
        print("✅ Settings loaded successfully!")
        return settings
    except ValidationError as e:
        print("❌ Validation Error:", e)
        raise


settings = load_settings()
