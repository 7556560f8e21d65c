"""
Runtime settings for the Healthcare Waste Management API.

Values come from the environment (or a local .env file). Legacy deployment
variable names (MONGODB_URI, NODE_ENV, SECRET_KEY) are accepted as aliases.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Healthcare Waste Management API"

    # Database
    database_url: str = Field(
        "mongodb://localhost:27017",
        validation_alias=AliasChoices("DATABASE_URL", "MONGODB_URI"),
    )
    database_name: str = Field(
        "healthcare_waste",
        validation_alias=AliasChoices("DATABASE_NAME"),
    )

    # Auth
    jwt_secret: str = Field(
        "supersecretkey",
        validation_alias=AliasChoices("JWT_SECRET", "SECRET_KEY"),
    )
    jwt_algorithm: str = Field("HS256", validation_alias=AliasChoices("JWT_ALGORITHM"))
    access_token_expire_minutes: int = Field(
        60 * 24,
        ge=1,
        validation_alias=AliasChoices("ACCESS_TOKEN_EXPIRE_MINUTES"),
    )

    # Object storage
    aws_region: str = Field("us-east-1", validation_alias=AliasChoices("AWS_REGION"))
    aws_access_key_id: Optional[str] = Field(None, validation_alias=AliasChoices("AWS_ACCESS_KEY_ID"))
    aws_secret_access_key: Optional[str] = Field(
        None, validation_alias=AliasChoices("AWS_SECRET_ACCESS_KEY")
    )
    s3_bucket_name: str = Field(
        "healthcare-waste-uploads",
        validation_alias=AliasChoices("S3_BUCKET_NAME"),
    )
    s3_key_prefix: str = Field("uploads", validation_alias=AliasChoices("S3_KEY_PREFIX"))
    storage_timeout_seconds: float = Field(
        10.0,
        gt=0,
        validation_alias=AliasChoices("STORAGE_TIMEOUT_SECONDS"),
    )

    # Hosted vision model (Groq, OpenAI-compatible endpoint)
    groq_api_key: Optional[str] = Field(None, validation_alias=AliasChoices("GROQ_API_KEY"))
    vision_base_url: str = Field(
        "https://api.groq.com/openai/v1",
        validation_alias=AliasChoices("VISION_BASE_URL"),
    )
    vision_model: str = Field(
        "meta-llama/llama-4-scout-17b-16e-instruct",
        validation_alias=AliasChoices("VISION_MODEL"),
    )
    vision_max_tokens: int = Field(500, ge=1, validation_alias=AliasChoices("VISION_MAX_TOKENS"))
    vision_timeout_seconds: float = Field(
        30.0,
        gt=0,
        validation_alias=AliasChoices("VISION_TIMEOUT_SECONDS"),
    )

    # Server
    port: int = Field(5000, validation_alias=AliasChoices("PORT"))
    environment: str = Field(
        "development",
        validation_alias=AliasChoices("ENVIRONMENT", "NODE_ENV"),
    )
    cors_origins: List[str] = Field(["*"], validation_alias=AliasChoices("CORS_ORIGINS"))
    log_level: str = Field("INFO", validation_alias=AliasChoices("LOG_LEVEL"))
    log_format: str = Field("json", validation_alias=AliasChoices("LOG_FORMAT"))

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
