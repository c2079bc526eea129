from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

DEFAULT_GEMINI_MODELS = "gemini-2.5-flash,gemini-2.5-pro,gemini-2.0-flash,gemini-pro-latest"

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Comma-separated, tried left to right until one returns text
	gemini_models: str = Field(default=DEFAULT_GEMINI_MODELS, validation_alias="GEMINI_MODELS")
	gemini_base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta/models", validation_alias="GEMINI_BASE_URL")
	gemini_timeout_seconds: float = Field(default=60.0, validation_alias="GEMINI_TIMEOUT_SECONDS")

	# Auth configuration
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=24 * 60, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
	# Seed admin, created at startup when both are set
	seed_admin_email: str | None = Field(default=None, validation_alias="SEED_ADMIN_EMAIL")
	seed_admin_password: str | None = Field(default=None, validation_alias="SEED_ADMIN_PASSWORD")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# Analytics
	weak_topic_threshold: float = Field(default=60.0, validation_alias="WEAK_TOPIC_THRESHOLD")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

	@property
	def candidate_models(self) -> list[str]:
		return [name.strip() for name in self.gemini_models.split(",") if name.strip()]

settings = Settings()
