from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Financial Records API"
    environment: str = "development"
    allowed_origins: str = "*"
    log_level: str = "INFO"

    @property
    def parsed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    # MongoDB settings
    # local development fallback only; deployments set MONGO_URI
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "crm-system"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
