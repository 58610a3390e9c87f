from pydantic_settings import BaseSettings
from typing import List
import os


class Settings(BaseSettings):
    env: str = "dev"
    secret_key: str = "change_me_super_secret"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    database_url: str = "postgresql+psycopg2://ledger:ledger@db:5432/bizledger"
    tenant_header: str = "X-Tenant-ID"
    backend_cors_origins: str = "http://localhost:5173"
    log_level: str = "INFO"

    # Every database call is bounded; a timeout is a retryable failure
    db_statement_timeout_ms: int = 5000
    db_connect_timeout_s: int = 5
    db_pool_timeout_s: int = 10

    retry_max_attempts: int = 3
    retry_backoff_base_s: float = 0.2
    retry_backoff_max_s: float = 2.0

    # Used when a user has no subscription, no trial and no "Free" plan row
    free_plan_max_tenants: int = 1
    business_timezone: str = "UTC"
    default_currency: str = "USD"

    port: int = int(os.getenv("PORT", "8000"))

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        origins = self.backend_cors_origins
        return [origin.strip() for origin in origins.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
