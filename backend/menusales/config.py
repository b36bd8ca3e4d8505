from pathlib import Path
from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings

# .env lives at the project root (two levels above this file: menusales/config.py → backend/ → root/)
_ENV_FILE = str(Path(__file__).parent.parent.parent / ".env")


class Settings(BaseSettings):
    # Database: prefer DATABASE_URL if set; otherwise build from POSTGRES_* vars
    database_url: str = Field(default="", alias="DATABASE_URL")
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "menusales"
    postgres_user: str = "menusales_user"
    postgres_password: str = ""
    db_ssl: bool = False

    # Slack
    slack_webhook_url: str = ""

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    # Object store root: uploaded report files are addressed relative to this
    raw_data_path: str = "./data/raw"

    # Ingestion
    default_workspace_id: str = "default"
    default_product_name_column: str = "Product Name"
    default_quantity_column: str = "Quantity"
    default_amount_column: str = "Amount"
    write_batch_size: int = 500

    # Auto-match thresholds (interactive review vs unattended best-effort pass)
    auto_match_threshold: float = 0.8
    unattended_auto_match_threshold: float = 0.9

    def get_db_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    model_config = {
        "env_file": _ENV_FILE,
        "case_sensitive": False,
        "extra": "ignore",
        "populate_by_name": True,
    }


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
