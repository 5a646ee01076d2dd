from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    app_name: str = Field(default="Aceves Joyería", alias="APP_NAME")
    app_env: str = Field(default="dev", alias="APP_ENV")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    database_url: str = Field(
        default="sqlite:///" + (BASE_DIR / "tienda.db").as_posix(), alias="DATABASE_URL"
    )
    db_echo: bool = Field(default=False, alias="DB_ECHO")
    currency: str = Field(default="MXN", alias="CURRENCY")

    # Inventario
    stock_sentinel: int = Field(default=999, alias="STOCK_SENTINEL")
    stock_cas_retries: int = Field(default=3, alias="STOCK_CAS_RETRIES")

    # Servicios alojados
    service_role_key: str = Field(default="", alias="SUPABASE_SERVICE_ROLE_KEY")
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_anon_key: str = Field(default="", alias="SUPABASE_ANON_KEY")
    resend_api_key: str = Field(default="", alias="RESEND_API_KEY")
    resend_from_email: str = Field(
        default="Aceves Joyería <noreply@acevesoficial.com>", alias="RESEND_FROM_EMAIL"
    )
    side_effect_retries: int = Field(default=2, alias="SIDE_EFFECT_RETRIES")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="", alias="LOG_DIR")

    model_config = SettingsConfigDict(
        env_file=".env",
        populate_by_name=True,
        extra="ignore",
    )


settings = Settings()
