"""
OrderFlow Configuration Management
遵循约束：环境变量前缀 OF__
"""
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """全局配置类"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="OF__",
        case_sensitive=False
    )

    # Database
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=5432)
    db_name: str = Field(default="orderflow")
    db_user: str = Field(default="orderflow")
    db_password: str = Field(default="")
    db_pool_size: int = Field(default=20)
    db_max_overflow: int = Field(default=40)
    # 完整连接串（设置后覆盖上面的 PostgreSQL 配置，测试时用于 SQLite）
    db_url: Optional[str] = Field(default=None)

    # API Settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_prefix: str = Field(default="/api/of/v1")
    api_title: str = Field(default="OrderFlow API")
    api_version: str = Field(default="1.0.0")
    api_debug: bool = Field(default=False)
    # 生产环境允许的前端来源（JSON 数组）
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Security
    secret_key: str = Field(default="change-me-in-production")
    algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24)
    bcrypt_rounds: int = Field(default=12)

    # Monitoring
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json or text
    metrics_enabled: bool = Field(default=True)

    # 业务参数
    low_stock_threshold: int = Field(default=10)
    allow_negative_total: bool = Field(default=False)
    product_history_preview: int = Field(default=10)
    customer_orders_preview: int = Field(default=5)

    @field_validator("api_prefix")
    @classmethod
    def validate_api_prefix(cls, v):
        """确保 API 前缀符合规范"""
        if not v.startswith("/api/of/"):
            raise ValueError("API prefix must start with /api/of/")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        if v not in ("json", "text"):
            raise ValueError("Log format must be 'json' or 'text'")
        return v

    @property
    def database_url(self) -> str:
        """构建数据库连接字符串"""
        if self.db_url:
            return self.db_url
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def sync_database_url(self) -> str:
        """构建同步数据库连接字符串（用于 Alembic）"""
        if self.db_url:
            return self.db_url.replace("+aiosqlite", "").replace("+asyncpg", "")
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()
