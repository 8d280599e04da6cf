"""应用配置模块 - 使用 Pydantic Settings 管理环境变量"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置类"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Motif Engine", description="应用名称")
    env: Literal["development", "production", "test"] = Field(
        default="development", description="运行环境"
    )
    debug: bool = Field(default=False, description="调试模式")

    # Logging
    log_level: str = Field(default="INFO", description="日志级别")
    log_format: Literal["json", "text"] = Field(default="text", description="日志格式")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./motif_engine.db",
        description="数据库连接 URL",
    )
    database_echo: bool = Field(default=False, description="是否打印 SQL")

    # Generation Service
    generation_service_url: str = Field(
        default="http://localhost:3000/api/generate",
        description="生成服务地址",
    )
    generation_timeout_seconds: float = Field(
        default=300.0, description="单次生成调用超时时间（秒）"
    )
    default_image_model: str = Field(
        default="google/gemini-3-pro-image", description="图片输出的默认模型"
    )
    default_text_model: str = Field(
        default="anthropic/claude-sonnet-4-5", description="文本输出的默认模型"
    )

    # Validation limits
    max_prompt_length: int = Field(default=50000, description="提示词最大长度")
    max_model_id_length: int = Field(default=100, description="模型 ID 最大长度")

    # Persistence
    autosave_debounce_seconds: float = Field(default=1.5, description="自动保存防抖静默期（秒）")
    save_wait_timeout_seconds: float = Field(
        default=5.0, description="删除前等待进行中保存的上限（秒）"
    )
    save_failure_warn_threshold: int = Field(default=3, description="连续保存失败告警阈值")
    save_failure_reminder_interval: int = Field(
        default=10, description="超过阈值后每隔多少次失败再次提醒"
    )

    # History
    max_history_size: int = Field(default=50, description="撤销历史最大条数")


# 全局配置实例
settings = Settings()
