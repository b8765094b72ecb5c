"""全局配置管理

所有用户可配置项均通过 .env 文件设置，运行时自动加载到此处。

使用方式：
    1. 运行 python scripts/setup_env.py 生成 .env 文件
    2. 或手动创建 .env 文件
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用配置 - 所有字段均可通过 .env 或环境变量覆盖"""

    # ========== 数据库 ==========
    database_url: str = "sqlite:///data/venue.db"
    # 获取写入槽位的最长等待时间（秒），超时抛出 DatabaseBusyError
    write_timeout_seconds: float = 5.0

    # ========== 账单 ==========
    invoice_due_days: int = 7

    # ========== 定时任务 ==========
    expiry_check_hour: int = 0
    expiry_check_minute: int = 5

    # ========== 日志 ==========
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# 全局配置实例
settings = Settings()
