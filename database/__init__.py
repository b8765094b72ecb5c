"""数据库模块 - 持久化上下文、ORM 模型与实体仓库"""
from database.connection import DatabaseConnection, DatabaseBusyError
from database.manager import DatabaseManager

__all__ = [
    "DatabaseConnection",
    "DatabaseBusyError",
    "DatabaseManager",
]
