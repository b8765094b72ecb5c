"""数据库管理器 —— 统一门面（Facade）。

DatabaseManager 是 database 模块的统一入口，持有唯一的
DatabaseConnection（持久化上下文）并组合所有实体仓库。
计费核心（billing 包）通过它拿到同一个连接，不依赖任何全局数据库句柄。

Example::

    db = DatabaseManager("sqlite:///data/venue.db")
    db.create_tables()

    customer = db.customers.add("Mona", "01000000000")
    desk = db.resources.add("Desk 1", rate_per_hour=2000, daily_cap=5000)
"""
from typing import Optional, Any
from sqlalchemy.orm import Session

from .connection import DatabaseConnection
from .entity_repos import (
    CustomerRepository, ResourceRepository, InventoryItemRepository
)


class DatabaseManager:
    """数据库管理器 —— 统一门面。

    Attributes:
        conn: 数据库连接管理器。
        customers: 顾客仓库。
        resources: 资源仓库。
        inventory_items: 库存商品仓库。
    """

    def __init__(self, database_url: Optional[str] = None,
                 write_timeout: Optional[float] = None) -> None:
        """初始化数据库管理器。

        Args:
            database_url: 数据库连接URL。如果为None则使用settings配置。
            write_timeout: 写入槽位等待时间（秒）。如果为None则使用settings配置。
        """
        # 基础设施层
        self.conn = DatabaseConnection(database_url, write_timeout)

        # 实体仓库
        self.customers = CustomerRepository(self.conn)
        self.resources = ResourceRepository(self.conn)
        self.inventory_items = InventoryItemRepository(self.conn)

    # ================================================================
    # 基础设施方法
    # ================================================================

    def create_tables(self) -> None:
        """创建所有数据库表（幂等操作）。"""
        self.conn.create_tables()

    def get_session(self) -> Session:
        """获取数据库会话。"""
        return self.conn.get_session()

    def transaction(self):
        """获取写入槽位并开启写事务，详见 DatabaseConnection.transaction。"""
        return self.conn.transaction()

    @property
    def database_url(self) -> str:
        """数据库连接URL。"""
        return self.conn.database_url

    @property
    def engine(self):
        """SQLAlchemy 引擎对象。"""
        return self.conn.engine

    def execute_raw_sql(self, sql: str,
                        params: Optional[dict] = None) -> Any:
        """执行原始 SQL 语句。

        注意：应优先使用 ORM 方法，仅在必要时使用原始 SQL。
        """
        return self.conn.execute_raw_sql(sql, params)

    def close(self) -> None:
        """关闭数据库连接，释放所有资源。"""
        self.conn.close()
