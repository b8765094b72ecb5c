"""数据库连接与基础设施管理。

本模块负责数据库的底层基础设施，包括：
- 数据库引擎创建（SQLite 连接参数调优）
- 会话（Session）管理
- 单写入者事务（写入槽位）
- 数据库表创建

本模块不包含任何业务逻辑，仅提供数据库基础操作。
"""
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Any, Iterator
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from loguru import logger

from .models import Base
from config.settings import settings


class DatabaseBusyError(RuntimeError):
    """在限定时间内未能获取写入槽位。"""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(
            f"Database is busy: could not acquire the write slot within {timeout}s"
        )


class DatabaseConnection:
    """数据库连接管理器。

    负责数据库引擎的创建、会话管理和写事务的串行化。
    所有修改操作都必须通过 :meth:`transaction` 执行：同一时刻只有一个写事务，
    读取可以通过 :meth:`get_session` 并发进行。

    Attributes:
        database_url: 数据库连接URL。
        engine: SQLAlchemy引擎对象。
        SessionLocal: 会话工厂。
        write_timeout: 获取写入槽位的最长等待时间（秒）。

    Example:
        ```python
        conn = DatabaseConnection("sqlite:///data/venue.db")

        with conn.transaction() as session:
            session.add(customer)
        ```
    """

    def __init__(self, database_url: Optional[str] = None,
                 write_timeout: Optional[float] = None) -> None:
        """初始化数据库连接。

        Args:
            database_url: 数据库连接URL，如果为None则使用settings中的配置。
            write_timeout: 写入槽位等待时间，如果为None则使用settings中的配置。
        """
        self.database_url: str = database_url or settings.database_url
        self.write_timeout: float = (
            write_timeout if write_timeout is not None
            else settings.write_timeout_seconds
        )
        self._write_lock = threading.Lock()

        if self.database_url.startswith("sqlite"):
            self._ensure_sqlite_dir()
            self.engine = create_engine(
                self.database_url,
                echo=False,
                connect_args={
                    "check_same_thread": False,
                    "timeout": self.write_timeout,
                }
            )
            self._configure_sqlite()
        else:
            self.engine = create_engine(
                self.database_url, echo=False, pool_pre_ping=True
            )

        self.SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False,
            expire_on_commit=False
        )

    def _ensure_sqlite_dir(self) -> None:
        """确保 SQLite 数据库文件所在目录存在。"""
        path = make_url(self.database_url).database
        if path and path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)

    def _configure_sqlite(self) -> None:
        """为每个新的 SQLite 连接设置 PRAGMA。

        - foreign_keys=ON：启用外键约束
        - busy_timeout：跨进程写锁等待
        - journal_mode=WAL：文件数据库读写互不阻塞
        """
        busy_timeout_ms = int(self.write_timeout * 1000)
        in_memory = ":memory:" in self.database_url or self.database_url == "sqlite://"

        @event.listens_for(self.engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms}")
            if not in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    def create_tables(self) -> None:
        """创建所有数据库表。

        根据 models.py 中定义的所有模型创建对应的数据库表。
        如果表已存在则不会重复创建（幂等操作）。
        """
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """获取数据库会话（只读查询使用）。"""
        return self.SessionLocal()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """获取写入槽位并开启一个写事务。

        成功时提交；任何异常都会回滚并原样抛出，不会出现部分提交。

        Yields:
            事务内使用的数据库会话。

        Raises:
            DatabaseBusyError: 在 write_timeout 内未获取到写入槽位。
        """
        if not self._write_lock.acquire(timeout=self.write_timeout):
            logger.warning(f"Write slot not acquired within {self.write_timeout}s")
            raise DatabaseBusyError(self.write_timeout)
        try:
            session = self.SessionLocal()
            try:
                yield session
                session.commit()
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()
        finally:
            self._write_lock.release()

    def execute_raw_sql(self, sql: str, params: Optional[dict] = None) -> Any:
        """执行原始SQL语句。

        注意：此方法应谨慎使用，建议优先使用ORM方法。

        Args:
            sql: SQL语句字符串。
            params: SQL参数字典（可选）。

        Returns:
            查询语句返回全部行，其他语句返回受影响行数。
        """
        with self.transaction() as session:
            result = session.execute(text(sql), params or {})
            if result.returns_rows:
                return result.fetchall()
            return result.rowcount

    def close(self) -> None:
        """关闭数据库连接，释放引擎资源。"""
        if self.engine is not None:
            self.engine.dispose()
