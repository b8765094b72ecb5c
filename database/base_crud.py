"""通用 CRUD 基类。

为各仓库与业务组件提供通用的数据库访问能力：
- 会话获取与事务复用（外部会话 / 新写事务）
- 按ID查询、条件查询、计数
- 按字段名显式更新（只修改调用方点名的列）

不包含任何业务逻辑。
"""
from typing import Optional, List, Dict, Any, Callable, Type, TypeVar
from sqlalchemy.orm import Session

from .connection import DatabaseConnection

T = TypeVar("T")


class BaseCRUD:
    """通用 CRUD 基类。

    所有写方法都接受可选的 ``session`` 参数：
    传入时在调用方的事务中执行（不提交）；
    不传时自行获取写入槽位并在独立事务中执行。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        self.conn = conn

    def _get_session(self) -> Session:
        """获取只读会话。"""
        return self.conn.get_session()

    def _run(self, work: Callable[[Session], T],
             session: Optional[Session] = None) -> T:
        """在外部会话或新的写事务中执行 work。"""
        if session is not None:
            return work(session)
        with self.conn.transaction() as sess:
            return work(sess)

    @staticmethod
    def _not_archived(model: Type[Any], query):
        if hasattr(model, "archived_at"):
            return query.filter(model.archived_at.is_(None))
        return query

    def get_by_id(self, model: Type[T], record_id: int,
                  session: Optional[Session] = None,
                  include_archived: bool = False) -> Optional[T]:
        """按ID获取记录。

        Args:
            model: ORM 模型类。
            record_id: 记录ID。
            session: 外部会话（可选）。
            include_archived: 是否包含已归档记录，默认不包含。

        Returns:
            记录对象，不存在返回 None。
        """
        def _query(sess):
            query = sess.query(model).filter(model.id == record_id)
            if not include_archived:
                query = self._not_archived(model, query)
            return query.first()

        if session is not None:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_all(self, model: Type[T],
                filters: Optional[Dict[str, Any]] = None,
                session: Optional[Session] = None,
                include_archived: bool = False) -> List[T]:
        """按等值条件获取记录列表（按ID升序）。

        Args:
            model: ORM 模型类。
            filters: 字段名到值的等值过滤条件。
            session: 外部会话（可选）。
            include_archived: 是否包含已归档记录。

        Returns:
            记录列表。
        """
        def _query(sess):
            query = sess.query(model)
            if filters:
                query = query.filter_by(**filters)
            if not include_archived:
                query = self._not_archived(model, query)
            return query.order_by(model.id).all()

        if session is not None:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def count(self, model: Type[Any],
              filters: Optional[Dict[str, Any]] = None,
              session: Optional[Session] = None) -> int:
        """按等值条件计数。"""
        def _query(sess):
            query = sess.query(model)
            if filters:
                query = query.filter_by(**filters)
            return query.count()

        if session is not None:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def create(self, instance: T, session: Optional[Session] = None) -> T:
        """插入一条记录并返回（已分配ID）。"""
        def _do(sess):
            sess.add(instance)
            sess.flush()
            sess.refresh(instance)
            return instance

        return self._run(_do, session)

    def update_by_id(self, model: Type[T], record_id: int,
                     session: Optional[Session] = None,
                     **fields: Any) -> Optional[T]:
        """按ID更新指定字段。

        只修改 ``fields`` 中点名的列，不会用默认值覆盖其他列。

        Args:
            model: ORM 模型类。
            record_id: 记录ID。
            session: 外部会话（可选）。
            **fields: 要更新的字段名和值。

        Returns:
            更新后的记录对象，不存在返回 None。
        """
        def _do(sess):
            record = sess.query(model).filter(model.id == record_id).first()
            if record is None:
                return None
            for name, value in fields.items():
                if not hasattr(model, name):
                    raise AttributeError(
                        f"{model.__name__} has no column '{name}'"
                    )
                setattr(record, name, value)
            sess.flush()
            return record

        return self._run(_do, session)
