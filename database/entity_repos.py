"""实体仓库 —— 基础实体的数据访问层。

管理场馆的基础实体（顾客、资源、库存商品）。字段校验由调用方负责，
这里只做持久化与查询。

每个仓库继承 BaseCRUD 获得通用能力，并添加领域特定的查询方法。
删除一律为归档（软删除），核心查询默认过滤已归档记录。
"""
from datetime import datetime
from typing import Optional, List
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import Customer, Resource, InventoryItem


class CustomerRepository(BaseCRUD):
    """顾客 仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def add(self, name: str, phone: str = "",
            notes: Optional[str] = None,
            session: Optional[Session] = None) -> Customer:
        """新增顾客。

        Args:
            name: 顾客姓名。
            phone: 联系电话。
            notes: 备注（可选）。

        Returns:
            新建的 Customer 对象。
        """
        return self.create(
            Customer(name=name, phone=phone, notes=notes), session=session
        )

    def get(self, customer_id: int,
            session: Optional[Session] = None) -> Optional[Customer]:
        return self.get_by_id(Customer, customer_id, session=session)

    def search(self, keyword: str,
               session: Optional[Session] = None) -> List[Customer]:
        """按姓名或电话搜索顾客。

        Args:
            keyword: 搜索关键词。

        Returns:
            匹配的顾客列表（不含已归档）。
        """
        def _query(sess):
            return sess.query(Customer).filter(
                or_(
                    Customer.name.contains(keyword),
                    Customer.phone.contains(keyword)
                ),
                Customer.archived_at.is_(None)
            ).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def archive(self, customer_id: int,
                session: Optional[Session] = None) -> Optional[Customer]:
        """归档顾客。"""
        return self.update_by_id(
            Customer, customer_id, session=session, archived_at=datetime.now()
        )


class ResourceRepository(BaseCRUD):
    """资源 仓库。

    管理可计时资源：
    - 座位：开放区散座
    - 工位：固定办公桌
    - 房间：会议室、独立办公室

    ``is_available`` 只由时段生命周期修改，这里不提供直接修改入口。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def add(self, name: str, rate_per_hour: int,
            resource_type: str = "seat",
            daily_cap: Optional[int] = None,
            session: Optional[Session] = None) -> Resource:
        """新增资源。

        Args:
            name: 资源名称。
            rate_per_hour: 每小时费率（最小货币单位）。
            resource_type: seat / room / desk。
            daily_cap: 单次费用封顶，可选。

        Returns:
            新建的 Resource 对象。
        """
        return self.create(
            Resource(
                name=name, rate_per_hour=rate_per_hour,
                resource_type=resource_type, daily_cap=daily_cap,
                is_available=True
            ),
            session=session
        )

    def get(self, resource_id: int,
            session: Optional[Session] = None) -> Optional[Resource]:
        return self.get_by_id(Resource, resource_id, session=session)

    def update_pricing(self, resource_id: int, rate_per_hour: int,
                       daily_cap: Optional[int] = None,
                       session: Optional[Session] = None) -> Optional[Resource]:
        """修改资源价格，不影响进行中的时段（时段已快照费率）。"""
        return self.update_by_id(
            Resource, resource_id, session=session,
            rate_per_hour=rate_per_hour, daily_cap=daily_cap
        )

    def get_available(self,
                      session: Optional[Session] = None) -> List[Resource]:
        """获取所有空闲资源。"""
        return self.get_all(
            Resource, filters={"is_available": True}, session=session
        )

    def archive(self, resource_id: int,
                session: Optional[Session] = None) -> Optional[Resource]:
        """归档资源。"""
        return self.update_by_id(
            Resource, resource_id, session=session, archived_at=datetime.now()
        )


class InventoryItemRepository(BaseCRUD):
    """库存商品 仓库（目录维护）。

    库存数量的变动由 billing.inventory_ledger.InventoryLedger 负责。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def add(self, name: str, price: int, quantity: int = 0,
            category: str = "other", min_stock: int = 0,
            session: Optional[Session] = None) -> InventoryItem:
        """新增库存商品。

        Args:
            name: 商品名称。
            price: 单价（最小货币单位）。
            quantity: 初始库存。
            category: beverage / snack / other。
            min_stock: 低库存阈值。

        Returns:
            新建的 InventoryItem 对象。
        """
        return self.create(
            InventoryItem(
                name=name, price=price, quantity=quantity,
                category=category, min_stock=min_stock
            ),
            session=session
        )

    def get(self, item_id: int,
            session: Optional[Session] = None) -> Optional[InventoryItem]:
        return self.get_by_id(InventoryItem, item_id, session=session)

    def update_price(self, item_id: int, price: int,
                     session: Optional[Session] = None) -> Optional[InventoryItem]:
        """修改商品单价，已有消耗记录保留原价快照。"""
        return self.update_by_id(
            InventoryItem, item_id, session=session, price=price
        )

    def archive(self, item_id: int,
                session: Optional[Session] = None) -> Optional[InventoryItem]:
        """归档商品。"""
        return self.update_by_id(
            InventoryItem, item_id, session=session, archived_at=datetime.now()
        )
