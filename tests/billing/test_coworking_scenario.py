"""共享办公空间业务场景测试。

使用真实的共享办公场景串联整个计费流程：
- 散客按时计费 + 饮料消费 + 分次付款
- 会员订阅后免时长费
- 批量结清欠款
- 升级套餐与到期
"""
from datetime import datetime, timedelta

from database.models import Customer, Subscription


class TestCoworkingScenario:
    """共享办公空间业务场景测试类。"""

    def test_walk_in_day(self, billing, temp_db, customer, desk, coffee, backdate):
        """散客一天：工位 3 小时（封顶）+ 两杯咖啡，分两次付清。"""
        session_id = billing.start_session(customer.id, desk.id)
        billing.add_inventory_consumption(session_id, coffee.id, 1)
        billing.add_inventory_consumption(session_id, coffee.id, 2)
        billing.update_inventory_consumption(session_id, coffee.id, 2)
        backdate(session_id, 180)

        invoice_id = billing.end_session(session_id)
        invoice = billing.invoices.get_invoice(invoice_id)
        assert invoice.total == 5000 + 3000

        billing.process_payment(invoice_id, 5000, "card")
        billing.process_payment(invoice_id, 3000, "cash")

        invoice = billing.invoices.get_invoice(invoice_id)
        assert invoice.status == "paid"
        assert temp_db.customers.get(customer.id).total_spent == 8000
        assert temp_db.inventory_items.get(coffee.id).quantity == 8
        assert temp_db.resources.get(desk.id).is_available is True

    def test_member_month(self, billing, temp_db, base_crud, customer, room,
                          coffee, backdate):
        """会员：订阅月卡，会议室时长免费，只付饮料，月底过期。"""
        sub_id = billing.create_subscription(customer.id, "monthly", 30000)
        sub = base_crud.get_by_id(Subscription, sub_id)
        billing.process_payment(sub.invoice_id, 30000, "transfer")

        session_id = billing.start_session(customer.id, room.id)
        billing.add_inventory_consumption(session_id, coffee.id, 1)
        backdate(session_id, 240)
        invoice_id = billing.end_session(session_id)

        assert billing.invoices.get_invoice(invoice_id).total == 1500
        assert billing.process_bulk_payment([invoice_id], 2000) == 500

        assert billing.expire_subscriptions(now=datetime.now() + timedelta(days=31)) == 1
        assert base_crud.get_by_id(Customer, customer.id).customer_type == "visitor"

    def test_settle_tab_and_upgrade(self, billing, temp_db, make_invoice,
                                    customer, desk, room):
        """散客先欠两张账单，一次结清，再从周卡升级到月卡。"""
        first = make_invoice(customer.id, desk.id, minutes=30)
        second = make_invoice(customer.id, room.id, minutes=30)

        outstanding = billing.invoices.get_outstanding_invoices(customer.id)
        assert [i.id for i in outstanding] == [first, second]

        leftover = billing.process_bulk_payment([i.id for i in outstanding], 4000)
        assert leftover == 0
        assert billing.invoices.get_outstanding_invoices(customer.id) == []

        billing.create_subscription(customer.id, "weekly", 7000)
        billing.upgrade_subscription(customer.id, "monthly", 30000)
        active = billing.subscriptions.get_active_subscription(customer.id)
        assert active.plan_type == "monthly"
        assert temp_db.customers.get(customer.id).customer_type == "monthly"
