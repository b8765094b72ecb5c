"""BaseCRUD and entity repository tests.

- BaseCRUD: get_by_id / get_all / count / update_by_id, archive filtering
- CustomerRepository / ResourceRepository / InventoryItemRepository
"""
import pytest

from database.models import Customer, Resource


class TestBaseCRUD:
    """Tests for BaseCRUD."""

    def test_create_and_get(self, base_crud):
        c = base_crud.create(Customer(name="Nour", phone="0100"))
        assert c.id > 0
        assert base_crud.get_by_id(Customer, c.id).name == "Nour"

    def test_get_missing(self, base_crud):
        assert base_crud.get_by_id(Customer, 99999) is None

    def test_update_only_named_fields(self, temp_db, base_crud):
        c = temp_db.customers.add("Nour", "0100", notes="keep me")
        base_crud.update_by_id(Customer, c.id, phone="0199")

        updated = base_crud.get_by_id(Customer, c.id)
        assert updated.phone == "0199"
        assert updated.notes == "keep me"
        assert updated.name == "Nour"

    def test_update_unknown_column(self, temp_db, base_crud):
        c = temp_db.customers.add("Nour")
        with pytest.raises(AttributeError):
            base_crud.update_by_id(Customer, c.id, nickname="N")

    def test_update_missing_record(self, base_crud):
        assert base_crud.update_by_id(Customer, 99999, name="Ghost") is None

    def test_archived_records_hidden(self, temp_db, base_crud):
        kept = temp_db.customers.add("Kept")
        gone = temp_db.customers.add("Gone")
        temp_db.customers.archive(gone.id)

        assert base_crud.get_by_id(Customer, gone.id) is None
        assert base_crud.get_by_id(Customer, gone.id, include_archived=True) is not None
        assert [c.id for c in base_crud.get_all(Customer)] == [kept.id]
        assert len(base_crud.get_all(Customer, include_archived=True)) == 2

    def test_with_external_session(self, temp_db, base_crud):
        with temp_db.transaction() as session:
            c = base_crud.create(Customer(name="InTx", phone=""), session=session)
            assert base_crud.get_by_id(Customer, c.id, session=session) is not None
        assert base_crud.count(Customer) == 1


class TestCustomerRepository:
    """Tests for CustomerRepository."""

    def test_defaults(self, temp_db):
        c = temp_db.customers.add("Mona")
        assert c.customer_type == "visitor"
        assert c.balance == 0
        assert c.total_spent == 0

    def test_search_by_name_or_phone(self, temp_db):
        temp_db.customers.add("Mona Adel", "01011112222")
        temp_db.customers.add("Karim", "01233334444")

        assert [c.name for c in temp_db.customers.search("Mona")] == ["Mona Adel"]
        assert [c.name for c in temp_db.customers.search("3333")] == ["Karim"]
        assert temp_db.customers.search("nobody") == []

    def test_search_skips_archived(self, temp_db):
        c = temp_db.customers.add("Hidden")
        temp_db.customers.archive(c.id)
        assert temp_db.customers.search("Hidden") == []


class TestResourceRepository:
    """Tests for ResourceRepository."""

    def test_add(self, temp_db):
        r = temp_db.resources.add("Seat 4", rate_per_hour=1000)
        assert r.is_available is True
        assert r.resource_type == "seat"
        assert r.daily_cap is None

    def test_get_available(self, billing, temp_db, customer, desk, room):
        billing.start_session(customer.id, desk.id)
        assert [r.id for r in temp_db.resources.get_available()] == [room.id]

    def test_update_pricing(self, temp_db, desk):
        temp_db.resources.update_pricing(desk.id, rate_per_hour=2500, daily_cap=6000)
        r = temp_db.resources.get(desk.id)
        assert (r.rate_per_hour, r.daily_cap) == (2500, 6000)

    def test_archive(self, temp_db, base_crud, desk):
        temp_db.resources.archive(desk.id)
        assert temp_db.resources.get(desk.id) is None
        assert base_crud.get_by_id(Resource, desk.id, include_archived=True) is not None


class TestInventoryItemRepository:
    """Tests for InventoryItemRepository."""

    def test_add_and_update_price(self, temp_db):
        item = temp_db.inventory_items.add("Water", price=500, quantity=24)
        temp_db.inventory_items.update_price(item.id, 600)

        stored = temp_db.inventory_items.get(item.id)
        assert stored.price == 600
        assert stored.quantity == 24

    def test_archive(self, temp_db, coffee):
        temp_db.inventory_items.archive(coffee.id)
        assert temp_db.inventory_items.get(coffee.id) is None
