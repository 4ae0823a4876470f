"""
Store tests for products, suppliers and users.

Verifies:
- Mutations write through the gateway and mirror the returned row locally
- Subscribers see one new snapshot per successful mutation
- Rejected input never reaches the backend and leaves the snapshot alone
- Unknown ids raise NotFoundError with a destructive toast
"""

import pytest

from warehouse.models import Product as ProductRow, Profile as ProfileRow, Supplier as SupplierRow
from warehouse.services.gateway import GatewayError, RemoteDataGateway
from warehouse.services.store import NotFoundError, RemoteOperationError, WarehouseStore
from warehouse.validation import ValidationError


# =============================================================================
# PRODUCTS
# =============================================================================


class TestProducts:

    def test_add_product_persists_and_prepends(self, store, db_session, bearings):
        helmets = store.add_product({"name": "Safety Helmets", "quantity": 75, "stock_alert": 20})

        assert store.products[0].id == helmets.id
        assert store.products[1].id == bearings.id
        assert db_session.get(ProductRow, helmets.id).quantity == 75

    def test_add_product_toast(self, store, bearings):
        note = store.notifications.last
        assert note.title == "Product Added"
        assert note.description == "Industrial Bearings has been added to inventory."
        assert not note.is_error

    def test_add_product_defaults(self, store):
        product = store.add_product({"name": "Gloves"})
        assert product.quantity == 0
        assert product.stock_alert == 10
        assert product.unit == "pieces"

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "Bad", "quantity": -1},
            {"name": "Bad", "stock_alert": -5},
            {"name": "Bad", "quantity": 2.5},
            {"name": ""},
            {"sku": "NO-NAME"},
            {"name": "Bad", "price": 10},
        ],
    )
    def test_invalid_product_rejected_before_backend(self, store, db_session, payload):
        before = store.snapshot
        with pytest.raises(ValidationError):
            store.add_product(payload)

        assert store.snapshot is before
        assert db_session.query(ProductRow).count() == 0
        assert store.notifications.last.title == "Invalid Input"
        assert store.notifications.last.is_error

    def test_update_product_replaces_local_record(self, store, steel_pipes):
        updated = store.update_product(steel_pipes.id, {"stock_alert": 20, "category": "Piping"})

        assert updated.stock_alert == 20
        assert store.get_product(steel_pipes.id) == updated
        assert store.notifications.last.title == "Product Updated"

    def test_update_unknown_product_raises(self, store):
        with pytest.raises(NotFoundError):
            store.update_product("missing", {"name": "x"})
        assert store.notifications.last.title == "Not Found"

    def test_delete_product_keeps_ledger_history(self, store, db_session, steel_pipes):
        receipt = store.add_stock_receipt({
            "product_id": steel_pipes.id,
            "supplier_name": "Steel Works Inc",
            "quantity": 5,
        })

        store.delete_product(steel_pipes.id)

        assert store.get_product(steel_pipes.id) is None
        assert db_session.get(ProductRow, steel_pipes.id) is None
        assert store.get_stock_receipts()[0].id == receipt.id
        assert store.get_stock_receipts()[0].product_name == "Steel Pipes (2m)"
        assert store.notifications.last.description == "Steel Pipes (2m) has been removed from inventory."

    def test_delete_unknown_product_raises(self, store):
        with pytest.raises(NotFoundError):
            store.delete_product("missing")

    def test_low_stock_boundary_is_inclusive(self, store):
        at_alert = store.add_product({"name": "A", "quantity": 10, "stock_alert": 10})
        above = store.add_product({"name": "B", "quantity": 11, "stock_alert": 10})

        low_ids = {p.id for p in store.get_low_stock_products()}
        assert at_alert.id in low_ids
        assert above.id not in low_ids


# =============================================================================
# OBSERVERS / LOADING
# =============================================================================


class TestSnapshot:

    def test_subscriber_sees_each_commit(self, store):
        seen = []
        unsubscribe = store.subscribe(seen.append)

        store.add_product({"name": "A"})
        store.add_supplier({"name": "Acme"})
        unsubscribe()
        store.add_product({"name": "B"})

        assert len(seen) == 2
        assert seen[-1].suppliers[0].name == "Acme"

    def test_rejected_mutation_does_not_notify(self, store):
        seen = []
        store.subscribe(seen.append)
        with pytest.raises(ValidationError):
            store.add_product({"name": "A", "quantity": -3})
        assert seen == []

    def test_refresh_reads_every_collection(self, db_session, store, steel_pipes, admin_profile):
        fresh = WarehouseStore(RemoteDataGateway())
        assert not fresh.loaded

        snapshot = fresh.refresh_data()

        assert fresh.loaded
        assert [p.id for p in snapshot.products] == [steel_pipes.id]
        assert [u.username for u in snapshot.users] == ["admin"]

    def test_refresh_failure_leaves_snapshot(self, store, steel_pipes, monkeypatch):
        before = store.snapshot

        def broken(collection):
            raise GatewayError("connection refused", action=f"fetch {collection}")

        monkeypatch.setattr(store._gateway, "fetch_all", broken)
        with pytest.raises(RemoteOperationError):
            store.refresh_data()

        assert store.snapshot is before
        assert store.notifications.last.description == "connection refused"
        assert store.notifications.last.is_error
        assert store.loading is False


# =============================================================================
# SUPPLIERS
# =============================================================================


class TestSuppliers:

    def test_supplier_crud(self, store, db_session):
        supplier = store.add_supplier({"name": "TechParts Ltd", "email": "orders@techparts.com"})
        assert store.notifications.last.title == "Supplier Added"

        updated = store.update_supplier(supplier.id, {"phone": "+1-555-0123"})
        assert updated.phone == "+1-555-0123"
        assert store.get_supplier(supplier.id).phone == "+1-555-0123"

        store.delete_supplier(supplier.id)
        assert store.get_supplier(supplier.id) is None
        assert db_session.get(SupplierRow, supplier.id) is None
        assert store.notifications.last.title == "Supplier Deleted"

    def test_delete_supplier_unlinks_products(self, store, db_session):
        supplier = store.add_supplier({"name": "Steel Works Inc"})
        product = store.add_product({"name": "Steel Pipes", "supplier_id": supplier.id})

        store.delete_supplier(supplier.id)

        assert store.get_product(product.id).supplier_id is None
        assert db_session.get(ProductRow, product.id).supplier_id is None

    def test_update_unknown_supplier_raises(self, store):
        with pytest.raises(NotFoundError):
            store.update_supplier("missing", {"name": "x"})


# =============================================================================
# USERS
# =============================================================================


class TestUsers:

    def test_update_user_syncs_current_user(self, store, admin_profile):
        store.refresh_data()
        store.current_user = store.get_user(admin_profile.id)

        store.update_user(admin_profile.id, {"username": "chief"})

        assert store.current_user.username == "chief"
        assert store.get_user(admin_profile.id).username == "chief"

    def test_unknown_role_rejected(self, store, staff_profile):
        store.refresh_data()
        with pytest.raises(ValidationError):
            store.update_user(staff_profile.id, {"role": "manager"})
        assert store.get_user(staff_profile.id).role == "staff"

    def test_delete_user_removes_profile_only(self, store, db_session, staff_profile):
        store.refresh_data()
        store.delete_user(staff_profile.id)

        assert store.get_user(staff_profile.id) is None
        assert db_session.query(ProfileRow).count() == 0
        assert store.notifications.last.title == "User Deleted"

    def test_delete_unknown_user_raises(self, store):
        with pytest.raises(NotFoundError):
            store.delete_user("missing")
