"""
CLI bootstrap tests.
"""

from warehouse.models import Product, Profile, Supplier


class TestSystemCommands:

    def test_init_creates_admin_once(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["system", "init"])
        assert "Created admin" in result.output

        result = runner.invoke(args=["system", "init"])
        assert "already exists" in result.output
        assert db_session.query(Profile).filter_by(role="admin").count() == 1

    def test_seed_sample_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()
        runner.invoke(args=["system", "seed-sample"])
        runner.invoke(args=["system", "seed-sample"])

        assert db_session.query(Supplier).count() == 4
        assert db_session.query(Product).count() == 4
        pipes = db_session.query(Product).filter_by(sku="SP-002").one()
        assert (pipes.quantity, pipes.stock_alert) == (25, 30)
        assert pipes.supplier.name == "Steel Works Inc"


class TestUserCommands:

    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create",
            "--username", "jane",
            "--email", "jane@warehouse.test",
            "--password", "Password123!",
            "--role", "staff",
        ])
        assert "Created user: jane" in result.output

        result = runner.invoke(args=["users", "list"])
        assert "jane@warehouse.test" in result.output

    def test_short_password_rejected(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create",
            "--username", "jane",
            "--email", "jane@warehouse.test",
            "--password", "short",
            "--role", "staff",
        ])
        assert "Password validation failed" in result.output
        assert db_session.query(Profile).count() == 0
