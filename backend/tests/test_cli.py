"""
CLI command tests.
"""

from interbranch.models import Branch, InventoryRecord, TransferRequest, User, UserBranchAssignment
from interbranch.services.stock_ledger_service import get_quantity_on_hand


class TestBootstrapCommands:

    def test_seed_demo_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "seed-demo"])
        assert first.exit_code == 0, first.output
        assert "DONE Demo data ready." in first.output

        second = runner.invoke(args=["system", "seed-demo"])
        assert second.exit_code == 0, second.output
        assert "already exists, skipping" in second.output

        assert db_session.query(Branch).count() == 3
        assert db_session.query(User).count() == 6
        assert db_session.query(Branch).filter_by(type="main").count() == 1

    def test_branch_and_user_commands(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["branches", "create", "--name", "North", "--type", "sub", "--code", "N1"])
        assert "PASS Created branch: North" in result.output
        result = runner.invoke(args=["branches", "create", "--name", "North"])
        assert "FAIL Branch 'North' already exists" in result.output

        result = runner.invoke(args=["users", "create", "--name", "Ana", "--email", "ana@example.com"])
        assert "PASS Created user: Ana" in result.output

        branch = db_session.query(Branch).filter_by(name="North").one()
        user = db_session.query(User).filter_by(email="ana@example.com").one()

        result = runner.invoke(args=[
            "users", "assign", "--user-id", str(user.id), "--branch-id", str(branch.id), "--role", "manager",
        ])
        assert "PASS Assigned Ana as manager at North" in result.output
        assignment = db_session.query(UserBranchAssignment).filter_by(user_id=user.id).one()
        assert assignment.role == "manager"

        listing = runner.invoke(args=["branches", "list"])
        assert "North" in listing.output

    def test_reset_db_requires_confirmation(self, app, seed, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["system", "reset-db"], input="n\n")
        assert result.exit_code != 0
        assert db_session.query(Branch).count() == 3


class TestInventoryCommands:

    def test_set_and_show(self, app, seed, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "inventory", "set", "--product-id", str(seed.product), "--branch-id", str(seed.sub2),
            "--quantity", "4", "--min-stock", "6",
        ])
        assert "PASS" in result.output
        assert get_quantity_on_hand(seed.product, seed.sub2) == 4

        show = runner.invoke(args=["inventory", "show", "--product-id", str(seed.product)])
        assert "Sub Branch 2" in show.output
        assert "Total: 134" in show.output

    def test_set_negative_fails(self, app, seed, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "inventory", "set", "--product-id", str(seed.product), "--branch-id", str(seed.main),
            "--quantity=-1",
        ])
        assert "FAIL" in result.output
        assert db_session.query(InventoryRecord).filter_by(branch_id=seed.main).one().quantity == 100


class TestTransferCommands:

    def _create(self, app, seed):
        from interbranch.services import transfer_service
        return transfer_service.create_transfer(
            user_id=seed.main_admin,
            product_id=seed.product,
            source_branch_id=seed.main,
            target_branch_id=seed.sub1,
            quantity=25,
        ).id

    def test_decide_approves_through_workflow(self, app, seed, db_session):
        request_id = self._create(app, seed)
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "transfers", "decide", "--id", str(request_id), "--user-id", str(seed.sub1_admin), "--action", "approve",
        ])
        assert f"PASS Transfer request {request_id} is now approved" in result.output
        assert get_quantity_on_hand(seed.product, seed.main) == 75

        listing = runner.invoke(args=["transfers", "list", "--status", "approved"])
        assert "approved" in listing.output

    def test_decide_reports_denial(self, app, seed, db_session):
        request_id = self._create(app, seed)
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "transfers", "decide", "--id", str(request_id), "--user-id", str(seed.sub2_manager), "--action", "approve",
        ])
        assert "FAIL User must be at the target branch" in result.output
        assert db_session.get(TransferRequest, request_id).status == "pending"
