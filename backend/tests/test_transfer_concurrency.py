# Overview: Threaded tests for at-most-one decision and non-negative stock.

"""
Concurrency tests for the transfer workflow.

Runs against a temp-file SQLite database so each worker thread gets its own
connection and the database arbitrates between writers.
"""
import os
import tempfile
import threading
import unittest

from interbranch import create_app
from interbranch.extensions import db
from interbranch.errors import InsufficientStockError, RequestAlreadyProcessedError
from interbranch.models import Branch, Product, TransferRequest, User, UserBranchAssignment
from interbranch.services import transfer_service
from interbranch.services.stock_ledger_service import get_quantity_on_hand, set_stock_level


class TransferConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "DB_RETRY_ATTEMPTS": 10,
            "DB_RETRY_BACKOFF_SECONDS": 0.01,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            main = Branch(name="Main", type="main")
            sub = Branch(name="Sub", type="sub")
            db.session.add_all([main, sub])
            db.session.flush()
            self.main_id = main.id
            self.sub_id = sub.id

            self.deciders = []
            for name, branch_id, role, main_admin in [
                ("creator", self.main_id, "admin", True),
                ("main_manager", self.main_id, "manager", False),
                ("main_staff", self.main_id, "staff", False),
                ("sub_admin", self.sub_id, "admin", False),
                ("sub_manager", self.sub_id, "manager", False),
            ]:
                user = User(name=name, email=f"{name}@example.com")
                db.session.add(user)
                db.session.flush()
                db.session.add(UserBranchAssignment(
                    user_id=user.id, branch_id=branch_id, role=role, is_main_admin=main_admin,
                ))
                self.deciders.append(user.id)
            self.creator_id = self.deciders[0]

            product = Product(sku="CONCUR-1", name="Concurrent Product")
            db.session.add(product)
            db.session.flush()
            self.product_id = product.id

            set_stock_level(self.product_id, self.main_id, 100)
            db.session.commit()

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _create(self, quantity):
        with self.app.app_context():
            try:
                return transfer_service.create_transfer(
                    user_id=self.creator_id,
                    product_id=self.product_id,
                    source_branch_id=self.main_id,
                    target_branch_id=self.sub_id,
                    quantity=quantity,
                ).id
            finally:
                db.session.remove()

    def _race(self, calls):
        """Run (func, user_id, request_id) calls at once; returns results in call order."""
        results = [None] * len(calls)
        barrier = threading.Barrier(len(calls))

        def worker(index, func, user_id, request_id):
            with self.app.app_context():
                try:
                    barrier.wait()
                    transfer = func(user_id, request_id)
                    results[index] = transfer.status
                except Exception as exc:
                    results[index] = exc
                finally:
                    db.session.remove()

        threads = [
            threading.Thread(target=worker, args=(i, func, user_id, request_id))
            for i, (func, user_id, request_id) in enumerate(calls)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def _stock(self, branch_id):
        with self.app.app_context():
            try:
                return get_quantity_on_hand(self.product_id, branch_id)
            finally:
                db.session.remove()

    def _status(self, request_id):
        with self.app.app_context():
            try:
                return db.session.get(TransferRequest, request_id).status
            finally:
                db.session.remove()

    def test_approve_and_reject_race(self):
        request_id = self._create(30)

        results = self._race([
            (transfer_service.approve_transfer, self.deciders[3], request_id),
            (transfer_service.reject_transfer, self.deciders[1], request_id),
        ])

        successes = [r for r in results if isinstance(r, str)]
        conflicts = [r for r in results if isinstance(r, RequestAlreadyProcessedError)]
        self.assertEqual(len(successes), 1, results)
        self.assertEqual(len(conflicts), 1, results)

        final = self._status(request_id)
        self.assertEqual(final, successes[0])
        if final == "approved":
            self.assertEqual(self._stock(self.main_id), 70)
            self.assertEqual(self._stock(self.sub_id), 30)
        else:
            self.assertEqual(self._stock(self.main_id), 100)
            self.assertEqual(self._stock(self.sub_id), 0)

    def test_many_approvals_move_stock_once(self):
        request_id = self._create(40)

        results = self._race([
            (transfer_service.approve_transfer, user_id, request_id)
            for user_id in self.deciders
        ])

        self.assertEqual(results.count("approved"), 1, results)
        self.assertTrue(all(
            isinstance(r, RequestAlreadyProcessedError) for r in results if r != "approved"
        ), results)
        self.assertEqual(self._stock(self.main_id), 60)
        self.assertEqual(self._stock(self.sub_id), 40)

    def test_competing_requests_never_overdraw(self):
        first = self._create(60)
        second = self._create(60)

        results = self._race([
            (transfer_service.approve_transfer, self.deciders[3], first),
            (transfer_service.approve_transfer, self.deciders[4], second),
        ])

        self.assertEqual(results.count("approved"), 1, results)
        self.assertTrue(any(isinstance(r, InsufficientStockError) for r in results), results)
        self.assertEqual(self._stock(self.main_id), 40)
        self.assertEqual(self._stock(self.sub_id), 60)

        statuses = sorted([self._status(first), self._status(second)])
        self.assertEqual(statuses, ["approved", "pending"])


if __name__ == "__main__":
    unittest.main()
