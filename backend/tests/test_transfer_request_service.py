"""
Transfer request store tests.

Verifies:
- New requests start pending at revision 0
- The status compare-and-swap succeeds once and reports the current status after
- Listing honours viewer scope, branch and status filters, and pagination
"""

import pytest
from werkzeug.datastructures import MultiDict

from interbranch.errors import RequestAlreadyProcessedError, TransferRequestNotFoundError, ValidationError
from interbranch.services.transfer_request_service import (
    TransferFilter,
    create_transfer_request,
    get_transfer_request,
    list_transfer_requests,
    try_transition,
)


def make_request(seed, source, target, quantity=5, creator=None):
    return create_transfer_request(
        product_id=seed.product,
        source_branch_id=source,
        target_branch_id=target,
        quantity=quantity,
        created_by_user_id=creator or seed.main_admin,
    )


class TestCreateAndGet:

    def test_defaults(self, seed, db_session):
        transfer = make_request(seed, seed.main, seed.sub1, quantity=7)
        db_session.commit()

        loaded = get_transfer_request(transfer.id)
        assert loaded.status == "pending"
        assert loaded.revision == 0
        assert loaded.approved_by_user_id is None
        assert loaded.notes == f"Request to transfer 7 units to branch {seed.sub1}"

    def test_get_unknown(self, seed):
        with pytest.raises(TransferRequestNotFoundError):
            get_transfer_request(4242)


class TestTryTransition:

    def test_approve_records_decider_and_bumps_revision(self, seed, db_session):
        transfer = make_request(seed, seed.main, seed.sub1)
        db_session.commit()

        updated = try_transition(
            transfer.id,
            expected_status="pending",
            new_status="approved",
            actor_user_id=seed.sub1_admin,
            notes="looks good",
        )
        db_session.commit()

        assert updated.status == "approved"
        assert updated.revision == 1
        assert updated.approved_by_user_id == seed.sub1_admin
        assert updated.decided_at is not None
        assert updated.notes == "looks good"

    def test_second_claim_loses(self, seed, db_session):
        transfer = make_request(seed, seed.main, seed.sub1)
        db_session.commit()

        try_transition(transfer.id, expected_status="pending", new_status="rejected", actor_user_id=seed.main_admin)
        db_session.commit()

        with pytest.raises(RequestAlreadyProcessedError) as exc:
            try_transition(transfer.id, expected_status="pending", new_status="approved", actor_user_id=seed.main_admin)

        assert exc.value.current_status == "rejected"
        assert exc.value.status_code == 409

    def test_resend_clears_decider_keeps_notes(self, seed, db_session):
        transfer = make_request(seed, seed.main, seed.sub1)
        db_session.commit()
        try_transition(transfer.id, expected_status="pending", new_status="rejected",
                       actor_user_id=seed.main_admin, notes="not now")
        db_session.commit()

        resent = try_transition(transfer.id, expected_status="rejected", new_status="pending",
                                actor_user_id=seed.main_admin, clear_approver=True)
        db_session.commit()

        assert resent.status == "pending"
        assert resent.revision == 2
        assert resent.approved_by_user_id is None
        assert resent.decided_at is None
        assert resent.notes == "not now"

    def test_unknown_id(self, seed):
        with pytest.raises(TransferRequestNotFoundError):
            try_transition(777, expected_status="pending", new_status="approved", actor_user_id=seed.main_admin)

    @pytest.mark.parametrize("expected,new", [
        ("approved", "pending"),
        ("approved", "rejected"),
        ("pending", "pending"),
    ])
    def test_disallowed_transition(self, seed, expected, new):
        with pytest.raises(ValidationError):
            try_transition(1, expected_status=expected, new_status=new, actor_user_id=seed.main_admin)


class TestList:

    @pytest.fixture
    def requests(self, seed, db_session):
        created = [
            make_request(seed, seed.main, seed.sub1),
            make_request(seed, seed.main, seed.sub2),
            make_request(seed, seed.sub1, seed.sub2, creator=seed.sub1_admin),
            make_request(seed, seed.sub2, seed.main, creator=seed.sub2_manager),
        ]
        db_session.commit()
        try_transition(created[1].id, expected_status="pending", new_status="rejected", actor_user_id=seed.main_admin)
        db_session.commit()
        return [t.id for t in created]

    def test_unscoped_sees_everything_newest_first(self, seed, requests):
        page = list_transfer_requests(TransferFilter())
        assert [t.id for t in page.items] == sorted(requests, reverse=True)
        assert page.total_count == 4

    def test_scope_limits_to_source_or_target(self, seed, requests):
        page = list_transfer_requests(TransferFilter(), scope=frozenset({seed.sub1}))
        assert {t.id for t in page.items} == {requests[0], requests[2]}

    def test_branch_filter_and_status(self, seed, requests):
        page = list_transfer_requests(TransferFilter(branch_id=seed.sub2, status="pending"))
        assert {t.id for t in page.items} == {requests[2], requests[3]}

    def test_branch_filter_intersects_scope(self, seed, requests):
        page = list_transfer_requests(TransferFilter(branch_id=seed.main), scope=frozenset({seed.sub1}))
        assert [t.id for t in page.items] == [requests[0]]

    def test_pagination_metadata(self, seed, requests):
        page = list_transfer_requests(TransferFilter(page=2, limit=3))
        body = page.to_dict()
        assert len(body["transfers"]) == 1
        assert body["pagination"] == {
            "page": 2,
            "limit": 3,
            "total_count": 4,
            "total_pages": 2,
            "has_next": False,
            "has_prev": True,
        }


class TestTransferFilter:

    def test_from_args_defaults(self):
        f = TransferFilter.from_args(MultiDict())
        assert (f.branch_id, f.status, f.page, f.limit) == (None, None, 1, 10)

    def test_from_args_parses(self):
        f = TransferFilter.from_args(MultiDict({"branch_id": "3", "status": "Approved", "page": "2", "limit": "25"}))
        assert (f.branch_id, f.status, f.page, f.limit) == (3, "approved", 2, 25)

    @pytest.mark.parametrize("args", [
        {"status": "failed"},
        {"page": "0"},
        {"page": "100000000000000000000"},
        {"page": str(2 ** 62), "limit": "2"},
        {"limit": "abc"},
        {"limit": "101"},
        {"branch_id": "1.5"},
    ])
    def test_from_args_rejects(self, args):
        with pytest.raises(ValidationError):
            TransferFilter.from_args(MultiDict(args))
