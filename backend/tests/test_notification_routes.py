"""
Notification inbox, branch feed and delete API tests.
"""

from interbranch.models import Notification


def create_main_to_sub1(client, seed):
    resp = client.post("/api/transfers", json={
        "user_id": seed.main_admin,
        "product_id": seed.product,
        "source_branch_id": seed.main,
        "target_branch_id": seed.sub1,
        "quantity": 10,
    })
    assert resp.status_code == 201
    return resp.get_json()["id"]


class TestInbox:

    def test_lists_own_notifications(self, client, seed):
        request_id = create_main_to_sub1(client, seed)

        resp = client.get(f"/api/notifications?user_id={seed.sub1_staff}")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["pagination"]["total_count"] == 1
        note = body["notifications"][0]
        assert note["title"] == "New Stock Request from Main Branch"
        assert note["data"]["transfer_request_id"] == request_id
        assert note["is_read"] is False

    def test_empty_for_uninvolved_branch(self, client, seed):
        create_main_to_sub1(client, seed)
        resp = client.get(f"/api/notifications?user_id={seed.sub2_manager}")
        assert resp.get_json()["notifications"] == []

    def test_bad_is_read(self, client, seed):
        resp = client.get(f"/api/notifications?user_id={seed.sub1_staff}&is_read=maybe")
        assert resp.status_code == 400

    def test_mark_read_and_filter(self, client, seed):
        create_main_to_sub1(client, seed)
        note_id = client.get(f"/api/notifications?user_id={seed.sub1_admin}").get_json()["notifications"][0]["id"]

        resp = client.put(f"/api/notifications/{note_id}/read", json={"user_id": seed.sub1_admin})
        assert resp.status_code == 200
        assert resp.get_json()["is_read"] is True

        unread = client.get(f"/api/notifications?user_id={seed.sub1_admin}&is_read=false").get_json()
        assert unread["pagination"]["total_count"] == 0

    def test_mark_read_of_other_user_is_404(self, client, seed, db_session):
        create_main_to_sub1(client, seed)
        db_session.expire_all()
        theirs = db_session.query(Notification).filter_by(user_id=seed.sub1_admin).one()

        resp = client.put(f"/api/notifications/{theirs.id}/read", json={"user_id": seed.sub1_staff})
        assert resp.status_code == 404

    def test_mark_read_requires_user(self, client, seed):
        resp = client.put("/api/notifications/1/read", json={})
        assert resp.status_code == 400

    def test_huge_page_is_rejected(self, client, seed):
        resp = client.get(f"/api/notifications?user_id={seed.sub1_staff}&page=100000000000000000000")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "page is out of range"

    def test_unexpected_failure_is_500(self, client, seed, monkeypatch):
        from interbranch.services import notification_service

        def broken(*args, **kwargs):
            raise RuntimeError("inbox unavailable")

        monkeypatch.setattr(notification_service, "list_notifications_for_user", broken)
        resp = client.get(f"/api/notifications?user_id={seed.sub1_staff}")
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}


# =============================================================================
# BRANCH FEED
# =============================================================================


class TestBranchFeed:

    def test_own_branch_feed(self, client, seed):
        request_id = create_main_to_sub1(client, seed)

        resp = client.get(f"/api/notifications?user_id={seed.sub1_cashier}&branch_id={seed.sub1}")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["pagination"]["total_count"] == 1
        row = body["notifications"][0]
        assert row["is_branch_wide"] is True
        assert row["data"]["transfer_request_id"] == request_id

    def test_other_branch_feed_forbidden(self, client, seed):
        create_main_to_sub1(client, seed)
        resp = client.get(f"/api/notifications?user_id={seed.sub2_staff}&branch_id={seed.sub1}")
        assert resp.status_code == 403
        assert resp.get_json()["details"]["branch_id"] == seed.sub1

    def test_bad_branch_id(self, client, seed):
        resp = client.get(f"/api/notifications?user_id={seed.sub1_staff}&branch_id=abc")
        assert resp.status_code == 400


# =============================================================================
# DELETE
# =============================================================================


class TestDelete:

    def test_delete_own(self, client, seed, db_session):
        create_main_to_sub1(client, seed)
        note_id = client.get(f"/api/notifications?user_id={seed.sub1_staff}").get_json()["notifications"][0]["id"]

        resp = client.delete(f"/api/notifications/{note_id}", json={"user_id": seed.sub1_staff})
        assert resp.status_code == 200
        assert resp.get_json()["id"] == note_id

        inbox = client.get(f"/api/notifications?user_id={seed.sub1_staff}").get_json()
        assert inbox["pagination"]["total_count"] == 0

    def test_delete_someone_elses_is_404(self, client, seed, db_session):
        create_main_to_sub1(client, seed)
        db_session.expire_all()
        theirs = db_session.query(Notification).filter_by(user_id=seed.sub1_admin).one()

        resp = client.delete(f"/api/notifications/{theirs.id}", json={"user_id": seed.sub1_staff})
        assert resp.status_code == 404

        db_session.expire_all()
        assert db_session.query(Notification).filter_by(id=theirs.id).count() == 1

    def test_delete_requires_user(self, client, seed):
        resp = client.delete("/api/notifications/1", json={})
        assert resp.status_code == 400
