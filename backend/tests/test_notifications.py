"""Tests for the in-app notification inbox."""

from franchisehub.services.notification_service import NotificationService

NOTIFICATIONS = "/api/v1/notifications"


def _notify(db, user, title="Task assigned"):
    notification = NotificationService.notify(db, user.id, type="task_assigned", title=title, subtitle="Fix sign")
    db.commit()
    return notification


class TestNotifications:
    def test_list_only_own(self, client, db_session, franchisee_user, franchisor_user, franchisee_headers):
        _notify(db_session, franchisee_user)
        _notify(db_session, franchisor_user, title="Not yours")
        response = client.get(f"{NOTIFICATIONS}/", headers=franchisee_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["pagination"]["total"] == 1
        assert body["data"][0]["title"] == "Task assigned"
        assert body["data"][0]["is_read"] is False

    def test_notify_skips_missing_user(self, db_session):
        assert NotificationService.notify(db_session, None, type="task_assigned", title="Nobody") is None

    def test_read_unread_and_stats(self, client, db_session, franchisee_user, franchisee_headers):
        notification = _notify(db_session, franchisee_user)
        _notify(db_session, franchisee_user, title="Second")

        response = client.patch(f"{NOTIFICATIONS}/{notification.id}/read", headers=franchisee_headers)
        assert response.status_code == 200
        assert response.json()["data"]["is_read"] is True
        stats = client.get(f"{NOTIFICATIONS}/stats", headers=franchisee_headers).json()["data"]
        assert stats == {"total": 2, "unread": 1, "read": 1}

        response = client.patch(f"{NOTIFICATIONS}/{notification.id}/unread", headers=franchisee_headers)
        assert response.json()["data"]["read_at"] is None

    def test_mark_all_read(self, client, db_session, franchisee_user, franchisee_headers):
        _notify(db_session, franchisee_user)
        _notify(db_session, franchisee_user, title="Second")
        response = client.patch(f"{NOTIFICATIONS}/mark-all-read", headers=franchisee_headers)
        assert response.json()["data"]["updated"] == 2
        response = client.get(f"{NOTIFICATIONS}/", params={"status": "unread"}, headers=franchisee_headers)
        assert response.json()["data"] == []

    def test_mark_multiple_read(self, client, db_session, franchisee_user, franchisee_headers):
        first = _notify(db_session, franchisee_user)
        _notify(db_session, franchisee_user, title="Second")
        response = client.patch(
            f"{NOTIFICATIONS}/mark-multiple-read", json={"ids": [first.id]}, headers=franchisee_headers
        )
        assert response.json()["data"]["updated"] == 1

    def test_other_users_notification_is_not_found(self, client, db_session, franchisor_user, franchisee_headers):
        notification = _notify(db_session, franchisor_user)
        response = client.patch(f"{NOTIFICATIONS}/{notification.id}/read", headers=franchisee_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Notification not found"

    def test_delete(self, client, db_session, franchisee_user, franchisee_headers):
        notification = _notify(db_session, franchisee_user)
        response = client.delete(f"{NOTIFICATIONS}/{notification.id}", headers=franchisee_headers)
        assert response.status_code == 200
        response = client.get(f"{NOTIFICATIONS}/{notification.id}", headers=franchisee_headers)
        assert response.status_code == 404
