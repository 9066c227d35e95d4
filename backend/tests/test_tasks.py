"""Tests for tasks: lifecycle, recurrence and the unit manager's task list."""

from datetime import date

from franchisehub.models import Notification, Task, TaskStatus, UserRole, UserStatus
from franchisehub.services.task_service import TaskService

from conftest import make_user

TASKS = "/api/v1/tasks"


# ============== Creation ==============

class TestCreateTask:
    def test_franchisor_task_belongs_to_franchise(self, client, franchisor_headers, franchisor_user, franchise):
        response = client.post(f"{TASKS}/", json={"title": "Quarterly audit"}, headers=franchisor_headers)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["franchise_id"] == franchise.id
        assert data["created_by"] == franchisor_user.id
        assert data["status"] == "pending"

    def test_franchisee_task_defaults_to_their_unit(self, client, franchisee_headers, unit):
        response = client.post(f"{TASKS}/", json={"title": "Restock cups"}, headers=franchisee_headers)
        assert response.status_code == 201
        assert response.json()["data"]["unit_id"] == unit.id

    def test_recurring_needs_type(self, client, franchisor_headers):
        response = client.post(f"{TASKS}/", json={"title": "Weekly", "is_recurring": True}, headers=franchisor_headers)
        assert response.status_code == 422

    def test_assignment_notifies(self, client, db_session, franchisor_headers, franchisee_user, unit):
        response = client.post(
            f"{TASKS}/",
            json={"title": "Fix sign", "assigned_to": franchisee_user.id, "unit_id": unit.id},
            headers=franchisor_headers,
        )
        assert response.status_code == 201
        notification = db_session.query(Notification).filter(Notification.user_id == franchisee_user.id).one()
        assert notification.type == "task_assigned"

    def test_inactive_assignee_rejected(self, client, db_session, franchisor_headers, franchisee_user):
        franchisee_user.status = UserStatus.INACTIVE
        db_session.commit()
        response = client.post(
            f"{TASKS}/", json={"title": "Fix sign", "assigned_to": franchisee_user.id}, headers=franchisor_headers
        )
        assert response.status_code == 422

    def test_assignee_from_other_franchise_rejected(self, client, db_session, franchisor_headers, other_unit):
        outsider = make_user(db_session, "airport.manager@example.com", UserRole.FRANCHISEE)
        other_unit.franchisee_id = outsider.id
        db_session.commit()
        response = client.post(
            f"{TASKS}/", json={"title": "Fix sign", "assigned_to": outsider.id}, headers=franchisor_headers
        )
        assert response.status_code == 422
        assert db_session.query(Task).count() == 0

    def test_broker_of_franchise_can_be_assigned(self, client, franchisor_headers, broker_user):
        response = client.post(
            f"{TASKS}/", json={"title": "Call back", "assigned_to": broker_user.id}, headers=franchisor_headers
        )
        assert response.status_code == 201
        assert response.json()["data"]["assigned_to"] == broker_user.id

    def test_reassign_to_other_franchisor_rejected(self, client, franchisor_headers, other_franchisor_user):
        task = client.post(f"{TASKS}/", json={"title": "Audit"}, headers=franchisor_headers).json()["data"]
        response = client.patch(
            f"{TASKS}/{task['id']}/assign",
            json={"assigned_to": other_franchisor_user.id},
            headers=franchisor_headers,
        )
        assert response.status_code == 422
        assert response.status_code == 422


# ============== Lifecycle ==============

class TestTaskLifecycle:
    def _create(self, client, headers, **extra):
        payload = {"title": "Deep clean"}
        payload.update(extra)
        return client.post(f"{TASKS}/", json=payload, headers=headers).json()["data"]

    def test_start_then_complete(self, client, franchisor_headers):
        task = self._create(client, franchisor_headers)
        response = client.patch(f"{TASKS}/{task['id']}/start", headers=franchisor_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "in_progress"
        response = client.patch(
            f"{TASKS}/{task['id']}/complete",
            json={"completion_notes": "Done", "actual_hours": "1.5"},
            headers=franchisor_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "completed"
        assert data["completed_at"] is not None
        assert "next_task" not in data

    def test_start_twice_rejected(self, client, franchisor_headers):
        task = self._create(client, franchisor_headers)
        client.patch(f"{TASKS}/{task['id']}/start", headers=franchisor_headers)
        response = client.patch(f"{TASKS}/{task['id']}/start", headers=franchisor_headers)
        assert response.status_code == 422

    def test_complete_without_body(self, client, franchisor_headers):
        task = self._create(client, franchisor_headers)
        response = client.patch(f"{TASKS}/{task['id']}/complete", headers=franchisor_headers)
        assert response.status_code == 200
        response = client.patch(f"{TASKS}/{task['id']}/complete", headers=franchisor_headers)
        assert response.status_code == 422

    def test_recurring_completion_spawns_next(self, client, db_session, franchisor_headers):
        task = self._create(
            client,
            franchisor_headers,
            due_date="2024-01-31",
            is_recurring=True,
            recurrence_type="monthly",
            checklist=[{"item": "Mop", "completed": True}],
        )
        response = client.patch(f"{TASKS}/{task['id']}/complete", headers=franchisor_headers)
        assert response.status_code == 200
        next_task = response.json()["data"]["next_task"]
        assert next_task["due_date"] == "2024-02-29"
        assert next_task["status"] == "pending"
        assert next_task["parent_task_id"] == task["id"]
        assert next_task["checklist"] == [{"item": "Mop", "completed": False}]

    def test_recurrence_end_date_stops_series(self, client, franchisor_headers):
        task = self._create(
            client,
            franchisor_headers,
            due_date="2024-01-31",
            is_recurring=True,
            recurrence_type="monthly",
            recurrence_end_date="2024-02-15",
        )
        response = client.patch(f"{TASKS}/{task['id']}/complete", headers=franchisor_headers)
        assert "next_task" not in response.json()["data"]

    def test_checklist_progress_starts_task(self, client, franchisor_headers):
        task = self._create(client, franchisor_headers, checklist=[{"item": "A"}, {"item": "B"}])
        response = client.patch(
            f"{TASKS}/{task['id']}/progress",
            json={"checklist": [{"item": "A", "completed": True}, {"item": "B", "completed": False}]},
            headers=franchisor_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "in_progress"


# ============== Service ==============

class TestTaskService:
    def test_start_from_on_hold(self):
        task = Task(title="Paused", status=TaskStatus.ON_HOLD)
        TaskService.start(task)
        assert task.status == TaskStatus.IN_PROGRESS
        assert task.started_at is not None

    def test_non_recurring_has_no_successor(self, db_session):
        task = Task(title="Once", status=TaskStatus.PENDING, is_recurring=False, due_date=date(2024, 1, 1))
        db_session.add(task)
        db_session.flush()
        assert TaskService.complete(db_session, task) is None


# ============== Unit manager ==============

class TestMyTasks:
    def test_my_tasks_lists_unit_tasks(self, client, franchisor_headers, franchisee_headers, unit):
        client.post(f"{TASKS}/", json={"title": "Unit task", "unit_id": unit.id}, headers=franchisor_headers)
        client.post(f"{TASKS}/", json={"title": "HQ task"}, headers=franchisor_headers)
        response = client.get("/api/v1/unit-manager/my-tasks", headers=franchisee_headers)
        assert response.status_code == 200
        assert [t["title"] for t in response.json()["data"]] == ["Unit task"]

    def test_status_update_completes(self, client, franchisor_headers, franchisee_headers, unit):
        task = client.post(
            f"{TASKS}/", json={"title": "Unit task", "unit_id": unit.id}, headers=franchisor_headers
        ).json()["data"]
        response = client.patch(
            f"/api/v1/unit-manager/my-tasks/{task['id']}/status",
            json={"status": "completed"},
            headers=franchisee_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "completed"

    def test_same_status_rejected(self, client, franchisor_headers, franchisee_headers, unit):
        task = client.post(
            f"{TASKS}/", json={"title": "Unit task", "unit_id": unit.id}, headers=franchisor_headers
        ).json()["data"]
        response = client.patch(
            f"/api/v1/unit-manager/my-tasks/{task['id']}/status",
            json={"status": "pending"},
            headers=franchisee_headers,
        )
        assert response.status_code == 422
