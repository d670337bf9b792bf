from datetime import date

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import main
from database import Base, get_db


def _client() -> TestClient:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    main.app.dependency_overrides[get_db] = override_get_db
    return TestClient(main.app)


def teardown_function() -> None:
    main.app.dependency_overrides.clear()


def test_task_calendar_roundtrip():
    client = _client()
    created = client.post(
        "/api/tasks",
        json={
            "title": "Standup",
            "due_date": "2024-03-04T09:00:00",
            "recurrence": {"frequency": "weekly", "interval": 1, "endDate": "2024-03-20"},
        },
    )
    assert created.status_code == 201
    task = created.json()
    assert task["next_recurrence_date"] == "2024-03-11T09:00:00"

    calendar = client.get("/api/calendar", params={"month": "2024-03"}).json()
    assert calendar["month"] == "2024-03"
    assert calendar["days"]["2024-03-11"] == [task["id"]]
    assert calendar["days"]["2024-03-12"] == []
    assert calendar["days"]["2024-03-25"] == []


def test_invalid_month_and_rule_are_rejected():
    client = _client()
    assert client.get("/api/calendar", params={"month": "2024-13"}).status_code == 400
    bad_interval = client.post(
        "/api/tasks",
        json={
            "title": "Broken",
            "due_date": "2024-03-04",
            "recurrence": {"frequency": "daily", "interval": 0},
        },
    )
    assert bad_interval.status_code == 422
    assert client.delete("/api/tasks/404").status_code == 404


def test_process_recurring_endpoint_rolls_templates_forward():
    client = _client()
    created = client.post(
        "/api/recurring-transactions",
        json={
            "description": "Netflix",
            "amount_cents": 1299,
            "type": "expense",
            "frequency": "monthly",
            "next_due_date": "2024-01-01T00:00:00",
            "end_date": "2024-03-15",
        },
    )
    assert created.status_code == 201
    template_id = created.json()["id"]

    result = client.post("/api/process-recurring").json()
    assert result == {"transactions": [template_id], "tasks": [], "failed": []}

    occurrences = client.get(f"/api/recurring-transactions/{template_id}/occurrences").json()
    assert [item["occurrence_date"] for item in occurrences] == [
        "2024-03-01T00:00:00",
        "2024-02-01T00:00:00",
        "2024-01-01T00:00:00",
    ]
    template = client.get("/api/recurring-transactions").json()[0]
    assert template["next_due_date"] is None

    ended = client.post(f"/api/recurring-transactions/{template_id}/process")
    assert ended.status_code == 400


def test_health_reports_project_version(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main._load_app_version() == "0.3.0"
    assert main._load_app_version(tmp_path / "missing.toml") == "unknown"
    assert TestClient(main.app).get("/health").json()["version"] == "0.3.0"


def test_transactions_and_budget_endpoints(monkeypatch):
    import services

    monkeypatch.setattr(services, "local_today", lambda: date(2024, 3, 15))
    client = _client()

    default = client.get("/api/budget").json()
    assert default["budget_limit_cents"] == 0
    assert default["budget_duration"] == "Monthly"
    assert default["transactions"] == []

    groceries = client.post(
        "/api/transactions",
        json={
            "description": "Groceries",
            "amount_cents": 4200,
            "type": "expense",
            "date": "2024-03-10T17:45:00",
        },
    )
    assert groceries.status_code == 201
    client.post(
        "/api/transactions",
        json={
            "description": "Old invoice",
            "amount_cents": 1000,
            "type": "expense",
            "date": "2024-02-10T09:00:00",
        },
    )
    assert client.post(
        "/api/transactions",
        json={"description": "", "amount_cents": 100, "type": "expense"},
    ).status_code == 422
    assert len(client.get("/api/transactions").json()) == 2

    summary = client.put(
        "/api/budget/settings",
        json={"budget_limit_cents": 20000, "budget_duration": "Monthly", "savings_cents": 500},
    ).json()
    assert summary["savings_cents"] == 500
    assert summary["period_start"] == "2024-03-01"
    assert summary["expense_cents"] == 4200
    assert summary["remaining_cents"] == 15800

    txn_id = groceries.json()["id"]
    assert client.delete(f"/api/transactions/{txn_id}").status_code == 204
    assert client.delete(f"/api/transactions/{txn_id}").status_code == 404
    assert client.get("/api/budget").json()["expense_cents"] == 0
