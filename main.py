import tomllib
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Response
from sqlalchemy.orm import Session

from database import get_db
from periods import resolve_month
from scheduler import SchedulerManager
from schemas import (
    BudgetSettingsIn,
    BudgetSummaryOut,
    RecurringTransactionIn,
    RecurringTransactionOut,
    TaskIn,
    TaskOut,
    TransactionIn,
    TransactionOut,
)
from services import (
    BudgetService,
    RecurringTransactionService,
    TaskService,
    TransactionService,
)

app = FastAPI(title="Chronodex")


def _load_app_version(path: Optional[Path] = None) -> str:
    path = path or Path(__file__).resolve().parent / "pyproject.toml"
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return "unknown"
    return str(data.get("project", {}).get("version", "unknown"))


APP_VERSION = _load_app_version()

scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def _not_found_or_bad_request(exc: ValueError) -> HTTPException:
    status = 404 if "not found" in str(exc) else 400
    return HTTPException(status_code=status, detail=str(exc))


@app.get("/health")
def health():
    return {"status": "ok", "version": APP_VERSION}


@app.get("/api/tasks", response_model=list[TaskOut])
def list_tasks(db: Session = Depends(get_db)):
    return TaskService(db).list()


@app.post("/api/tasks", response_model=TaskOut, status_code=201)
def create_task(data: TaskIn, db: Session = Depends(get_db)):
    try:
        return TaskService(db).create(data)
    except ValueError as exc:
        raise _not_found_or_bad_request(exc) from exc


@app.put("/api/tasks/{task_id}", response_model=TaskOut)
def update_task(task_id: int, data: TaskIn, db: Session = Depends(get_db)):
    try:
        return TaskService(db).update(task_id, data)
    except ValueError as exc:
        raise _not_found_or_bad_request(exc) from exc


@app.delete("/api/tasks/{task_id}", status_code=204)
def delete_task(task_id: int, db: Session = Depends(get_db)):
    try:
        TaskService(db).delete(task_id)
    except ValueError as exc:
        raise _not_found_or_bad_request(exc) from exc
    return Response(status_code=204)


@app.get("/api/calendar")
def calendar_month(month: Optional[str] = None, db: Session = Depends(get_db)):
    try:
        period = resolve_month(month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    index = TaskService(db).month_index(period.start.year, period.start.month)
    return {
        "month": period.slug,
        "days": {
            day.isoformat(): [task.id for task in tasks] for day, tasks in index.items()
        },
    }


@app.get("/api/recurring-transactions", response_model=list[RecurringTransactionOut])
def list_recurring(db: Session = Depends(get_db)):
    return RecurringTransactionService(db).list()


@app.post(
    "/api/recurring-transactions",
    response_model=RecurringTransactionOut,
    status_code=201,
)
def create_recurring(data: RecurringTransactionIn, db: Session = Depends(get_db)):
    try:
        return RecurringTransactionService(db).create(data)
    except ValueError as exc:
        raise _not_found_or_bad_request(exc) from exc


@app.delete("/api/recurring-transactions/{template_id}", status_code=204)
def delete_recurring(template_id: int, db: Session = Depends(get_db)):
    try:
        RecurringTransactionService(db).delete(template_id)
    except ValueError as exc:
        raise _not_found_or_bad_request(exc) from exc
    return Response(status_code=204)


@app.get(
    "/api/recurring-transactions/{template_id}/occurrences",
    response_model=list[TransactionOut],
)
def recurring_occurrences(template_id: int, db: Session = Depends(get_db)):
    try:
        return RecurringTransactionService(db).occurrences(template_id)
    except ValueError as exc:
        raise _not_found_or_bad_request(exc) from exc


@app.post(
    "/api/recurring-transactions/{template_id}/process",
    response_model=RecurringTransactionOut,
)
def process_recurring(template_id: int, db: Session = Depends(get_db)):
    try:
        return RecurringTransactionService(db).process(template_id)
    except ValueError as exc:
        raise _not_found_or_bad_request(exc) from exc


@app.post("/api/process-recurring")
def process_all_recurring(db: Session = Depends(get_db)):
    return RecurringTransactionService(db).catch_up_all().as_dict()


@app.get("/api/transactions", response_model=list[TransactionOut])
def list_transactions(db: Session = Depends(get_db)):
    return TransactionService(db).list()


@app.post("/api/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(data: TransactionIn, db: Session = Depends(get_db)):
    try:
        return TransactionService(db).create(data)
    except ValueError as exc:
        raise _not_found_or_bad_request(exc) from exc


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        TransactionService(db).delete(transaction_id)
    except ValueError as exc:
        raise _not_found_or_bad_request(exc) from exc
    return Response(status_code=204)


@app.get("/api/budget", response_model=BudgetSummaryOut)
def budget_summary(db: Session = Depends(get_db)):
    return BudgetService(db).summary()


@app.put("/api/budget/settings", response_model=BudgetSummaryOut)
def update_budget_settings(data: BudgetSettingsIn, db: Session = Depends(get_db)):
    service = BudgetService(db)
    service.update_settings(data)
    return service.summary()
