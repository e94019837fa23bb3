import logging
from datetime import date
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    Form,
    HTTPException,
    Request,
    UploadFile,
)
from sqlalchemy.orm import Session

from bank_detector import detect_bank_profile
from bank_profiles import ALL_PROFILES, supported_banks
from config import Settings, get_settings
from csv_utils import parse_csv
from database import create_db_engine, init_db, make_sessionmaker
from models import AccountType
from schemas import (
    AccountIn,
    AccountOut,
    AllocationIn,
    AllocationOut,
    BalanceSnapshotIn,
    BalanceSnapshotOut,
    BudgetDefaultsIn,
    BudgetIn,
    BudgetOut,
    BudgetUpdate,
    CategoryAssignmentIn,
    CategoryIn,
    CategoryOut,
    HeadersIn,
    ImportOut,
    MerchantIn,
    PeriodOut,
    RuleIn,
    RuleOut,
    RuleToggleIn,
    TransactionOut,
)
from services import (
    AccountService,
    BalanceSnapshotService,
    BudgetService,
    CategoryService,
    ImportService,
    NotFoundError,
    RuleService,
    SuggestionService,
    TransactionFilters,
    TransactionService,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_db(request: Request):
    db = request.app.state.sessionmaker()
    try:
        yield db
    finally:
        db.close()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_budget_service(
    db: Session = Depends(get_db), settings: Settings = Depends(get_app_settings)
) -> BudgetService:
    return BudgetService(db, settings)


async def _read_upload(file: UploadFile) -> str:
    try:
        return (await file.read()).decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="CSV file must be UTF-8") from exc


# bank profiles


@router.get("/profiles")
def list_profiles():
    return [
        {"id": p.id, "name": p.name, "institution": p.institution}
        for p in ALL_PROFILES
    ]


@router.get("/banks")
def list_banks():
    return supported_banks()


@router.post("/profiles/detect")
def detect_profile(payload: HeadersIn, settings: Settings = Depends(get_app_settings)):
    result = detect_bank_profile(
        payload.headers,
        threshold=settings.detection_threshold,
        partial_weight=settings.partial_match_weight,
    )
    if result is None:
        return {"profile_id": None, "name": None, "confidence": 0.0}
    return {
        "profile_id": result.profile.id,
        "name": result.profile.name,
        "confidence": round(result.confidence, 4),
    }


# imports


@router.post("/imports/preview")
async def preview_import(
    file: UploadFile = File(...),
    profile_id: Optional[str] = Form(None),
    settings: Settings = Depends(get_app_settings),
):
    content = await _read_upload(file)
    result = parse_csv(
        content,
        profile_id=profile_id or None,
        threshold=settings.detection_threshold,
        partial_weight=settings.partial_match_weight,
        drop_zero_amounts=settings.drop_zero_amount_rows,
    )
    return {
        "profile_id": result.detected_profile.id if result.detected_profile else None,
        "total_rows": result.total_rows,
        "transactions": [
            {
                "date": txn.date,
                "description": txn.description,
                "amount_cents": txn.amount_cents,
            }
            for txn in result.transactions
        ],
        "errors": result.errors,
    }


@router.post("/imports")
async def run_import(
    file: UploadFile = File(...),
    account_id: Optional[str] = Form(None),
    account_name: Optional[str] = Form(None),
    profile_id: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    content = await _read_upload(file)
    profile_id = profile_id or None

    if not account_id:
        if not account_name:
            raise HTTPException(
                status_code=400, detail="Either account_id or account_name is required"
            )
        preview = parse_csv(
            content,
            profile_id=profile_id,
            threshold=settings.detection_threshold,
            partial_weight=settings.partial_match_weight,
        )
        if preview.detected_profile is None:
            raise HTTPException(status_code=400, detail=preview.errors)
        profile_id = preview.detected_profile.id
        account = AccountService(db).get_or_create(
            account_name,
            institution=preview.detected_profile.institution,
            type=AccountType.checking,
        )
        account_id = account.id

    try:
        summary = ImportService(db, settings).import_csv(
            content, account_id, file.filename or "upload.csv", profile_id=profile_id
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    if summary.import_id is None and summary.errors:
        raise HTTPException(status_code=400, detail=summary.errors)
    return {
        "import_id": summary.import_id,
        "account_id": account_id,
        "bank_profile": summary.bank_profile,
        "imported": summary.imported,
        "skipped": summary.skipped,
        "errors": summary.errors,
    }


@router.get("/imports", response_model=list[ImportOut])
def list_imports(
    account_id: Optional[str] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    return ImportService(db, settings).list_imports(account_id)


# accounts & snapshots


@router.get("/accounts", response_model=list[AccountOut])
def list_accounts(db: Session = Depends(get_db)):
    return AccountService(db).list_all()


@router.post("/accounts", response_model=AccountOut, status_code=201)
def create_account(payload: AccountIn, db: Session = Depends(get_db)):
    return AccountService(db).create(payload)


@router.get("/accounts/{account_id}", response_model=AccountOut)
def get_account(account_id: str, db: Session = Depends(get_db)):
    try:
        return AccountService(db).get(account_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get(
    "/accounts/{account_id}/snapshots", response_model=list[BalanceSnapshotOut]
)
def list_snapshots(account_id: str, db: Session = Depends(get_db)):
    return BalanceSnapshotService(db).list_for_account(account_id)


@router.put("/accounts/{account_id}/snapshots", response_model=BalanceSnapshotOut)
def upsert_snapshot(
    account_id: str, payload: BalanceSnapshotIn, db: Session = Depends(get_db)
):
    try:
        return BalanceSnapshotService(db).upsert(account_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get(
    "/accounts/{account_id}/snapshots/latest",
    response_model=Optional[BalanceSnapshotOut],
)
def latest_snapshot(account_id: str, db: Session = Depends(get_db)):
    return BalanceSnapshotService(db).latest(account_id)


# categories, transactions, rules


@router.get("/categories", response_model=list[CategoryOut])
def list_categories(include_income: bool = True, db: Session = Depends(get_db)):
    return CategoryService(db).list_all(include_income=include_income)


@router.post("/categories", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryIn, db: Session = Depends(get_db)):
    try:
        return CategoryService(db).create(payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/transactions", response_model=list[TransactionOut])
def list_transactions(
    account_id: Optional[str] = None,
    category_id: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    uncategorized: bool = False,
    q: Optional[str] = None,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
):
    filters = TransactionFilters(
        account_id=account_id,
        category_id=category_id,
        start=start,
        end=end,
        uncategorized=uncategorized,
        query=q,
    )
    return TransactionService(db).list(filters, limit=limit)


@router.put("/transactions/{transaction_id}/category", response_model=TransactionOut)
def assign_category(
    transaction_id: str, payload: CategoryAssignmentIn, db: Session = Depends(get_db)
):
    try:
        return TransactionService(db).assign_category(transaction_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.put("/transactions/{transaction_id}/merchant", response_model=TransactionOut)
def set_merchant(
    transaction_id: str, payload: MerchantIn, db: Session = Depends(get_db)
):
    try:
        return TransactionService(db).set_merchant(transaction_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/rules", response_model=list[RuleOut])
def list_rules(active_only: bool = False, db: Session = Depends(get_db)):
    return RuleService(db).list_all(active_only=active_only)


@router.post("/rules", response_model=RuleOut, status_code=201)
def create_rule(payload: RuleIn, db: Session = Depends(get_db)):
    try:
        return RuleService(db).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.patch("/rules/{rule_id}", response_model=RuleOut)
def toggle_rule(rule_id: str, payload: RuleToggleIn, db: Session = Depends(get_db)):
    try:
        return RuleService(db).set_active(rule_id, payload.is_active)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.delete("/rules/{rule_id}", status_code=204)
def delete_rule(rule_id: str, db: Session = Depends(get_db)):
    try:
        RuleService(db).delete(rule_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


# budgets


@router.get("/budgets", response_model=list[BudgetOut])
def list_budgets(budgets: BudgetService = Depends(get_budget_service)):
    return budgets.list_all()


@router.post("/budgets", response_model=BudgetOut, status_code=201)
def create_budget(
    payload: BudgetIn, budgets: BudgetService = Depends(get_budget_service)
):
    return budgets.create(payload)


@router.post("/budgets/defaults", response_model=BudgetOut, status_code=201)
def create_budget_with_defaults(
    payload: BudgetDefaultsIn,
    budgets: BudgetService = Depends(get_budget_service),
):
    return budgets.create_with_defaults(payload.name, payload.period_type)


@router.get("/budgets/{budget_id}", response_model=BudgetOut)
def get_budget(budget_id: str, budgets: BudgetService = Depends(get_budget_service)):
    try:
        return budgets.get(budget_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.patch("/budgets/{budget_id}", response_model=BudgetOut)
def update_budget(
    budget_id: str,
    payload: BudgetUpdate,
    budgets: BudgetService = Depends(get_budget_service),
):
    try:
        return budgets.update(budget_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.delete("/budgets/{budget_id}", status_code=204)
def delete_budget(
    budget_id: str, budgets: BudgetService = Depends(get_budget_service)
):
    try:
        budgets.delete(budget_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/budgets/{budget_id}/allocations", response_model=list[AllocationOut])
def list_allocations(
    budget_id: str, budgets: BudgetService = Depends(get_budget_service)
):
    try:
        return budgets.allocations(budget_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.put(
    "/budgets/{budget_id}/allocations/{category_id}", response_model=AllocationOut
)
def set_allocation(
    budget_id: str,
    category_id: str,
    payload: AllocationIn,
    budgets: BudgetService = Depends(get_budget_service),
):
    try:
        return budgets.set_allocation(budget_id, category_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete("/budgets/{budget_id}/allocations/{category_id}", status_code=204)
def remove_allocation(
    budget_id: str,
    category_id: str,
    budgets: BudgetService = Depends(get_budget_service),
):
    try:
        budgets.remove_allocation(budget_id, category_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/budgets/{budget_id}/status")
def budget_status(
    budget_id: str,
    today: Optional[date] = None,
    budgets: BudgetService = Depends(get_budget_service),
):
    try:
        return budgets.status(budget_id, today=today)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/budgets/{budget_id}/vs-actual")
def budget_vs_actual(
    budget_id: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    budgets: BudgetService = Depends(get_budget_service),
):
    try:
        if start is None or end is None:
            period = budgets.current_period(budget_id)
            start, end = period.start, period.end
        if end < start:
            raise HTTPException(status_code=400, detail="end must not precede start")
        return budgets.vs_actual(budget_id, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/budgets/{budget_id}/rollover")
def budget_rollover(
    budget_id: str,
    start: date,
    end: date,
    budgets: BudgetService = Depends(get_budget_service),
):
    try:
        return budgets.calculate_rollover(budget_id, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("/budgets/{budget_id}/periods/current", response_model=PeriodOut)
def current_period(
    budget_id: str,
    budgets: BudgetService = Depends(get_budget_service),
):
    try:
        return budgets.get_or_create_period(budget_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/budgets/{budget_id}/periods/open", response_model=Optional[PeriodOut])
def open_period(
    budget_id: str, budgets: BudgetService = Depends(get_budget_service)
):
    try:
        return budgets.open_period(budget_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("/periods/{period_id}/close", response_model=PeriodOut)
def close_period(
    period_id: str, budgets: BudgetService = Depends(get_budget_service)
):
    try:
        return budgets.close_period(period_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/suggestions")
def allocation_suggestions(
    months: int = 3,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    try:
        return SuggestionService(db, settings).suggest_allocations(months)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    engine = create_db_engine(settings.database_url)
    init_db(engine)

    app = FastAPI(title="Ledger")
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = make_sessionmaker(engine)
    app.include_router(router)
    logger.info(f"app_ready: database={engine.url.render_as_string(hide_password=True)}")
    return app


def main():
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run("main:create_app", factory=True, host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
