import asyncio
import logging
from datetime import date
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from auth import (
    AuthResult,
    TokenClaims,
    TokenService,
    clear_session_cookie,
    set_session_cookie,
)
from config import get_settings
from database import SessionLocal, init_db
from errors import (
    LedgerError,
    ServiceError,
    ServiceUnavailable,
    Unauthorized,
    ValidationFailed,
)
from models import MAX_ROW_ID, Budget, TransactionType, User
from periods import MONTH_PATTERN
from schemas import (
    BudgetIn,
    BudgetLimitIn,
    BudgetOut,
    CategoryIn,
    CategoryOut,
    CategoryRenameIn,
    CredentialsIn,
    RegisterIn,
    SummaryOut,
    TransactionIn,
    TransactionOut,
    UserOut,
)
from services import (
    BudgetReport,
    BudgetService,
    CategoryService,
    SummaryService,
    TransactionFilters,
    TransactionService,
    UserService,
)
from validation import (
    ValidationResult,
    parse_date,
    to_decimal,
    validate_budget,
    validate_budget_limit,
    validate_category,
    validate_category_name,
    validate_email,
    validate_password,
    validate_transaction,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Ledger")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_token_service() -> TokenService:
    current = get_settings()
    return TokenService(
        current.session_secret, max_age_days=current.token_max_age_days
    )


def current_user(
    request: Request, tokens: TokenService = Depends(get_token_service)
) -> AuthResult:
    auth = tokens.authenticate(request)
    if not auth.valid or auth.user_id is None:
        raise Unauthorized()
    return auth


@app.on_event("startup")
def startup_event():
    init_db()
    if get_settings().uses_dev_secret:
        logger.warning(
            "session_secret: LEDGER_SESSION_SECRET is unset, "
            "using the insecure development default"
        )


@app.middleware("http")
async def request_timeout(request: Request, call_next):
    timeout = get_settings().request_timeout_secs
    try:
        return await asyncio.wait_for(call_next(request), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(
            f"request_timeout: method={request.method} path={request.url.path} "
            f"timeout_secs={timeout}"
        )
        return error_response(ServiceUnavailable.status_code, ServiceUnavailable().message)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def success_response(
    data: Any = None, *, status_code: int = 200, message: Optional[str] = None
) -> JSONResponse:
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return JSONResponse(body, status_code=status_code)


def _first_error(errors: list[dict[str, Any]]) -> str:
    if not errors:
        return "Invalid input"
    err = errors[0]
    location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
    message = err.get("msg", "Invalid input")
    return f"{location}: {message}" if location else message


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error(f"request_failed: path={request.url.path} error={exc.message}")
    return error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(400, _first_error(exc.errors()))


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"store_error: path={request.url.path}", exc_info=exc)
    return error_response(ServiceError.status_code, ServiceError().message)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(
        f"unexpected_error: path={request.url.path} error={type(exc).__name__}",
        exc_info=exc,
    )
    return error_response(ServiceError.status_code, ServiceError().message)


def check(result: ValidationResult) -> None:
    if not result.valid:
        logger.debug(f"validation_failed: code={result.code.value}")
        raise ValidationFailed(result.error)


def parse_payload(schema: type[BaseModel], data: dict[str, Any]) -> Any:
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed(_first_error(exc.errors())) from exc


def _transaction_type(value: Optional[str]) -> Optional[TransactionType]:
    if not value:
        return None
    try:
        return TransactionType(value)
    except ValueError:
        return None


def _transaction_payload(payload: dict[str, Any]) -> TransactionIn:
    check(validate_transaction(payload))
    return parse_payload(
        TransactionIn,
        {
            "amount": to_decimal(payload["amount"]),
            "type": payload["type"],
            "category_id": payload["category_id"],
            "description": payload["description"].strip(),
            "date": parse_date(payload["date"]),
        },
    )


def _user_data(user: User) -> dict[str, Any]:
    return UserOut.model_validate(user).model_dump(mode="json")


def _budget_data(budget: Budget, report: Optional[BudgetReport] = None) -> dict:
    out = BudgetOut.model_validate(budget)
    if report is not None:
        out = out.model_copy(
            update={
                "spent": float(report.spent),
                "percentage": round(float(report.status.percentage), 2),
                "remaining": float(report.status.remaining),
                "status": report.status.status,
            }
        )
    return out.model_dump(mode="json")


def _session_response(
    user: User, tokens: TokenService, *, status_code: int, message: str
) -> JSONResponse:
    token = tokens.issue(TokenClaims(user_id=user.id, email=user.email, role=user.role))
    response = success_response(
        _user_data(user), status_code=status_code, message=message
    )
    set_session_cookie(response, token, get_settings())
    return response


@app.post("/auth/register")
def register(
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    if not validate_email(payload.get("email")):
        raise ValidationFailed("Invalid email format")
    check(validate_password(payload.get("password")))
    role = payload.get("role") or "user"
    if role not in ("user", "admin"):
        raise ValidationFailed("Invalid role")
    data = parse_payload(
        RegisterIn,
        {"email": payload["email"], "password": payload["password"], "role": role},
    )
    user = UserService(db).register(data)
    return _session_response(
        user, tokens, status_code=201, message="User registered successfully"
    )


@app.post("/auth/login")
def login(
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    data = parse_payload(CredentialsIn, payload)
    if not validate_email(data.email):
        raise ValidationFailed("Invalid email format")
    user = UserService(db).authenticate(data.email, data.password)
    logger.info(f"user_logged_in: user_id={user.id}")
    return _session_response(user, tokens, status_code=200, message="Logged in")


@app.post("/auth/logout")
def logout():
    response = success_response(message="Logged out")
    clear_session_cookie(response)
    return response


@app.get("/auth/me")
def me(auth: AuthResult = Depends(current_user), db: Session = Depends(get_db)):
    try:
        user = UserService(db).get(auth.user_id)
    except LedgerError as exc:
        raise Unauthorized() from exc
    return success_response(_user_data(user))


@app.get("/categories")
def list_categories(
    type: Optional[str] = None,
    auth: AuthResult = Depends(current_user),
    db: Session = Depends(get_db),
):
    categories = CategoryService(db, auth.user_id).list_all(_transaction_type(type))
    return success_response(
        [CategoryOut.model_validate(c).model_dump(mode="json") for c in categories]
    )


@app.post("/categories")
def create_category(
    payload: dict[str, Any] = Body(...),
    auth: AuthResult = Depends(current_user),
    db: Session = Depends(get_db),
):
    check(validate_category(payload))
    data = parse_payload(
        CategoryIn, {"name": payload["name"].strip(), "type": payload["type"]}
    )
    category = CategoryService(db, auth.user_id).create(data)
    return success_response(
        CategoryOut.model_validate(category).model_dump(mode="json"),
        status_code=201,
        message="Category created successfully",
    )


@app.patch("/categories/{category_id}")
def rename_category(
    category_id: int = Path(..., le=MAX_ROW_ID),
    payload: dict[str, Any] = Body(...),
    auth: AuthResult = Depends(current_user),
    db: Session = Depends(get_db),
):
    check(validate_category_name(payload.get("name")))
    data = parse_payload(CategoryRenameIn, {"name": payload["name"].strip()})
    category = CategoryService(db, auth.user_id).rename(category_id, data.name)
    return success_response(
        CategoryOut.model_validate(category).model_dump(mode="json"),
        message="Category updated successfully",
    )


@app.delete("/categories/{category_id}")
def delete_category(
    category_id: int = Path(..., le=MAX_ROW_ID),
    auth: AuthResult = Depends(current_user),
    db: Session = Depends(get_db),
):
    CategoryService(db, auth.user_id).delete(category_id)
    return success_response(message="Category deleted successfully")


@app.get("/transactions")
def list_transactions(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    category_id: Optional[int] = Query(None, alias="categoryId", le=MAX_ROW_ID),
    type: Optional[str] = None,
    auth: AuthResult = Depends(current_user),
    db: Session = Depends(get_db),
):
    filters = TransactionFilters(
        type=_transaction_type(type),
        category_id=category_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
    )
    items = TransactionService(db, auth.user_id).list(filters)
    return success_response(
        [TransactionOut.model_validate(t).model_dump(mode="json") for t in items]
    )


@app.post("/transactions")
def create_transaction(
    payload: dict[str, Any] = Body(...),
    auth: AuthResult = Depends(current_user),
    db: Session = Depends(get_db),
):
    data = _transaction_payload(payload)
    txn = TransactionService(db, auth.user_id).create(data)
    return success_response(
        TransactionOut.model_validate(txn).model_dump(mode="json"),
        status_code=201,
        message="Transaction created successfully",
    )


@app.patch("/transactions/{transaction_id}")
def update_transaction(
    transaction_id: int = Path(..., le=MAX_ROW_ID),
    payload: dict[str, Any] = Body(...),
    auth: AuthResult = Depends(current_user),
    db: Session = Depends(get_db),
):
    service = TransactionService(db, auth.user_id)
    # Ownership first so foreign rows read as missing even with a bad payload.
    service.get(transaction_id)
    data = _transaction_payload(payload)
    txn = service.update(transaction_id, data)
    return success_response(
        TransactionOut.model_validate(txn).model_dump(mode="json"),
        message="Transaction updated successfully",
    )


@app.delete("/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int = Path(..., le=MAX_ROW_ID),
    auth: AuthResult = Depends(current_user),
    db: Session = Depends(get_db),
):
    TransactionService(db, auth.user_id).delete(transaction_id)
    return success_response(message="Transaction deleted successfully")


@app.get("/budgets")
def list_budgets(
    month: Optional[str] = None,
    auth: AuthResult = Depends(current_user),
    db: Session = Depends(get_db),
):
    if month and not MONTH_PATTERN.match(month):
        raise ValidationFailed("Invalid month format (expected YYYY-MM)")
    reports = BudgetService(db, auth.user_id).with_status(month)
    return success_response([_budget_data(r.budget, r) for r in reports])


@app.post("/budgets")
def upsert_budget(
    payload: dict[str, Any] = Body(...),
    auth: AuthResult = Depends(current_user),
    db: Session = Depends(get_db),
):
    check(validate_budget(payload))
    data = parse_payload(
        BudgetIn,
        {
            "category_id": payload["category_id"],
            "limit_amount": to_decimal(payload["limit_amount"]),
            "month": payload["month"],
        },
    )
    service = BudgetService(db, auth.user_id)
    budget = service.upsert(data)
    return success_response(
        _budget_data(budget, service.report(budget)),
        status_code=201,
        message="Budget saved successfully",
    )


@app.patch("/budgets/{budget_id}")
def update_budget_limit(
    budget_id: int = Path(..., le=MAX_ROW_ID),
    payload: dict[str, Any] = Body(...),
    auth: AuthResult = Depends(current_user),
    db: Session = Depends(get_db),
):
    service = BudgetService(db, auth.user_id)
    service.get(budget_id)
    check(validate_budget_limit(payload))
    data = parse_payload(
        BudgetLimitIn, {"limit_amount": to_decimal(payload["limit_amount"])}
    )
    budget = service.update_limit(budget_id, data.limit_amount)
    return success_response(
        _budget_data(budget, service.report(budget)),
        message="Budget updated successfully",
    )


@app.delete("/budgets/{budget_id}")
def delete_budget(
    budget_id: int = Path(..., le=MAX_ROW_ID),
    auth: AuthResult = Depends(current_user),
    db: Session = Depends(get_db),
):
    BudgetService(db, auth.user_id).delete(budget_id)
    return success_response(message="Budget deleted successfully")


@app.get("/summary")
def summary(auth: AuthResult = Depends(current_user), db: Session = Depends(get_db)):
    result = SummaryService(db, auth.user_id).summary()
    return success_response(
        SummaryOut.model_validate(result).model_dump(mode="json", by_alias=True)
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)
