from typing import List

from fastapi import (
    FastAPI,
    Depends,
    Path,
    HTTPException,
    Request,
    Response,
    status,
)
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError

from sqlalchemy.orm import Session

from .dependencies import get_account_service, get_message_service
from .logging_utils import logging_middleware
from .metrics import render_metrics
from .schemas import (
    Account,
    AccountCredentials,
    Message,
    MessageCreate,
    MessageTextUpdate,
    INT64_MAX,
    INT64_MIN,
)
from .services import AccountService, MessageService
from .storage import check_db, get_db, init_db


app = FastAPI(title="Social Media API")

# Attach logging middleware
app.middleware("http")(logging_middleware)


# ---------- Startup ----------


@app.on_event("startup")
def on_startup() -> None:
    init_db()


# ---------- Exception handler ----------


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request.state.log_extra = getattr(request.state, "log_extra", {})
    request.state.log_extra.update({"result": "invalid_request"})
    # drop the raw input: it may hold text that cannot be encoded
    errors = [{k: v for k, v in err.items() if k != "input"} for err in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(errors)},
    )


def _mark(request: Request, result: str) -> None:
    request.state.log_extra.update({"result": result})


# ---------- Health ----------


@app.get("/health/live")
def health_live():
    return {"status": "ok"}


@app.get("/health/ready")
def health_ready(db: Session = Depends(get_db)):
    ok, msg = check_db(db)
    if not ok:
        raise HTTPException(status_code=503, detail=msg)
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    text = render_metrics()
    return PlainTextResponse(content=text, media_type="text/plain")


# ---------- Accounts ----------


@app.post("/register", response_model=Account)
def register(
    request: Request,
    body: AccountCredentials,
    accounts: AccountService = Depends(get_account_service),
):
    account = accounts.register(body)
    if account is None:
        _mark(request, "rejected")
        return Response(status_code=status.HTTP_400_BAD_REQUEST)
    _mark(request, "created")
    return account


@app.post("/login", response_model=Account)
def login(
    request: Request,
    body: AccountCredentials,
    accounts: AccountService = Depends(get_account_service),
):
    account = accounts.login(body)
    if account is None:
        _mark(request, "unauthorized")
        return Response(status_code=status.HTTP_401_UNAUTHORIZED)
    return account


@app.get("/accounts/{account_id}/messages", response_model=List[Message])
def get_account_messages(
    account_id: int = Path(ge=INT64_MIN, le=INT64_MAX),
    accounts: AccountService = Depends(get_account_service),
):
    return accounts.messages_by_account(account_id)


# ---------- Messages ----------


@app.post("/messages", response_model=Message)
def create_message(
    request: Request,
    body: MessageCreate,
    messages: MessageService = Depends(get_message_service),
):
    message = messages.create(body)
    if message is None:
        _mark(request, "rejected")
        return Response(status_code=status.HTTP_400_BAD_REQUEST)
    _mark(request, "created")
    return message


@app.get("/messages", response_model=List[Message])
def list_messages(messages: MessageService = Depends(get_message_service)):
    return messages.list_all()


# A missing id answers 200 with no body on GET and DELETE, matching the
# status codes existing clients were written against.


@app.get("/messages/{message_id}", response_model=Message)
def get_message(
    request: Request,
    message_id: int = Path(ge=INT64_MIN, le=INT64_MAX),
    messages: MessageService = Depends(get_message_service),
):
    message = messages.get_by_id(message_id)
    if message is None:
        _mark(request, "not_found")
        return Response(status_code=status.HTTP_200_OK)
    return message


@app.delete("/messages/{message_id}", response_model=Message)
def delete_message(
    request: Request,
    message_id: int = Path(ge=INT64_MIN, le=INT64_MAX),
    messages: MessageService = Depends(get_message_service),
):
    message = messages.delete_by_id(message_id)
    if message is None:
        _mark(request, "not_found")
        return Response(status_code=status.HTTP_200_OK)
    _mark(request, "deleted")
    return message


@app.patch("/messages/{message_id}", response_model=Message)
def update_message(
    request: Request,
    body: MessageTextUpdate,
    message_id: int = Path(ge=INT64_MIN, le=INT64_MAX),
    messages: MessageService = Depends(get_message_service),
):
    message = messages.update_text(message_id, body.message_text)
    if message is None:
        _mark(request, "rejected")
        return Response(status_code=status.HTTP_400_BAD_REQUEST)
    _mark(request, "updated")
    return message
