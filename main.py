import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import auth
import database
import waste_requests
from classifier import WasteClassifier, get_classifier
from config import get_settings
from errors import AppError, ValidationError
from logging_config import configure_logging
from schemas import (
    AuthResponse,
    ClassificationResult,
    CompleteRequest,
    LoginRequest,
    UserCreate,
    UserPublic,
    WasteRequest,
    WasteRequestCreate,
)

settings = get_settings()
configure_logging(settings.log_level, settings.log_format, settings.environment)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        database.ensure_indexes()
    except PyMongoError:
        logger.exception("Could not ensure database indexes")
    yield


app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------ Error handlers ------------------
def _error_body(message: str, code: str, **extra: Any) -> Dict[str, Any]:
    body = {"success": False, "message": message, "error": code}
    body.update(extra)
    return body


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        log_level,
        "HTTP %s %s: %s",
        exc.status_code,
        exc.code,
        exc.message,
        extra={"http.request.method": request.method, "url.path": request.url.path},
    )
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.code))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in e.get("loc", ()) if p != "body"), "message": e.get("msg", "")}
        for e in exc.errors()
    ]
    if any(e.get("type") == "missing" for e in exc.errors()):
        if request.url.path.rstrip("/").endswith("/complete"):
            message = "Please provide disposal method and location"
        else:
            message = ValidationError.default_message
    elif errors:
        message = f"Invalid value for {errors[0]['field']}: {errors[0]['message']}"
    else:
        message = "Invalid request"
    logger.warning(
        "Validation error: %s",
        message,
        extra={"http.request.method": request.method, "url.path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(message, ValidationError.code, errors=errors),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), "HTTP_ERROR"),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error",
        extra={"http.request.method": request.method, "url.path": request.url.path},
    )
    detail = "An error occurred" if get_settings().is_production else str(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Server error", "error": detail},
    )


# ------------------ Health ------------------
@app.get("/")
def read_root():
    return {"message": "Healthcare Waste Management API running"}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if "database_url" in settings.model_fields_set else "❌ Not Set",
        "database_name": settings.database_name,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        cols = database.db.list_collection_names()
        response.update({
            "database": "✅ Connected & Working",
            "connection_status": "Connected",
            "collections": cols[:10],
        })
    except PyMongoError as e:
        response["database"] = f"⚠️ {str(e)[:80]}"
    return response


# ------------------ Auth ------------------
@app.post("/api/auth/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate):
    user, token = auth.register_user(payload)
    return {"token": token, "user": user}


@app.post("/api/auth/login", response_model=AuthResponse)
def login(payload: LoginRequest):
    user, token = auth.authenticate(payload.email, payload.password)
    return {"token": token, "user": user}


@app.get("/api/auth/profile", response_model=UserPublic)
def profile(current_user: dict = Depends(auth.get_current_user)):
    return current_user


# ------------------ Waste requests ------------------
@app.post("/api/requests/create", response_model=WasteRequest, status_code=status.HTTP_201_CREATED)
def create_request(
    payload: WasteRequestCreate,
    current_user: dict = Depends(auth.require_capability("requests:create")),
):
    return waste_requests.create_request(payload, current_user)


@app.get("/api/requests/my-requests", response_model=List[WasteRequest])
def my_requests(current_user: dict = Depends(auth.require_capability("requests:list_mine"))):
    return waste_requests.list_my_requests(current_user)


@app.get("/api/requests/pending", response_model=List[WasteRequest])
def pending_requests(_: dict = Depends(auth.require_capability("requests:list_pending"))):
    return waste_requests.list_pending_requests()


@app.get("/api/requests/{request_id}", response_model=WasteRequest)
def get_request(request_id: str, current_user: dict = Depends(auth.get_current_user)):
    return waste_requests.get_request(request_id, current_user)


@app.put("/api/requests/{request_id}/assign", response_model=WasteRequest)
def assign_request(
    request_id: str,
    current_user: dict = Depends(auth.require_capability("requests:assign")),
):
    return waste_requests.assign_request(request_id, current_user)


@app.put("/api/requests/{request_id}/complete", response_model=WasteRequest)
def complete_request(
    request_id: str,
    payload: CompleteRequest,
    current_user: dict = Depends(auth.require_capability("requests:complete")),
):
    return waste_requests.complete_request(request_id, payload, current_user)


# ------------------ Classification ------------------
@app.post("/api/classify", response_model=ClassificationResult)
def classify(
    image: Optional[UploadFile] = File(None),
    _: dict = Depends(auth.require_capability("classify")),
    classifier: WasteClassifier = Depends(get_classifier),
):
    if image is None:
        raise ValidationError("No image file sent.")
    contents = image.file.read()
    return classifier.classify(contents, image.filename or "")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
