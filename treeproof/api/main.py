"""Submission intake API: label-only verification and full tree submissions."""

import logging
from contextlib import asynccontextmanager
from datetime import date
from functools import lru_cache
from typing import Callable

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from treeproof.ai.factory import get_labeler
from treeproof.ai.labeler_base import BaseLabeler
from treeproof.ai.schema import ImageRef
from treeproof.core.config import get_config
from treeproof.core.image_probe import probe_image_format
from treeproof.repository.submission_repo import SubmissionRepository
from treeproof.verification.errors import ValidationError
from treeproof.verification.pipeline import VerificationPipeline
from treeproof.verification.schema import Submission, Verdict, VerdictStatus

_log = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _get_engine() -> Engine:
    cfg = get_config()
    return create_engine(cfg.database_url, pool_pre_ping=True)


@lru_cache(maxsize=1)
def _get_session_factory() -> Callable[[], Session]:
    return sessionmaker(_get_engine(), autocommit=False, autoflush=False, expire_on_commit=False)


@lru_cache(maxsize=1)
def _get_submission_repo() -> SubmissionRepository:
    return SubmissionRepository(_get_session_factory())


@lru_cache(maxsize=1)
def _get_labeler() -> BaseLabeler:
    cfg = get_config()
    return get_labeler(cfg.labeler, cfg)


@lru_cache(maxsize=1)
def _get_pipeline() -> VerificationPipeline:
    cfg = get_config()
    return VerificationPipeline(
        _get_labeler(),
        _get_submission_repo(),
        cfg.keyword_policy(),
        label_timeout_seconds=cfg.label_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Only close what was actually built.
    if _get_labeler.cache_info().currsize:
        await _get_labeler().aclose()
        _get_labeler.cache_clear()
    if _get_engine.cache_info().currsize:
        _get_engine().dispose()
        _get_submission_repo.cache_clear()
        _get_session_factory.cache_clear()
        _get_engine.cache_clear()
    _get_pipeline.cache_clear()


app = FastAPI(title="TreeProof Verification", lifespan=lifespan)


class VerifyTreeIn(BaseModel):
    image_ref: str | None = Field(
        default=None, validation_alias=AliasChoices("imageRef", "imageUrl")
    )


class HealthOut(BaseModel):
    status: str
    labeler: str


def _describe_request_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "Invalid request: " + "; ".join(parts)


@app.exception_handler(ValidationError)
async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed intake (bad JSON, wrong types, out-of-range query values) uses the same 400 contract."""
    return JSONResponse(
        status_code=400, content={"success": False, "message": _describe_request_errors(exc)}
    )


def _verdict_response(verdict: Verdict) -> JSONResponse:
    """Transport status is 500 only for upstream failures; success carries the verdict."""
    status_code = 500 if verdict.status == VerdictStatus.rejected_upstream_error else 200
    return JSONResponse(status_code=status_code, content=verdict.to_response())


@app.get("/api/health", response_model=HealthOut)
def health(labeler: BaseLabeler = Depends(_get_labeler)) -> HealthOut:
    return HealthOut(status="ok", labeler=labeler.get_model_card().name)


@app.post("/api/verifyTree")
async def verify_tree(
    body: VerifyTreeIn | None = None,
    pipeline: VerificationPipeline = Depends(_get_pipeline),
) -> JSONResponse:
    """Label and classify an already-uploaded image by URL. Nothing is persisted."""
    if body is None or body.image_ref is None or not body.image_ref.strip():
        raise ValidationError("No image URL provided")
    verdict = await pipeline.verify_labels_only(ImageRef(uri=body.image_ref.strip()))
    return _verdict_response(verdict)


@app.post("/api/trees")
async def submit_tree(
    request: Request,
    user_id: str | None = Query(default=None),
    user_email: str | None = Query(default=None),
    species: str | None = Query(default=None),
    planted_on: date | None = Query(default=None),
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
    image_url: str | None = Query(default=None),
    pipeline: VerificationPipeline = Depends(_get_pipeline),
) -> JSONResponse:
    """
    Full verification for an uploaded photo (raw image bytes as the request body).
    Accepted submissions are stored with their fingerprint; duplicates are rejected.
    """
    if user_id is None or not user_id.strip():
        raise ValidationError("User not logged in")
    data = await request.body()
    if not data:
        raise ValidationError("Please upload a photo!")
    image_format = probe_image_format(data)
    _log.debug("Received %s upload (%d bytes) from %s", image_format, len(data), user_id)

    submission = Submission(
        image=data,
        user_id=user_id.strip(),
        user_email=user_email,
        species=species,
        planted_on=planted_on,
        latitude=latitude,
        longitude=longitude,
        image_url=image_url,
    )
    verdict = await pipeline.verify(submission)
    return _verdict_response(verdict)
