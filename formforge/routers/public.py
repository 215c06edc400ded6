import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from formforge.guards import RateLimiter, SubmissionGuard
from formforge.models.form import PublicForm
from formforge.models.response import SubmissionIn, SubmissionResult
from formforge.models.user import User
from formforge.security import get_optional_user
from formforge.services import capture
from formforge.services import forms as form_service

logger = logging.getLogger(__name__)
router = APIRouter()


def get_client_ip(request: Request) -> Optional[str]:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else None


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_submission_guard(request: Request) -> SubmissionGuard:
    return request.app.state.submission_guard


async def enforce_rate_limit(
    request: Request,
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
):
    client_ip = get_client_ip(request) or "unknown"
    if not limiter.try_acquire(client_ip):
        logger.warning(f"Rate limit exceeded for IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many submissions. Please try again later.",
        )


@router.get("/{slug}", response_model=PublicForm, status_code=200)
async def get_public_form(slug: str):
    return await form_service.get_public_form(slug)


@router.post(
    "/{slug}/submit",
    response_model=SubmissionResult,
    status_code=201,
    dependencies=[Depends(enforce_rate_limit)],
)
async def submit_response(
    slug: str,
    submission: SubmissionIn,
    request: Request,
    guard: Annotated[SubmissionGuard, Depends(get_submission_guard)],
    respondent: Annotated[Optional[User], Depends(get_optional_user)],
):
    return await capture.submit_response(
        slug,
        submission,
        client_ip=get_client_ip(request),
        respondent_id=respondent.id if respondent else None,
        guard=guard,
    )
