from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..middleware.request_logging import client_address
from ..schemas import ClientInfo, QuizResultSubmission
from ..services.quiz_results_service import QuizResultService

router = APIRouter(tags=["Quiz Results"])


def get_service(db: Session = Depends(get_db)) -> QuizResultService:
    return QuizResultService(db)


@router.post("", status_code=status.HTTP_201_CREATED, summary="Submit quiz result")
def submit_quiz_result(
    request: Request,
    payload: QuizResultSubmission = Body(...),
    service: QuizResultService = Depends(get_service),
):
    client = ClientInfo(
        ip_address=client_address(request),
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
    )
    result = service.create(payload, client)
    return {
        "success": True,
        "message": "Quiz result saved successfully",
        "data": result.to_dict(),
    }


@router.get("/stats", summary="Get aggregated statistics")
def quiz_result_stats(
    quiz_id: Optional[str] = Query(None, min_length=1, max_length=100),
    service: QuizResultService = Depends(get_service),
):
    return {"success": True, "data": service.stats(quiz_id=quiz_id)}


@router.get("/analytics", summary="Get detailed analytics")
def quiz_result_analytics(
    quiz_id: Optional[str] = Query(None, min_length=1, max_length=100),
    days: int = Query(30, ge=1, le=365),
    service: QuizResultService = Depends(get_service),
):
    return {"success": True, "data": service.analytics(quiz_id=quiz_id, days=days)}
