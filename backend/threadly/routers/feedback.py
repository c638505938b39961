"""
Feedback Router

Accepts explicit user feedback on a suggested reply and forwards it to the
analytics side channel without waiting for delivery.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from threadly.services.analytics import FeedbackRecord
from threadly.services.llm.orchestrator import AnalysisService, get_analysis_service

router = APIRouter()

Service = Annotated[AnalysisService, Depends(get_analysis_service)]


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def submit_feedback(payload: FeedbackRecord, service: Service):
    service.emitter.emit(service.analytics.record_feedback(payload), kind="feedback")
    return {"status": "accepted", "feedback_id": payload.feedback_id}
