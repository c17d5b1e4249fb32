# oracyn/api/charts.py
"""
Chart endpoints.

Charts belong to a chat and to the user who owns it. They are either
created directly from client-supplied data or generated by the AI service
from a natural-language prompt.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from oracyn.api.deps import get_chart_service, get_current_user
from oracyn.db.models import User
from oracyn.schemas.pydantic_schemas import (
    ChartCreate,
    ChartGenerate,
    ChartResponse,
    ChartUpdate,
    MessageResponse,
)
from oracyn.services.chart_service import ChartService

router = APIRouter(prefix="/api/charts", tags=["charts"])


@router.get("", response_model=List[ChartResponse])
def list_charts(
    current_user: User = Depends(get_current_user),
    charts: ChartService = Depends(get_chart_service),
):
    return charts.list_for_user(current_user.id)


@router.post("", response_model=ChartResponse, status_code=status.HTTP_201_CREATED)
def create_chart(
    data: ChartCreate,
    current_user: User = Depends(get_current_user),
    charts: ChartService = Depends(get_chart_service),
):
    return charts.create(
        data.chat_id,
        current_user.id,
        type=data.type,
        label=data.label,
        data=data.data,
        config=data.config,
        created_from=data.created_from,
    )


# Fixed paths are declared before /{chart_id} so they are not captured by it
@router.post("/generate", response_model=ChartResponse, status_code=status.HTTP_201_CREATED)
def generate_chart(
    data: ChartGenerate,
    current_user: User = Depends(get_current_user),
    charts: ChartService = Depends(get_chart_service),
):
    """Generate a chart from a prompt. Fails with 502 when the AI service does."""
    return charts.generate(data.chat_id, current_user.id, data.prompt, data.chart_type)


@router.get("/chat/{chat_id}", response_model=List[ChartResponse])
def list_chat_charts(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    charts: ChartService = Depends(get_chart_service),
):
    return charts.list_for_chat(chat_id, current_user.id)


@router.get("/{chart_id}", response_model=ChartResponse)
def get_chart(
    chart_id: int,
    current_user: User = Depends(get_current_user),
    charts: ChartService = Depends(get_chart_service),
):
    return charts.get(chart_id, current_user.id)


@router.put("/{chart_id}", response_model=ChartResponse)
def update_chart(
    chart_id: int,
    data: ChartUpdate,
    current_user: User = Depends(get_current_user),
    charts: ChartService = Depends(get_chart_service),
):
    return charts.update(chart_id, current_user.id, label=data.label, data=data.data, config=data.config)


@router.delete("/{chart_id}", response_model=MessageResponse)
def delete_chart(
    chart_id: int,
    current_user: User = Depends(get_current_user),
    charts: ChartService = Depends(get_chart_service),
):
    charts.delete(chart_id, current_user.id)
    return MessageResponse(message="Chart deleted successfully")
