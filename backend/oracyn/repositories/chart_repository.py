"""Repository for charts."""

from typing import List, Optional

from sqlalchemy.orm import Session

from oracyn.db.models import Chart


class ChartRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_owned(self, chart_id: int, user_id: int) -> Optional[Chart]:
        return (
            self.db.query(Chart)
            .filter(Chart.id == chart_id, Chart.user_id == user_id)
            .first()
        )

    def list_for_user(self, user_id: int) -> List[Chart]:
        return (
            self.db.query(Chart)
            .filter(Chart.user_id == user_id)
            .order_by(Chart.created_at.desc(), Chart.id.desc())
            .all()
        )

    def list_for_chat(self, chat_id: int, user_id: int) -> List[Chart]:
        return (
            self.db.query(Chart)
            .filter(Chart.chat_id == chat_id, Chart.user_id == user_id)
            .order_by(Chart.created_at.desc(), Chart.id.desc())
            .all()
        )

    def create(self, **fields) -> Chart:
        chart = Chart(**fields)
        self.db.add(chart)
        self.db.commit()
        self.db.refresh(chart)
        return chart

    def update(self, chart: Chart, **fields) -> Chart:
        for name, value in fields.items():
            setattr(chart, name, value)
        self.db.commit()
        self.db.refresh(chart)
        return chart

    def delete(self, chart: Chart) -> None:
        self.db.delete(chart)
        self.db.commit()
