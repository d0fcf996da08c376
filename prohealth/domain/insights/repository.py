"""Insight repository - Audit log of AI assistant interactions"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import AIInteractionLog


class InsightRepository:
    @staticmethod
    def log_interaction(
        db: Session,
        user_id: str,
        input_text: str,
        response: str,
        status: str,
        error: Optional[str] = None,
    ) -> AIInteractionLog:
        entry = AIInteractionLog(
            user_id=user_id,
            input=input_text,
            response=response,
            status=status,
            error=error,
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry
