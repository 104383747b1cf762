from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from tennisflow.models.base import utc_now
from tennisflow.models.stringing import StringingApplication


class StringingRepository:
    """스트링 교체 신청서 draft 생성"""

    def __init__(self, db: Session):
        self.db = db

    def create_draft(
        self,
        payment_source: str,
        pickup_method: str,
        service_amount: int,
        user_id: Optional[int] = None,
        order_id: Optional[int] = None,
        rental_id: Optional[int] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> StringingApplication:
        application = StringingApplication(
            order_id=order_id,
            rental_id=rental_id,
            user_id=user_id,
            status="draft",
            service_amount=service_amount,
            payment_source=payment_source,
            pickup_method=pickup_method,
            meta=meta or {},
            history=[
                {
                    "status": "draft",
                    "date": utc_now().isoformat(),
                    "description": f"{payment_source} 에서 자동 생성",
                }
            ],
        )
        self.db.add(application)
        self.db.flush()
        return application
