import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tennisflow.config import Settings, settings as default_settings
from tennisflow.core.concurrency import advance_token
from tennisflow.core.exceptions import (
    AuthorizationError,
    IdempotencyKeyReusedError,
    InvalidStateError,
    NotFoundError,
    RentalReservedError,
    ValidationError,
)
from tennisflow.models.points import PointTransactionType
from tennisflow.models.rental import RentalStatus
from tennisflow.repositories.inventory_repository import InventoryRepository
from tennisflow.repositories.points_repository import PointsRepository
from tennisflow.repositories.rental_repository import RentalRepository
from tennisflow.repositories.stringing_repository import StringingRepository
from tennisflow.schemas.rental import RentalCreateRequest, RentalPayRequest, RentalResponse
from tennisflow.schemas.user import User as UserSchema
from tennisflow.services.point_service import PointService
from tennisflow.services.transaction_runner import run_in_transaction

logger = logging.getLogger(__name__)


class RentalService:
    """라켓 대여 생성 및 상태 전이"""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings
        self.rental_repo = RentalRepository(db)
        self.inventory_repo = InventoryRepository(db)
        self.stringing_repo = StringingRepository(db)
        self.points_repo = PointsRepository(db)
        self.point_service = PointService(db, settings=self.settings)

    def create_rental(
        self,
        user_id: Optional[int],
        request: RentalCreateRequest,
        idempotency_key: Optional[str] = None,
    ) -> Tuple[RentalResponse, bool]:
        """대여 생성

        대여 문서, 스트링 신청서 draft, 역참조, 포인트 차감을 한 트랜잭션으로 처리한다.

        Returns:
            (대여, replayed) - 같은 Idempotency-Key 로 이미 생성된 대여면 replayed=True
        """
        if idempotency_key:
            existing = self._find_replay(user_id, idempotency_key)
            if existing is not None:
                logger.info(f"Rental replayed for idempotency key {idempotency_key}")
                return existing, True

        # 1) 가용 수량 사전 확인 (트랜잭션 밖)
        racket = self.inventory_repo.get_racket(request.racket_id)
        if racket is None:
            raise NotFoundError("Racket not found", details={"racket_id": request.racket_id})
        if not racket.rental_enabled:
            raise RentalReservedError(
                "Racket is not offered for rental", details={"racket_id": racket.id}
            )
        available = self.inventory_repo.available_rental_quantity(racket)
        if available <= 0:
            raise RentalReservedError(
                details={"racket_id": racket.id, "available": available}
            )

        # 2) 금액 구성
        fee = racket.rental_fee_for(request.days)
        if fee is None:
            raise ValidationError(
                "Rental fee is not configured for this period",
                details={"racket_id": racket.id, "days": request.days},
            )
        deposit = racket.rental_deposit or 0

        service_price = 0
        string_product = None
        if request.stringing is not None:
            string_product = self.inventory_repo.get_product(
                request.stringing.string_product_id
            )
            if string_product is None:
                raise NotFoundError(
                    "String product not found",
                    details={"product_id": request.stringing.string_product_id},
                )
            service_price = string_product.mounting_fee or 0

        original_total = fee + deposit + service_price

        # 3) 포인트 정책 - 보증금은 포인트 사용 대상이 아님
        points_used = self.point_service.plan_points_spend(
            user_id, request.points_to_use, original_total - deposit
        )
        total = original_total - points_used

        def work(db: Session) -> int:
            rental = self.rental_repo.add(
                racket_id=racket.id,
                user_id=user_id,
                days=request.days,
                fee=fee,
                deposit=deposit,
                service_price=service_price,
                original_total=original_total,
                points_used=points_used,
                total=total,
                status=RentalStatus.PENDING.value,
                payment=request.payment.model_dump(mode="json") if request.payment else None,
                shipping=request.shipping.model_dump(mode="json") if request.shipping else None,
                idempotency_key=idempotency_key,
            )

            if request.stringing is not None:
                application = self.stringing_repo.create_draft(
                    payment_source=f"rental:{rental.id}",
                    pickup_method=request.stringing.pickup_method.value,
                    service_amount=service_price,
                    user_id=user_id,
                    rental_id=rental.id,
                    meta={
                        "racket_id": racket.id,
                        "string_product_id": string_product.id,
                        "string_name": string_product.name,
                        "tension": request.stringing.tension,
                        "memo": request.stringing.memo,
                    },
                )
                rental.stringing_application_id = application.id
                db.flush()

            if points_used > 0:
                self.point_service.deduct_points(
                    user_id=user_id,
                    amount=points_used,
                    type=PointTransactionType.SPEND_ON_RENTAL,
                    ref_key=f"rental:{rental.id}:spend",
                    ref={"rental_id": rental.id},
                    reason="대여 결제 포인트 사용",
                    commit=False,
                )
            return rental.id

        try:
            rental_id = run_in_transaction(
                self.db,
                work,
                max_attempts=self.settings.TX_MAX_ATTEMPTS,
                backoff_seconds=self.settings.TX_RETRY_BACKOFF_SECONDS,
                label="create_rental",
            )
        except IntegrityError:
            # 같은 Idempotency-Key 로 동시에 들어온 요청이 먼저 커밋한 경우
            if idempotency_key:
                existing = self._find_replay(user_id, idempotency_key)
                if existing is not None:
                    return existing, True
            raise

        logger.info(
            f"Rental {rental_id} created for user {user_id}: racket={racket.id} days={request.days} total={total} points={points_used}"
        )
        return self.rental_repo.get_by_id(rental_id), False

    def _find_replay(self, user_id: Optional[int], idempotency_key: str) -> Optional[RentalResponse]:
        """같은 키로 저장된 대여. 다른 사용자가 만든 대여면 재생하지 않는다"""
        existing = self.rental_repo.get_by_idempotency_key(idempotency_key)
        if existing is not None and existing.user_id != user_id:
            logger.warning(
                f"Idempotency key {idempotency_key} reused by user {user_id} (rental {existing.id})"
            )
            raise IdempotencyKeyReusedError()
        return existing

    # ------------------------------------------------------------------
    # 상태 전이
    # ------------------------------------------------------------------

    def _get_for_actor(self, rental_id: int, actor: UserSchema, owner_only: bool = False):
        rental = self.rental_repo.get_model(rental_id)
        if rental is None:
            raise NotFoundError("Rental not found", details={"rental_id": rental_id})
        if owner_only and rental.user_id != actor.id and not actor.is_admin:
            raise AuthorizationError("Not the owner of this rental")
        return rental

    def _transition(
        self,
        rental_id: int,
        actor: UserSchema,
        from_statuses: Tuple[RentalStatus, ...],
        to_status: RentalStatus,
        owner_only: bool = False,
        extra_values: Optional[dict] = None,
    ) -> Tuple[RentalResponse, str]:
        """조건부 UPDATE 로 상태 전이. 이미 목표 상태면 멱등 성공

        Returns:
            (대여, 전이 전 상태)
        """
        rental = self._get_for_actor(rental_id, actor, owner_only=owner_only)
        previous = rental.status
        if previous == to_status.value:
            return self.rental_repo.get_by_id(rental_id), previous
        if previous not in [s.value for s in from_statuses]:
            raise InvalidStateError(
                details={"rental_id": rental_id, "status": previous, "target": to_status.value}
            )

        values = {"status": to_status.value, "updated_at": advance_token(rental.updated_at)}
        values.update(extra_values or {})
        matched = self.rental_repo.update_where(
            rental_id, {"status": previous}, values
        )
        if matched == 0:
            self.db.rollback()
            current = self.rental_repo.refresh_by_id(rental_id)
            if current is None:
                raise NotFoundError("Rental not found", details={"rental_id": rental_id})
            if current.status == to_status.value:
                return current, previous
            raise InvalidStateError(
                details={"rental_id": rental_id, "status": current.status, "target": to_status.value}
            )
        self.db.commit()
        logger.info(f"Rental {rental_id}: {previous} -> {to_status.value} by user {actor.id}")
        return self.rental_repo.refresh_by_id(rental_id), previous

    def pay(self, rental_id: int, actor: UserSchema, request: RentalPayRequest) -> RentalResponse:
        rental, _ = self._transition(
            rental_id,
            actor,
            (RentalStatus.PENDING,),
            RentalStatus.PAID,
            owner_only=True,
            extra_values={"payment": request.payment.model_dump(mode="json")},
        )
        return rental

    def mark_out(self, rental_id: int, actor: UserSchema) -> RentalResponse:
        rental, _ = self._transition(
            rental_id, actor, (RentalStatus.PAID,), RentalStatus.OUT
        )
        return rental

    def mark_returned(self, rental_id: int, actor: UserSchema) -> RentalResponse:
        rental, _ = self._transition(
            rental_id, actor, (RentalStatus.OUT,), RentalStatus.RETURNED
        )
        return rental

    def cancel(self, rental_id: int, actor: UserSchema) -> RentalResponse:
        """대여 취소 - 사용한 포인트는 커밋 이후 복원"""
        rental, previous = self._transition(
            rental_id,
            actor,
            (RentalStatus.PENDING, RentalStatus.PAID),
            RentalStatus.CANCELED,
        )
        if rental.user_id is not None:
            self.point_service.safe_side_effect(
                f"rental:{rental_id}:spend_reversal",
                self._restore_spent_points,
                rental,
            )
        return rental

    def _restore_spent_points(self, rental: RentalResponse):
        spend = self.points_repo.get_by_ref_key(f"rental:{rental.id}:spend")
        amount = abs(spend.amount) if spend is not None else rental.points_used
        if not amount:
            return None
        return self.point_service.grant_points(
            user_id=rental.user_id,
            amount=amount,
            type=PointTransactionType.REVERSAL,
            ref_key=f"rental:{rental.id}:spend_reversal",
            ref={"rental_id": rental.id},
            reason="대여 취소 포인트 복원",
        )
