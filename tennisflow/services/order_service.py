import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tennisflow.config import Settings, settings as default_settings
from tennisflow.core import points_policy
from tennisflow.core.concurrency import advance_token, raise_patch_failure
from tennisflow.core.exceptions import (
    AuthorizationError,
    IdempotencyKeyReusedError,
    InvalidStateError,
    NotFoundError,
    OrderLockedError,
    OutOfStockError,
    StaleWriteError,
)
from tennisflow.models.base import utc_now
from tennisflow.models.order import DeliveryMethod, OrderStatus, PaymentStatus
from tennisflow.models.points import PointTransactionType
from tennisflow.repositories.inventory_repository import InventoryRepository
from tennisflow.repositories.order_repository import OrderRepository
from tennisflow.repositories.points_repository import PointsRepository
from tennisflow.repositories.stringing_repository import StringingRepository
from tennisflow.schemas.order import (
    CancelReason,
    OrderCreateRequest,
    OrderResponse,
    OrderStatusUpdateRequest,
)
from tennisflow.schemas.user import User as UserSchema
from tennisflow.services.point_service import PointService
from tennisflow.services.transaction_runner import run_in_transaction

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (OrderStatus.CANCELED.value, OrderStatus.REFUNDED.value)

# 진행 단계 (되돌림 판단용)
PHASE_INDEX = {
    OrderStatus.PENDING.value: 0,
    OrderStatus.PAID.value: 1,
    OrderStatus.SHIPPING.value: 2,
    OrderStatus.DELIVERED.value: 3,
    OrderStatus.CONFIRMED.value: 4,
}

# 결제가 이뤄진 것으로 보는 상태 (적립 회수 대상)
PAID_STATUSES = (
    OrderStatus.PAID.value,
    OrderStatus.SHIPPING.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.CONFIRMED.value,
)

CANCELABLE_STATUSES = (OrderStatus.PENDING.value, OrderStatus.PAID.value)


def payment_status_for(status: str) -> str:
    if status in (
        OrderStatus.PAID.value,
        OrderStatus.SHIPPING.value,
        OrderStatus.DELIVERED.value,
        OrderStatus.CONFIRMED.value,
    ):
        return PaymentStatus.PAID.value
    if status == OrderStatus.CANCELED.value:
        return PaymentStatus.CANCELED.value
    if status == OrderStatus.REFUNDED.value:
        return PaymentStatus.REFUNDED.value
    return PaymentStatus.AWAITING.value


def shipping_fee_for(subtotal: int, delivery_method: DeliveryMethod, settings: Settings) -> int:
    if subtotal <= 0 or delivery_method == DeliveryMethod.VISIT:
        return 0
    if subtotal >= settings.FREE_SHIPPING_THRESHOLD:
        return 0
    return settings.SHIPPING_FEE


def _history_entry(status: str, description: str) -> Dict[str, str]:
    return {"status": status, "date": utc_now().isoformat(), "description": description}


class OrderService:
    """주문 생성, 상태 변경, 구매확정"""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings
        self.order_repo = OrderRepository(db)
        self.inventory_repo = InventoryRepository(db)
        self.stringing_repo = StringingRepository(db)
        self.points_repo = PointsRepository(db)
        self.point_service = PointService(db, settings=self.settings)

    # ------------------------------------------------------------------
    # 생성
    # ------------------------------------------------------------------

    def create_order(
        self,
        user_id: Optional[int],
        request: OrderCreateRequest,
        idempotency_key: Optional[str] = None,
    ) -> Tuple[OrderResponse, bool]:
        """주문 생성

        재고 차감, 주문 추가, 스트링 신청서 draft, 포인트 차감을 한 트랜잭션으로 처리한다.

        Returns:
            (주문, replayed)
        """
        if idempotency_key:
            existing = self._find_replay(user_id, idempotency_key)
            if existing is not None:
                logger.info(f"Order replayed for idempotency key {idempotency_key}")
                return existing, True

        quantities: Dict[int, int] = {}
        for item in request.items:
            quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity

        # 1) 재고 사전 확인 (트랜잭션 밖)
        products = self.inventory_repo.get_products(quantities.keys())
        for product_id, quantity in quantities.items():
            product = products.get(product_id)
            if product is None:
                raise NotFoundError("Product not found", details={"product_id": product_id})
            if product.stock < quantity:
                raise OutOfStockError(
                    details={
                        "product_id": product_id,
                        "requested": quantity,
                        "stock": product.stock,
                    }
                )

        # 2) 스냅샷 및 금액 (서버 계산)
        items: List[dict] = []
        for product_id, quantity in quantities.items():
            product = products[product_id]
            items.append(
                {
                    "product_id": product.id,
                    "name": product.name,
                    "price": product.price,
                    "mounting_fee": product.mounting_fee or 0,
                    "quantity": quantity,
                }
            )
        subtotal = sum(i["price"] * i["quantity"] for i in items)
        service_fee = (
            sum(i["mounting_fee"] * i["quantity"] for i in items)
            if request.with_string_service
            else 0
        )
        shipping_fee = shipping_fee_for(
            subtotal, request.shipping_info.delivery_method, self.settings
        )
        original_total = subtotal + service_fee + shipping_fee

        # 3) 포인트 - 배송비는 포인트 사용 대상이 아님
        points_used = self.point_service.plan_points_spend(
            user_id, request.points_to_use, original_total - shipping_fee
        )
        total_price = original_total - points_used

        def work(db: Session) -> int:
            for product_id, quantity in quantities.items():
                if not self.inventory_repo.decrement_stock(product_id, quantity):
                    raise OutOfStockError(
                        details={"product_id": product_id, "requested": quantity}
                    )

            order = self.order_repo.add(
                user_id=user_id,
                items=items,
                shipping_info=request.shipping_info.model_dump(mode="json"),
                payment_info=(
                    request.payment_info.model_dump(mode="json")
                    if request.payment_info
                    else None
                ),
                subtotal=subtotal,
                service_fee=service_fee,
                shipping_fee=shipping_fee,
                original_total=original_total,
                points_used=points_used,
                total_price=total_price,
                status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.AWAITING.value,
                history=[_history_entry(OrderStatus.PENDING.value, "주문 생성")],
                idempotency_key=idempotency_key,
            )

            if request.with_string_service:
                application = self.stringing_repo.create_draft(
                    payment_source=f"order:{order.id}",
                    pickup_method=request.stringing_pickup_method.value,
                    service_amount=service_fee,
                    user_id=user_id,
                    order_id=order.id,
                    meta={"items": [i["product_id"] for i in items]},
                )
                order.stringing_application_id = application.id
                db.flush()

            if points_used > 0:
                self.point_service.deduct_points(
                    user_id=user_id,
                    amount=points_used,
                    type=PointTransactionType.SPEND_ON_ORDER,
                    ref_key=f"order:{order.id}:spend",
                    ref={"order_id": order.id},
                    reason="주문 결제 포인트 사용",
                    commit=False,
                )
            return order.id

        try:
            order_id = run_in_transaction(
                self.db,
                work,
                max_attempts=self.settings.TX_MAX_ATTEMPTS,
                backoff_seconds=self.settings.TX_RETRY_BACKOFF_SECONDS,
                label="create_order",
            )
        except IntegrityError:
            if idempotency_key:
                existing = self._find_replay(user_id, idempotency_key)
                if existing is not None:
                    return existing, True
            raise

        logger.info(
            f"Order {order_id} created for user {user_id}: total={total_price} points={points_used} items={len(items)}"
        )
        return self.order_repo.get_by_id(order_id), False

    def _find_replay(self, user_id: Optional[int], idempotency_key: str) -> Optional[OrderResponse]:
        existing = self.order_repo.get_by_idempotency_key(idempotency_key)
        if existing is not None and existing.user_id != user_id:
            logger.warning(
                f"Idempotency key {idempotency_key} reused by user {user_id} (order {existing.id})"
            )
            raise IdempotencyKeyReusedError()
        return existing

    # ------------------------------------------------------------------
    # 상태 변경 (낙관적 잠금)
    # ------------------------------------------------------------------

    def update_status(
        self,
        order_id: int,
        actor: UserSchema,
        request: OrderStatusUpdateRequest,
        client_seen: Optional[datetime] = None,
    ) -> OrderResponse:
        """주문 상태 변경

        client_seen 이 있으면 updated_at 이 같을 때만 갱신한다. 갱신 0건이면
        conflict(변경됨) / not_found(삭제됨) 로 구분해 던진다.
        취소/환불의 포인트 복원과 적립 회수는 커밋 이후 수행하며 실패는 기록만 한다.
        """
        order = self.order_repo.get_model(order_id)
        if order is None:
            raise_patch_failure(client_seen is not None, False, "order", order_id)
        if order.user_id != actor.id and not actor.is_admin:
            raise AuthorizationError("Not the owner of this order")

        previous = order.status
        target = request.status.value
        if previous in TERMINAL_STATUSES:
            raise OrderLockedError(details={"order_id": order_id, "status": previous})
        if target == previous:
            return self.order_repo.get_by_id(order_id)

        if target == OrderStatus.CANCELED.value:
            if previous not in CANCELABLE_STATUSES:
                raise InvalidStateError(
                    "Only 대기중/결제완료 orders can be canceled",
                    details={"order_id": order_id, "status": previous},
                )
            if not actor.is_admin and previous != OrderStatus.PENDING.value:
                raise AuthorizationError("Paid orders can only be canceled by an admin")
        elif not actor.is_admin:
            raise AuthorizationError("Admin access required")

        description = self._describe_transition(previous, target, request)
        values = {
            "status": target,
            "payment_status": payment_status_for(target),
            "history": list(order.history or []) + [_history_entry(target, description)],
            "updated_at": advance_token(order.updated_at),
        }
        if target == OrderStatus.CANCELED.value:
            values["cancel_reason"] = request.cancel_reason.value
            values["cancel_reason_detail"] = (
                request.cancel_reason_detail.strip()
                if request.cancel_reason == CancelReason.OTHER
                else None
            )

        # 읽은 시점의 상태를 조건으로 건다 (그 사이 취소/환불된 주문은 덮어쓰지 않음)
        matched = self.order_repo.update_if_unmodified(
            order_id, client_seen, values, conditions={"status": previous}
        )
        if matched == 0:
            self.db.rollback()
            self._raise_update_failure(order_id, previous, client_seen)
        self.db.commit()
        logger.info(f"Order {order_id}: {previous} -> {target} by user {actor.id}")

        updated = self.order_repo.refresh_by_id(order_id)
        if target in TERMINAL_STATUSES and updated.user_id is not None:
            self._after_cancel_or_refund(updated, previous)
        return updated

    def _raise_update_failure(
        self, order_id: int, previous: str, client_seen: Optional[datetime]
    ) -> None:
        current = self.order_repo.refresh_by_id(order_id)
        if current is None:
            raise_patch_failure(client_seen is not None, False, "order", order_id)
        if current.status in TERMINAL_STATUSES:
            raise OrderLockedError(details={"order_id": order_id, "status": current.status})
        if current.status != previous:
            raise StaleWriteError(
                details={"resource": "order", "id": order_id, "status": current.status}
            )
        raise_patch_failure(client_seen is not None, True, "order", order_id)

    @staticmethod
    def _describe_transition(previous: str, target: str, request: OrderStatusUpdateRequest) -> str:
        if target == OrderStatus.CANCELED.value:
            reason = request.cancel_reason.value
            if request.cancel_reason == CancelReason.OTHER:
                reason = f"{reason} ({request.cancel_reason_detail.strip()})"
            return f"주문 취소: {reason}"
        if target == OrderStatus.REFUNDED.value:
            return "환불 처리"
        if PHASE_INDEX.get(target, 0) < PHASE_INDEX.get(previous, 0):
            return f"상태 되돌림: {previous} → {target}"
        return f"상태 변경: {previous} → {target}"

    def _after_cancel_or_refund(self, order: OrderResponse, previous: str) -> None:
        self.point_service.safe_side_effect(
            f"order:{order.id}:spend_reversal", self._restore_spent_points, order
        )
        if previous in PAID_STATUSES:
            self.point_service.safe_side_effect(
                f"order_reward_revoke:{order.id}", self._revoke_order_reward, order
            )

    def _restore_spent_points(self, order: OrderResponse):
        spend = self.points_repo.get_by_ref_key(f"order:{order.id}:spend")
        amount = abs(spend.amount) if spend is not None else order.points_used
        if not amount:
            return None
        return self.point_service.grant_points(
            user_id=order.user_id,
            amount=amount,
            type=PointTransactionType.REVERSAL,
            ref_key=f"order:{order.id}:spend_reversal",
            ref={"order_id": order.id},
            reason="주문 취소/환불 포인트 복원",
        )

    def _revoke_order_reward(self, order: OrderResponse):
        """지급된 구매 적립을 회수 - 잔액이 부족하면 부채로 남는다"""
        reward = self.points_repo.get_by_ref_key(f"order_reward:{order.id}")
        if reward is None or reward.amount <= 0:
            return None
        return self.point_service.deduct_points(
            user_id=order.user_id,
            amount=reward.amount,
            type=PointTransactionType.REVERSAL,
            ref_key=f"order_reward_revoke:{order.id}",
            ref={"order_id": order.id},
            reason="환불에 따른 적립 회수",
            allow_negative_balance=True,
        )

    # ------------------------------------------------------------------
    # 구매확정
    # ------------------------------------------------------------------

    def confirm_purchase(self, order_id: int, actor: UserSchema) -> OrderResponse:
        """배송완료 → 구매확정. 결제금액의 1% 적립 (주문당 1회)"""
        order = self.order_repo.get_model(order_id)
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": order_id})
        if order.user_id is None or order.user_id != actor.id:
            raise AuthorizationError("Only the buyer can confirm the purchase")

        if order.status != OrderStatus.CONFIRMED.value:
            if order.status != OrderStatus.DELIVERED.value:
                raise InvalidStateError(
                    "Only delivered orders can be confirmed",
                    details={"order_id": order_id, "status": order.status},
                )
            values = {
                "status": OrderStatus.CONFIRMED.value,
                "payment_status": payment_status_for(OrderStatus.CONFIRMED.value),
                "user_confirmed_at": utc_now(),
                "history": list(order.history or [])
                + [_history_entry(OrderStatus.CONFIRMED.value, "구매확정")],
                "updated_at": advance_token(order.updated_at),
            }
            matched = self.order_repo.update_where(
                order_id, {"status": OrderStatus.DELIVERED.value}, values
            )
            if matched == 0:
                self.db.rollback()
                current = self.order_repo.refresh_by_id(order_id)
                if current is None or current.status != OrderStatus.CONFIRMED.value:
                    raise InvalidStateError(details={"order_id": order_id})
            else:
                self.db.commit()
                logger.info(f"Order {order_id} confirmed by user {actor.id}")

        confirmed = self.order_repo.refresh_by_id(order_id)
        earn = points_policy.calc_order_earn_points(
            confirmed.total_price, self.settings.ORDER_EARN_RATE
        )
        if earn > 0:
            self.point_service.safe_side_effect(
                f"order_reward:{order_id}",
                self.point_service.grant_points,
                user_id=confirmed.user_id,
                amount=earn,
                type=PointTransactionType.ORDER_REWARD,
                ref_key=f"order_reward:{order_id}",
                ref={"order_id": order_id},
                reason="구매확정 적립",
            )
        return confirmed
