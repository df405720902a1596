"""
회차 잠금 해제(코인 결제) 서비스

독자 코인 차감 → 작가 수익 배분 → 잠금 해제 영수증 기록을 하나의 DB
트랜잭션으로 처리한다.

상태 전이:
    IDLE → CHECKING_DUPLICATE → DEDUCTING → [CREDITING] → RECORDING → DONE
    실패 시 FAILED, 보상 경로는
    CREDITING → COMPENSATE_DEDUCT
    RECORDING → COMPENSATE_CREDIT → COMPENSATE_DEDUCT
보상(이미 적용된 배분/차감 되돌리기)은 트랜잭션 롤백 한 번으로 역순 적용된다.
잔액 변경은 `coins = coins - :cost WHERE coins >= :cost` 형태의 조건부
원자 연산이며, 영수증 중복은 (profile_id, novel_id, chapter_number) 유니크
제약이 최종적으로 막는다.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Union
import enum
import logging
import uuid

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from novel_api.core.config import settings
from novel_api.models.chapter_unlock import ChapterUnlock
from novel_api.models.profile import Profile, BENEFICIARY_ROLES
from novel_api.services.entitlement_service import (
    chapter_price,
    get_chapter_by_number,
    is_published,
    parse_chapter_ref,
    resolve_novel,
    utcnow,
)
from novel_api.services.profile_service import get_coin_balance

logger = logging.getLogger(__name__)


INSUFFICIENT_COINS_MESSAGE = "Not enough coins to unlock this chapter"
UNLOCK_FAILED_MESSAGE = "Failed to unlock chapter. Please try again."


class UnlockState(str, enum.Enum):
    IDLE = "IDLE"
    CHECKING_DUPLICATE = "CHECKING_DUPLICATE"
    DEDUCTING = "DEDUCTING"
    CREDITING = "CREDITING"
    RECORDING = "RECORDING"
    DONE = "DONE"
    FAILED = "FAILED"
    COMPENSATE_CREDIT = "COMPENSATE_CREDIT"
    COMPENSATE_DEDUCT = "COMPENSATE_DEDUCT"


class UnlockFailureReason(str, enum.Enum):
    INVALID_REQUEST = "invalid-request"
    UNLOCK_IN_PROGRESS = "unlock-in-progress"
    DUPLICATE_CHECK_FAILED = "duplicate-check-failed"
    INSUFFICIENT_COINS = "insufficient-coins"
    DEDUCT_FAILED = "deduct-failed"
    BENEFICIARY_NOT_FOUND = "beneficiary-not-found"
    CREDIT_FAILED = "credit-failed"
    RECORD_FAILED = "record-failed"
    COMPENSATION_FAILED = "compensation-failed"


class UnlockError(Exception):
    """잠금 해제 실패. reason은 진단용이며 사용자에게는 노출하지 않는다."""

    def __init__(self, reason: UnlockFailureReason, detail: str = "", states: Optional[List[str]] = None):
        self.reason = reason
        self.detail = detail
        self.states = states or []
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


class InvalidUnlockRequest(UnlockError):
    def __init__(self, detail: str, states: Optional[List[str]] = None, not_found: bool = False):
        self.not_found = not_found
        super().__init__(UnlockFailureReason.INVALID_REQUEST, detail, states)


class InsufficientCoins(UnlockError):
    def __init__(self, balance: int, cost: int, states: Optional[List[str]] = None):
        self.balance = balance
        self.cost = cost
        super().__init__(UnlockFailureReason.INSUFFICIENT_COINS, f"balance={balance}, cost={cost}", states)


def compute_author_share(cost: int) -> int:
    """작가 배분액 = floor(cost * 분자 / 분모). 나머지는 플랫폼 수수료"""
    return cost * settings.AUTHOR_SHARE_NUMERATOR // settings.AUTHOR_SHARE_DENOMINATOR


@dataclass
class UnlockAttempt:
    reader_id: uuid.UUID
    novel_id: Optional[uuid.UUID] = None
    chapter_number: Optional[int] = None
    state: UnlockState = UnlockState.IDLE
    history: List[UnlockState] = field(default_factory=lambda: [UnlockState.IDLE])
    deducted: bool = False
    credited: bool = False

    def advance(self, state: UnlockState) -> None:
        logger.debug(
            f"[unlock] {self.reader_id}/{self.novel_id}/{self.chapter_number}: "
            f"{self.state.value} -> {state.value}"
        )
        self.state = state
        self.history.append(state)

    @property
    def states(self) -> List[str]:
        return [s.value for s in self.history]


@dataclass
class UnlockResult:
    charged: bool
    cost: int
    author_share: int
    states: List[str]
    unlock: Optional[ChapterUnlock] = None
    balance_after: Optional[int] = None
    message: str = ""


class ChapterUnlockService:
    def __init__(self, db: AsyncSession, redis: Optional[Redis] = None):
        self.db = db
        self.redis = redis

    async def unlock(
        self,
        reader_id: uuid.UUID,
        novel_ref: Union[str, uuid.UUID],
        chapter_ref: Union[str, int],
        idempotency_key: Optional[uuid.UUID] = None,
    ) -> UnlockResult:
        """회차 잠금 해제"""
        chapter_number = parse_chapter_ref(chapter_ref)
        if chapter_number is None:
            raise InvalidUnlockRequest(f"invalid chapter reference {chapter_ref!r}")
        novel = await resolve_novel(self.db, novel_ref)
        if novel is None:
            raise InvalidUnlockRequest(f"novel {novel_ref!r} not found", not_found=True)
        chapter = await get_chapter_by_number(self.db, novel.id, chapter_number)
        if chapter is None:
            raise InvalidUnlockRequest(f"chapter {chapter_number} of novel {novel.id} not found", not_found=True)

        # 롤백 후 만료된 ORM 속성에 접근하지 않도록 미리 꺼내둔다
        novel_id = novel.id
        beneficiary_id = novel.author_profile_id
        cost = chapter_price(chapter)
        share = compute_author_share(cost) if settings.REVENUE_SHARE_ENABLED else 0
        attempt = UnlockAttempt(reader_id=reader_id, novel_id=novel_id, chapter_number=chapter_number)

        if is_published(chapter, utcnow()):
            attempt.advance(UnlockState.DONE)
            return UnlockResult(
                charged=False, cost=0, author_share=0, states=attempt.states,
                balance_after=await get_coin_balance(self.db, reader_id),
                message="Chapter is already free to read",
            )

        guard_key = f"unlock:{reader_id}:{novel_id}:{chapter_number}"
        if not await self._acquire_guard(guard_key):
            attempt.advance(UnlockState.FAILED)
            raise UnlockError(UnlockFailureReason.UNLOCK_IN_PROGRESS, guard_key, attempt.states)
        try:
            return await self._run(attempt, cost, share, beneficiary_id, idempotency_key)
        finally:
            await self._release_guard(guard_key)

    async def _run(
        self,
        attempt: UnlockAttempt,
        cost: int,
        share: int,
        beneficiary_id: Optional[uuid.UUID],
        idempotency_key: Optional[uuid.UUID],
    ) -> UnlockResult:
        reader_id = attempt.reader_id

        attempt.advance(UnlockState.CHECKING_DUPLICATE)
        existing = await self._check_duplicate(attempt, idempotency_key)
        if existing is not None:
            attempt.advance(UnlockState.DONE)
            await self.db.commit()
            return UnlockResult(
                charged=False, cost=existing.cost, author_share=0, states=attempt.states,
                unlock=existing, balance_after=await get_coin_balance(self.db, reader_id),
                message="Chapter already unlocked",
            )

        balance = await get_coin_balance(self.db, reader_id)
        if balance is None:
            attempt.advance(UnlockState.FAILED)
            raise InvalidUnlockRequest(f"profile {reader_id} not found", attempt.states, not_found=True)
        if balance < cost:
            attempt.advance(UnlockState.FAILED)
            raise InsufficientCoins(balance, cost, attempt.states)

        attempt.advance(UnlockState.DEDUCTING)
        await self._deduct(attempt, cost)

        if share > 0:
            attempt.advance(UnlockState.CREDITING)
            await self._credit(attempt, beneficiary_id, share)

        attempt.advance(UnlockState.RECORDING)
        unlock = ChapterUnlock(
            id=idempotency_key or uuid.uuid4(),
            profile_id=reader_id,
            novel_id=attempt.novel_id,
            chapter_number=attempt.chapter_number,
            cost=cost,
            created_at=datetime.now(timezone.utc),
        )
        try:
            await self._record(unlock)
        except IntegrityError as e:
            # 동시 요청이 먼저 영수증을 기록한 경우: 보상 후 멱등 성공 처리
            await self._compensate(attempt, e)
            attempt.advance(UnlockState.CHECKING_DUPLICATE)
            existing = await self._check_duplicate(attempt, None)
            if existing is None:
                attempt.advance(UnlockState.FAILED)
                raise UnlockError(UnlockFailureReason.RECORD_FAILED, str(e), attempt.states) from e
            attempt.advance(UnlockState.DONE)
            return UnlockResult(
                charged=False, cost=existing.cost, author_share=0, states=attempt.states,
                unlock=existing, balance_after=await get_coin_balance(self.db, reader_id),
                message="Chapter already unlocked",
            )
        except SQLAlchemyError as e:
            await self._fail(attempt, UnlockFailureReason.RECORD_FAILED, e)

        attempt.advance(UnlockState.DONE)
        balance_after = await get_coin_balance(self.db, reader_id)
        logger.info(
            f"[unlock] profile={reader_id} novel={attempt.novel_id} ch={attempt.chapter_number} "
            f"cost={cost} share={share if attempt.credited else 0} balance_after={balance_after}"
        )
        return UnlockResult(
            charged=True,
            cost=cost,
            author_share=share if attempt.credited else 0,
            states=attempt.states,
            unlock=unlock,
            balance_after=balance_after,
            message="Chapter unlocked successfully!",
        )

    async def _check_duplicate(
        self,
        attempt: UnlockAttempt,
        idempotency_key: Optional[uuid.UUID],
    ) -> Optional[ChapterUnlock]:
        try:
            result = await self.db.execute(
                select(ChapterUnlock).where(
                    ChapterUnlock.profile_id == attempt.reader_id,
                    ChapterUnlock.novel_id == attempt.novel_id,
                    ChapterUnlock.chapter_number == attempt.chapter_number,
                )
            )
            existing = result.scalar_one_or_none()
            if existing is None and idempotency_key is not None:
                reused = await self.db.get(ChapterUnlock, idempotency_key)
                if reused is not None:
                    attempt.advance(UnlockState.FAILED)
                    raise InvalidUnlockRequest(
                        f"idempotency key {idempotency_key} already used for another chapter",
                        attempt.states,
                    )
            return existing
        except SQLAlchemyError as e:
            await self._fail(attempt, UnlockFailureReason.DUPLICATE_CHECK_FAILED, e)

    async def _deduct(self, attempt: UnlockAttempt, cost: int) -> None:
        try:
            result = await self.db.execute(
                update(Profile)
                .where(Profile.id == attempt.reader_id, Profile.coins >= cost)
                .values(coins=Profile.coins - cost, updated_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            await self._fail(attempt, UnlockFailureReason.DEDUCT_FAILED, e)

        if result.rowcount != 1:
            # 사전 확인 이후 다른 세션이 잔액을 써버린 경우
            balance = await get_coin_balance(self.db, attempt.reader_id)
            await self._rollback_quietly()
            attempt.advance(UnlockState.FAILED)
            if balance is not None and balance < cost:
                raise InsufficientCoins(balance, cost, attempt.states)
            raise UnlockError(UnlockFailureReason.DEDUCT_FAILED, "no rows affected", attempt.states)
        attempt.deducted = True

    async def _credit(self, attempt: UnlockAttempt, beneficiary_id: Optional[uuid.UUID], share: int) -> None:
        if beneficiary_id is None:
            await self._fail(attempt, UnlockFailureReason.BENEFICIARY_NOT_FOUND, "novel has no author profile")
        try:
            role = (
                await self.db.execute(select(Profile.role).where(Profile.id == beneficiary_id))
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail(attempt, UnlockFailureReason.CREDIT_FAILED, e)
        if role is None:
            await self._fail(attempt, UnlockFailureReason.BENEFICIARY_NOT_FOUND, f"profile {beneficiary_id} not found")
        if role not in BENEFICIARY_ROLES:
            await self._fail(
                attempt,
                UnlockFailureReason.BENEFICIARY_NOT_FOUND,
                f"profile {beneficiary_id} has role {role}",
            )

        try:
            result = await self.db.execute(
                update(Profile)
                .where(Profile.id == beneficiary_id)
                .values(coins=Profile.coins + share, updated_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            await self._fail(attempt, UnlockFailureReason.CREDIT_FAILED, e)
        if result.rowcount != 1:
            await self._fail(attempt, UnlockFailureReason.CREDIT_FAILED, "no rows affected")
        attempt.credited = True

    async def _record(self, unlock: ChapterUnlock) -> None:
        """영수증 기록 후 트랜잭션 확정"""
        self.db.add(unlock)
        await self.db.flush()
        await self.db.commit()

    async def _compensate(self, attempt: UnlockAttempt, cause: Union[Exception, str]) -> None:
        """적용된 배분/차감을 역순으로 되돌림 (트랜잭션 롤백)"""
        if attempt.credited:
            attempt.advance(UnlockState.COMPENSATE_CREDIT)
        if attempt.deducted:
            attempt.advance(UnlockState.COMPENSATE_DEDUCT)
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            attempt.advance(UnlockState.FAILED)
            logger.error(
                f"[unlock] compensation failed for {attempt.reader_id}/{attempt.novel_id}/"
                f"{attempt.chapter_number} after {cause!r}; states={attempt.states}",
                exc_info=e,
            )
            raise UnlockError(UnlockFailureReason.COMPENSATION_FAILED, str(e), attempt.states) from e
        attempt.credited = False
        attempt.deducted = False

    async def _fail(self, attempt: UnlockAttempt, reason: UnlockFailureReason, cause: Union[Exception, str]):
        await self._compensate(attempt, cause)
        attempt.advance(UnlockState.FAILED)
        logger.error(
            f"[unlock] {reason.value} for {attempt.reader_id}/{attempt.novel_id}/{attempt.chapter_number}: "
            f"{cause}; states={attempt.states}",
            exc_info=cause if isinstance(cause, Exception) else None,
        )
        error = UnlockError(reason, str(cause), attempt.states)
        if isinstance(cause, Exception):
            raise error from cause
        raise error

    async def _rollback_quietly(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.error(f"[unlock] rollback failed: {e}")

    async def _acquire_guard(self, key: str) -> bool:
        """같은 독자의 동일 회차 동시 요청 차단. Redis 장애 시 통과(가용성 우선)"""
        if self.redis is None:
            return True
        try:
            acquired = await self.redis.set(key, "1", nx=True, ex=settings.UNLOCK_LOCK_TTL_SECONDS)
            return bool(acquired)
        except (RedisError, OSError) as e:
            logger.warning(f"[unlock] redis guard unavailable, continuing without it: {e}")
            return True

    async def _release_guard(self, key: str) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.delete(key)
        except (RedisError, OSError) as e:
            logger.warning(f"[unlock] failed to release guard {key}: {e}")
