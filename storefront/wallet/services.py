from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from sqlalchemy import select, update
from storefront.common.utils import now
from storefront.config.settings import config_settings
from storefront.schema.full_schema import (ActorType, ReferenceType, TransactionStatus, TransactionType, Wallet,
                                           WalletStatus, WalletTransaction)
from storefront.wallet.constants import MAX_TRANSACTION_AMOUNT, MIN_TRANSACTION_AMOUNT, logger


def check_amount_limits(amount: int) -> None:
    if not MIN_TRANSACTION_AMOUNT <= amount <= MAX_TRANSACTION_AMOUNT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Amount must be between {MIN_TRANSACTION_AMOUNT} and {MAX_TRANSACTION_AMOUNT} paise")


async def get_wallet(session, user_id: int) -> Optional[Wallet]:
    return (await session.execute(select(Wallet).where(Wallet.user_id == user_id))).scalar_one_or_none()


async def get_or_create_wallet(session, user_id: int) -> Wallet:
    wallet = await get_wallet(session, user_id)
    if wallet is None:
        wallet = Wallet(user_id=user_id, currency=config_settings.CURRENCY)
        session.add(wallet)
        await session.flush()
        logger.info("wallet.created", extra={"user_id": user_id})
    return wallet


async def _shift_balance(session, wallet: Wallet, txn_type: TransactionType, amount: int) -> int:
    """Conditionally move the balance and return the new one."""
    if amount <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Amount must be positive")

    stmt = update(Wallet).where(Wallet.id == wallet.id, Wallet.status == WalletStatus.ACTIVE)
    if txn_type == TransactionType.DEBIT:
        stmt = stmt.where(Wallet.balance >= amount).values(balance=Wallet.balance - amount)
    else:
        stmt = stmt.values(balance=Wallet.balance + amount)
    stmt = stmt.values(last_transaction_at=now(), transaction_count=Wallet.transaction_count + 1, updated_at=now())

    res = await session.execute(stmt)
    await session.refresh(wallet)
    if res.rowcount == 0:
        if wallet.status != WalletStatus.ACTIVE:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Wallet is {wallet.status.value.lower()}")
        logger.info("wallet.debit.insufficient", extra={"wallet_id": wallet.id, "amount": amount})
        raise HTTPException(status_code=status.HTTP_412_PRECONDITION_FAILED, detail="Insufficient wallet balance")
    return wallet.balance


async def apply_wallet_transaction(session, user_id: int, txn_type: TransactionType, amount: int,
                                   description: str, reference_type: ReferenceType,
                                   reference_id: Optional[str] = None, actor: ActorType = ActorType.SYSTEM,
                                   payment_method: Optional[str] = None,
                                   details: Optional[Dict[str, Any]] = None) -> WalletTransaction:
    """The only path that changes a balance. Runs inside the caller's transaction."""
    wallet = await get_or_create_wallet(session, user_id)
    balance = await _shift_balance(session, wallet, txn_type, amount)

    txn = WalletTransaction(
        wallet_id=wallet.id, user_id=user_id, transaction_type=txn_type, amount=amount,
        currency=wallet.currency, description=description[:250], reference_type=reference_type,
        reference_id=reference_id, status=TransactionStatus.COMPLETED, initiated_by_actor=actor,
        balance_after=balance, payment_method=payment_method, details=details, completed_at=now(),
    )
    session.add(txn)
    await session.flush()

    logger.info("wallet.transaction.completed", extra={
        "wallet_id": wallet.id, "type": txn_type.value, "amount": amount, "balance_after": balance,
        "reference_type": reference_type.value})
    return txn


async def create_pending_topup(session, user_id: int, amount: int, gateway_order_id: str,
                               gateway_response: Optional[dict] = None) -> WalletTransaction:
    wallet = await get_or_create_wallet(session, user_id)
    if wallet.status != WalletStatus.ACTIVE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Wallet is {wallet.status.value.lower()}")
    txn = WalletTransaction(
        wallet_id=wallet.id, user_id=user_id, transaction_type=TransactionType.CREDIT, amount=amount,
        currency=wallet.currency, description="Wallet top-up", reference_type=ReferenceType.PAYMENT_GATEWAY,
        reference_id=gateway_order_id, status=TransactionStatus.PENDING, initiated_by_actor=ActorType.USER,
        payment_method="RAZORPAY", gateway_order_id=gateway_order_id, gateway_response=gateway_response,
    )
    session.add(txn)
    await session.flush()
    return txn


async def get_topup_by_gateway_order(session, gateway_order_id: str) -> Optional[WalletTransaction]:
    stmt = select(WalletTransaction).where(WalletTransaction.gateway_order_id == gateway_order_id).with_for_update()
    return (await session.execute(stmt)).scalar_one_or_none()


async def complete_topup(session, txn: WalletTransaction, payment_id: Optional[str], success: bool,
                         response: Optional[dict] = None, failure_reason: Optional[str] = None) -> bool:
    """Settle a pending top-up. Returns False when it was already settled."""
    if txn.status != TransactionStatus.PENDING:
        return False

    txn.gateway_transaction_id = payment_id
    if response is not None:
        txn.gateway_response = response

    if not success:
        txn.status = TransactionStatus.FAILED
        txn.failed_at = now()
        txn.failure_reason = (failure_reason or "Payment failed")[:255]
        logger.info("wallet.topup.failed", extra={"transaction_id": str(txn.public_id)})
        return True

    wallet = (await session.execute(select(Wallet).where(Wallet.id == txn.wallet_id))).scalar_one()
    if wallet.status != WalletStatus.ACTIVE:
        # money is captured but cannot land, the pending row keeps the payment id for reconciliation
        txn.failure_reason = f"Payment captured while wallet was {wallet.status.value.lower()}"
        logger.warning("wallet.topup.blocked", extra={"transaction_id": str(txn.public_id), "payment_id": payment_id,
                                                      "wallet_status": wallet.status.value})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Wallet is {wallet.status.value.lower()}, the payment will be reconciled")
    txn.balance_after = await _shift_balance(session, wallet, TransactionType.CREDIT, txn.amount)
    txn.status = TransactionStatus.COMPLETED
    txn.completed_at = now()
    logger.info("wallet.topup.completed", extra={"transaction_id": str(txn.public_id), "amount": txn.amount})
    return True
