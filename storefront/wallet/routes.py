from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.audit.loggers import log_admin_action, log_user_activity
from storefront.auth.dependencies import require_permissions
from storefront.common.pagination import PageParams, page_params, page_payload, paginate
from storefront.common.utils import now, success_response
from storefront.config.settings import config_settings
from storefront.db.dependencies import get_session
from storefront.notifications.services import create_notification
from storefront.payments.services import create_razorpay_order, verify_payment_signature
from storefront.schema.full_schema import (ActorType, NotificationType, ReferenceType, TransactionStatus,
                                           TransactionType, WalletStatus)
from storefront.user.dependencies import current_user_id
from storefront.user.repository import get_user_by_pid
from storefront.wallet.models import TopupIn, TopupVerifyIn, WalletAdjustIn, WalletStatusIn
from storefront.wallet.repository import completed_sums, transactions_stmt, wallet_stats, wallets_stmt
from storefront.wallet.services import (apply_wallet_transaction, check_amount_limits, complete_topup,
                                        create_pending_topup, get_or_create_wallet, get_topup_by_gateway_order)
from storefront.wallet.utils import transaction_out, wallet_out
from storefront.wallet.constants import logger

wallet_router = APIRouter()
wallet_admin_router = APIRouter(dependencies=[require_permissions("wallet:manage")])


@wallet_router.get("")
async def get_my_wallet(request: Request, session: AsyncSession = Depends(get_session)):
    wallet = await get_or_create_wallet(session, current_user_id(request))
    await session.commit()
    return success_response({"wallet": wallet_out(wallet)})


@wallet_router.get("/transactions")
async def get_my_transactions(request: Request, txn_type: Optional[TransactionType] = Query(None, alias="type"),
                              txn_status: Optional[TransactionStatus] = Query(None, alias="status"),
                              start_date: Optional[date] = Query(None), end_date: Optional[date] = Query(None),
                              params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    stmt = transactions_stmt(current_user_id(request), txn_type, txn_status, start_date, end_date)
    rows, meta = await paginate(session, stmt, params)
    return success_response(page_payload([transaction_out(r[0]) for r in rows], meta))


@wallet_router.post("/topup", status_code=status.HTTP_201_CREATED)
async def initiate_topup(request: Request, payload: TopupIn, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    check_amount_limits(payload.amount)

    wallet = await get_or_create_wallet(session, user_id)
    if wallet.status != WalletStatus.ACTIVE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Wallet is {wallet.status.value.lower()}")

    receipt = f"wallet_{wallet.public_id.hex[:20]}_{wallet.transaction_count + 1}"
    psp_resp = await create_razorpay_order(payload.amount, receipt, {"wallet_public_id": str(wallet.public_id)})
    txn = await create_pending_topup(session, user_id, payload.amount, psp_resp["id"], psp_resp)
    await session.commit()

    logger.info("wallet.topup.initiated", extra={"transaction_id": str(txn.public_id), "amount": payload.amount})
    return success_response({
        "key_id": config_settings.RZPAY_KEY,
        "razorpay_order_id": txn.gateway_order_id,
        "amount": txn.amount,
        "currency": txn.currency,
        "transaction_id": txn.public_id,
    }, status.HTTP_201_CREATED)


@wallet_router.post("/topup/verify")
async def verify_topup(request: Request, payload: TopupVerifyIn, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    txn = await get_topup_by_gateway_order(session, payload.razorpay_order_id)
    if txn is None or txn.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Top-up not found")

    if txn.status != TransactionStatus.PENDING:
        if txn.status == TransactionStatus.COMPLETED:
            wallet = await get_or_create_wallet(session, user_id)
            return success_response({"transaction": transaction_out(txn), "wallet": wallet_out(wallet),
                                     "already_verified": True})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Top-up has already failed")

    if not verify_payment_signature(payload.razorpay_order_id, payload.razorpay_payment_id,
                                    payload.razorpay_signature):
        await complete_topup(session, txn, payload.razorpay_payment_id, success=False,
                             failure_reason="Signature verification failed")
        await session.commit()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payment signature")

    try:
        await complete_topup(session, txn, payload.razorpay_payment_id, success=True)
    except HTTPException:
        # keep the captured payment id on the pending row
        await session.commit()
        raise
    create_notification(session, user_id, "Wallet credited",
                        f"{txn.amount / 100:.2f} {txn.currency} was added to your wallet.",
                        NotificationType.PAYMENT_SUCCESS, related_entity_type="wallet_transaction",
                        related_entity_id=txn.public_id)
    await session.commit()

    wallet = await get_or_create_wallet(session, user_id)
    log_user_activity(user_id, "WALLET_TOPUP", {"amount": txn.amount})
    return success_response({"transaction": transaction_out(txn), "wallet": wallet_out(wallet),
                             "already_verified": False})


# ---------------------------------------------------------------- admin

@wallet_admin_router.get("")
async def admin_list_wallets(wallet_status: Optional[WalletStatus] = Query(None, alias="status"),
                             min_balance: Optional[int] = Query(None, ge=0),
                             params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    rows, meta = await paginate(session, wallets_stmt(wallet_status, min_balance), params)
    items = []
    for wallet, user_pid, email in rows:
        data = wallet_out(wallet)
        data.update({"user_id": user_pid, "email": email})
        items.append(data)
    return success_response(page_payload(items, meta))


@wallet_admin_router.get("/stats")
async def admin_wallet_stats(session: AsyncSession = Depends(get_session)):
    return success_response(await wallet_stats(session))


@wallet_admin_router.get("/users/{user_id}")
async def admin_get_user_wallet(user_id: str, params: PageParams = Depends(page_params),
                                session: AsyncSession = Depends(get_session)):
    user = await get_user_by_pid(session, user_id)
    wallet = await get_or_create_wallet(session, user.id)
    await session.commit()

    credits, debits = await completed_sums(session, wallet.id)
    rows, meta = await paginate(session, transactions_stmt(user.id), params)
    return success_response({
        "user_id": user.public_id,
        "wallet": wallet_out(wallet),
        "ledger": {"completed_credits": credits, "completed_debits": debits,
                   "is_consistent": credits - debits == wallet.balance},
        "transactions": page_payload([transaction_out(r[0]) for r in rows], meta),
    })


@wallet_admin_router.post("/users/{user_id}/adjust")
async def admin_adjust_wallet(request: Request, user_id: str, payload: WalletAdjustIn,
                              session: AsyncSession = Depends(get_session)):
    check_amount_limits(payload.amount)
    user = await get_user_by_pid(session, user_id)

    txn = await apply_wallet_transaction(session, user.id, payload.type, payload.amount, payload.description,
                                         ReferenceType.ADMIN_ADJUSTMENT, actor=ActorType.ADMIN,
                                         details={"admin_public_id": request.state.user_public_id})
    if payload.type == TransactionType.CREDIT:
        create_notification(session, user.id, "Wallet credited",
                            f"{payload.amount / 100:.2f} {txn.currency} was added to your wallet.",
                            NotificationType.PAYMENT_SUCCESS, related_entity_type="wallet_transaction",
                            related_entity_id=txn.public_id)
    await session.commit()

    log_admin_action(request, "WALLET_ADJUSTED", "wallet", user.public_id,
                     {"type": payload.type.value, "amount": payload.amount, "description": payload.description,
                      "balance_after": txn.balance_after})
    wallet = await get_or_create_wallet(session, user.id)
    return success_response({"transaction": transaction_out(txn), "wallet": wallet_out(wallet)})


@wallet_admin_router.patch("/users/{user_id}/status")
async def admin_set_wallet_status(request: Request, user_id: str, payload: WalletStatusIn,
                                  session: AsyncSession = Depends(get_session)):
    user = await get_user_by_pid(session, user_id)
    wallet = await get_or_create_wallet(session, user.id)
    previous = wallet.status
    wallet.status = payload.status
    wallet.updated_at = now()
    await session.commit()

    log_admin_action(request, "WALLET_STATUS_CHANGED", "wallet", user.public_id,
                     {"status": {"from": previous.value, "to": payload.status.value}, "reason": payload.reason})
    return success_response({"wallet": wallet_out(wallet)})
