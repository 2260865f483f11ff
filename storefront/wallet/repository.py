from datetime import date
from typing import Optional
from sqlalchemy import func, select
from storefront.orders.repository import apply_date_range
from storefront.schema.full_schema import (TransactionStatus, TransactionType, Users, Wallet, WalletStatus,
                                           WalletTransaction)


def transactions_stmt(user_id: int, txn_type: Optional[TransactionType] = None,
                      txn_status: Optional[TransactionStatus] = None,
                      start_date: Optional[date] = None, end_date: Optional[date] = None):
    stmt = select(WalletTransaction).where(WalletTransaction.user_id == user_id)
    if txn_type is not None:
        stmt = stmt.where(WalletTransaction.transaction_type == txn_type)
    if txn_status is not None:
        stmt = stmt.where(WalletTransaction.status == txn_status)
    stmt = apply_date_range(stmt, WalletTransaction.created_at, start_date, end_date)
    return stmt.order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())


def wallets_stmt(wallet_status: Optional[WalletStatus] = None, min_balance: Optional[int] = None):
    stmt = select(Wallet, Users.public_id, Users.email).join(Users, Users.id == Wallet.user_id)
    if wallet_status is not None:
        stmt = stmt.where(Wallet.status == wallet_status)
    if min_balance is not None:
        stmt = stmt.where(Wallet.balance >= min_balance)
    return stmt.order_by(Wallet.balance.desc(), Wallet.id.asc())


async def completed_sums(session, wallet_id: int):
    """(credits, debits) over completed rows, the ledger side of the balance."""
    stmt = (select(WalletTransaction.transaction_type, func.coalesce(func.sum(WalletTransaction.amount), 0))
            .where(WalletTransaction.wallet_id == wallet_id,
                   WalletTransaction.status == TransactionStatus.COMPLETED)
            .group_by(WalletTransaction.transaction_type))
    sums = {r[0]: int(r[1]) for r in (await session.execute(stmt)).all()}
    return sums.get(TransactionType.CREDIT, 0), sums.get(TransactionType.DEBIT, 0)


async def wallet_stats(session) -> dict:
    row = (await session.execute(select(func.count(Wallet.id), func.coalesce(func.sum(Wallet.balance), 0)))).first()
    by_status = {r[0].value: r[1] for r in (await session.execute(
        select(Wallet.status, func.count(Wallet.id)).group_by(Wallet.status))).all()}
    txn_rows = (await session.execute(
        select(WalletTransaction.transaction_type, func.count(WalletTransaction.id),
               func.coalesce(func.sum(WalletTransaction.amount), 0))
        .where(WalletTransaction.status == TransactionStatus.COMPLETED)
        .group_by(WalletTransaction.transaction_type))).all()
    txns = {r[0].value: {"count": r[1], "amount": int(r[2])} for r in txn_rows}
    total, balance = row[0], int(row[1])
    return {
        "total_wallets": total,
        "total_balance": balance,
        "average_balance": balance // total if total else 0,
        "by_status": by_status,
        "completed_transactions": txns,
    }
