from storefront.common.utils import as_utc, to_public


def wallet_out(wallet):
    data = to_public(wallet, exclude={"user_id"})
    data["last_transaction_at"] = as_utc(wallet.last_transaction_at)
    return data


def transaction_out(txn):
    data = to_public(txn, exclude={"wallet_id", "user_id", "gateway_response"})
    for field in ("created_at", "completed_at", "failed_at"):
        data[field] = as_utc(data.get(field))
    return data
