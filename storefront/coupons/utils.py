from storefront.common.utils import as_utc, to_public


def campaign_out(campaign, refs=None):
    data = to_public(campaign, exclude={"applicable_category_ids", "applicable_variant_ids"})
    data["valid_from"] = as_utc(campaign.valid_from)
    data["valid_until"] = as_utc(campaign.valid_until)
    data.update(refs or {"applicable_category_ids": [], "applicable_variant_ids": []})
    return data


def user_coupon_out(coupon, campaign=None):
    data = to_public(coupon, exclude={"campaign_id", "user_id"})
    data["expires_at"] = as_utc(coupon.expires_at)
    if campaign is not None:
        data["campaign"] = {
            "id": campaign.public_id,
            "name": campaign.name,
            "description": campaign.description,
            "discount_type": campaign.discount_type,
            "discount_value": campaign.discount_value,
            "min_purchase_amount": campaign.min_purchase_amount,
            "max_coupon_discount": campaign.max_coupon_discount,
        }
    return data
