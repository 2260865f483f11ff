from storefront.common.utils import as_utc, to_public


def review_out(review, variant_public_id=None, sku_code=None, product_name=None, public: bool = False):
    exclude = {"user_id", "variant_id"}
    if public:
        exclude |= {"moderation_note", "moderated_at", "reported_count"}
    data = to_public(review, exclude=exclude)
    data["created_at"] = as_utc(review.created_at)
    data["updated_at"] = as_utc(review.updated_at)
    if variant_public_id is not None:
        data["product_variant_id"] = variant_public_id
        data["sku_code"] = sku_code
        data["product_name"] = product_name
    return data
