from pydantic import BaseModel


class FavoriteIn(BaseModel):
    product_variant_id: str

    model_config = {"extra": "forbid"}
