from sqlalchemy import select
from storefront.db.connection import async_session
from storefront.messaging.images import fetch_category_image
from storefront.schema.full_schema import Category
from storefront.catalog.constants import logger


async def attach_category_image(category_id: int, query: str) -> None:
    """Best effort image lookup for a category created without one."""
    image_url = await fetch_category_image(query)
    if not image_url:
        logger.info("category.image.none", extra={"category_id": category_id})
        return

    async with async_session() as session:
        category = (await session.execute(select(Category).where(Category.id == category_id))).scalar_one_or_none()
        # an admin may have set one meanwhile
        if category is None or category.image_url:
            return
        category.image_url = image_url
        await session.commit()
    logger.info("category.image.attached", extra={"category_id": category_id})
