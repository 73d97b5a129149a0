"""Product matcher linking surfaced video titles to catalog items."""

from src.utils.logging import get_logger

from .errors import ProductMatchError
from .schemas import Product
from .storage_service import ProductStore

logger = get_logger(__name__)


def tags_match_titles(tags: list[str], titles: list[str]) -> bool:
    """Check whether any tag and any title overlap as case-insensitive substrings.

    Either direction counts: tag "Table Saw Safety" matches title "table saw",
    and tag "saw" matches title "Table Saw Basics".
    """
    lowered_titles = [title.lower() for title in titles]
    for tag in tags:
        lowered_tag = tag.lower()
        if not lowered_tag:
            continue
        for title in lowered_titles:
            if title in lowered_tag or lowered_tag in title:
                return True
    return False


class ProductMatcher:
    """Finds products related to the videos referenced in an answer.

    Failures never propagate: a recommendation miss is logged and treated as
    zero related products.
    """

    def __init__(self, store: ProductStore):
        self.store = store

    async def match(self, video_titles: list[str]) -> list[Product]:
        """Return products whose tags overlap any of the video titles.

        Args:
            video_titles: Titles of the extracted video references.

        Returns:
            Matching products, deduplicated by id, in catalog id order.
        """
        titles = [title.strip() for title in video_titles if title and title.strip()]
        if not titles:
            return []

        try:
            products = await self._load_candidates(titles)
        except ProductMatchError:
            logger.warning("product_match_degraded", titles=titles)
            return []

        matched: list[Product] = []
        seen_ids: set[str] = set()
        for product in products:
            if product.id in seen_ids:
                continue
            if tags_match_titles(product.tags, titles):
                matched.append(product)
                seen_ids.add(product.id)

        logger.info(
            "product_match_completed",
            titles=titles,
            candidates=len(products),
            matched=len(matched),
        )
        return matched

    async def _load_candidates(self, titles: list[str]) -> list[Product]:
        try:
            return await self.store.find_by_titles(titles)
        except Exception as e:
            logger.exception("product_lookup_failed", error_type=type(e).__name__)
            raise ProductMatchError(str(e)) from e
