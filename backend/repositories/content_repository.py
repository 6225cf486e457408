"""
Content Repository - PostgreSQL storage for content items and engagement

Storage: PostgreSQL (content_items, content_likes, content_shares,
content_reactions tables)
"""
import logging
from typing import Dict, List, Optional, Sequence
import asyncpg

from models.domain.content import ContentItem, MediaCount

logger = logging.getLogger(__name__)

_ITEM_COLUMNS = """
    id, creator_id, title, price, image_url, offer_text, media_type,
    image_count, video_count, is_hidden, blur_level, external_link, tags, created_at
"""


class ContentRepository:
    """
    Repository for ContentItem domain model
    """

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_by_id(self, item_id: str) -> Optional[ContentItem]:
        """
        Retrieve a content item with its likes, shares and reactions.

        Args:
            item_id: Content item ID (ci_xxxxxxxx)

        Returns:
            ContentItem or None
        """
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(f"""
                SELECT {_ITEM_COLUMNS}
                FROM content_items
                WHERE id = $1
            """, item_id)

            if not row:
                return None

            items = await self._hydrate(conn, [row])
            return items[0]

    async def list_items(
        self,
        include_hidden: bool = False,
        tag: Optional[str] = None,
        creator_ids: Optional[Sequence[str]] = None,
        limit: int = 200,
        offset: int = 0
    ) -> List[ContentItem]:
        """
        List content items, newest first.

        Args:
            include_hidden: Admin listings include hidden items
            tag: Only items carrying this (normalized) tag
            creator_ids: Only items from these creators
            limit: Maximum number of items (one page)
            offset: Items to skip, for paging past the first page
        """
        conditions = []
        params: list = []
        if not include_hidden:
            conditions.append("is_hidden = FALSE")
        if tag:
            params.append(tag.strip().lower())
            conditions.append(f"${len(params)} = ANY(tags)")
        if creator_ids is not None:
            params.append(list(creator_ids))
            conditions.append(f"creator_id = ANY(${len(params)}::uuid[])")
        params.append(limit)
        params.append(offset)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(f"""
                SELECT {_ITEM_COLUMNS}
                FROM content_items
                {where}
                ORDER BY created_at DESC, id
                LIMIT ${len(params) - 1} OFFSET ${len(params)}
            """, *params)

            return await self._hydrate(conn, rows)

    async def _hydrate(self, conn, rows) -> List[ContentItem]:
        if not rows:
            return []
        ids = [row['id'] for row in rows]

        liked: Dict[str, set] = {i: set() for i in ids}
        shared: Dict[str, set] = {i: set() for i in ids}
        reactions: Dict[str, Dict[str, str]] = {i: {} for i in ids}

        for r in await conn.fetch("""
            SELECT content_item_id, user_id FROM content_likes WHERE content_item_id = ANY($1::varchar[])
        """, ids):
            liked[r['content_item_id']].add(str(r['user_id']))

        for r in await conn.fetch("""
            SELECT content_item_id, user_id FROM content_shares WHERE content_item_id = ANY($1::varchar[])
        """, ids):
            shared[r['content_item_id']].add(str(r['user_id']))

        for r in await conn.fetch("""
            SELECT content_item_id, user_id, emoji FROM content_reactions WHERE content_item_id = ANY($1::varchar[])
        """, ids):
            reactions[r['content_item_id']][str(r['user_id'])] = r['emoji']

        return [
            ContentItem(
                id=row['id'],
                creator_id=str(row['creator_id']),
                title=row['title'],
                price=row['price'],
                image_url=row['image_url'],
                offer_text=row['offer_text'],
                media_type=row['media_type'],
                media_count=MediaCount(images=row['image_count'], videos=row['video_count']),
                is_hidden=row['is_hidden'],
                blur_level=row['blur_level'],
                external_link=row['external_link'],
                liked_by=liked[row['id']],
                shared_by=shared[row['id']],
                user_reactions=reactions[row['id']],
                tags=list(row['tags'] or []),
                created_at=row['created_at'],
            )
            for row in rows
        ]

    # =========================================================================
    # CREATE / DELETE
    # =========================================================================

    async def create(self, item: ContentItem) -> ContentItem:
        async with self.db_pool.acquire() as conn:
            await conn.execute("""
                INSERT INTO content_items (
                    id, creator_id, title, price, image_url, offer_text, media_type,
                    image_count, video_count, is_hidden, blur_level, external_link,
                    tags, created_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
            """,
                item.id,
                item.creator_id,
                item.title,
                item.price,
                item.image_url,
                item.offer_text,
                item.media_type.value,
                item.media_count.images,
                item.media_count.videos,
                item.is_hidden,
                item.blur_level,
                item.external_link,
                item.tags,
                item.created_at
            )

            logger.info(f"Created content item {item.id} by {item.creator_id} ({item.price} credits)")
            return item

    async def delete(self, item_id: str) -> bool:
        async with self.db_pool.acquire() as conn:
            result = await conn.execute("DELETE FROM content_items WHERE id = $1", item_id)

            deleted = int(result.split()[-1]) > 0
            if deleted:
                logger.info(f"Deleted content item {item_id}")
            return deleted

    async def delete_all_by_creator(self, creator_id: str) -> int:
        async with self.db_pool.acquire() as conn:
            result = await conn.execute("DELETE FROM content_items WHERE creator_id = $1", creator_id)

            count = int(result.split()[-1])
            logger.info(f"Deleted {count} content items of creator {creator_id}")
            return count

    # =========================================================================
    # MODERATION
    # =========================================================================

    async def set_hidden(self, item_id: str, hidden: bool) -> bool:
        async with self.db_pool.acquire() as conn:
            result = await conn.execute("""
                UPDATE content_items SET is_hidden = $2 WHERE id = $1
            """, item_id, hidden)

            updated = int(result.split()[-1]) > 0
            if updated:
                logger.info(f"Content item {item_id} hidden={hidden}")
            return updated

    async def hide_all_by_creator(self, creator_id: str) -> int:
        async with self.db_pool.acquire() as conn:
            result = await conn.execute("""
                UPDATE content_items SET is_hidden = TRUE WHERE creator_id = $1
            """, creator_id)

            count = int(result.split()[-1])
            logger.info(f"Hid {count} content items of creator {creator_id}")
            return count

    # =========================================================================
    # ENGAGEMENT
    # =========================================================================

    async def set_like(self, item_id: str, user_id: str, liked: bool) -> None:
        async with self.db_pool.acquire() as conn:
            if liked:
                await conn.execute("""
                    INSERT INTO content_likes (content_item_id, user_id, created_at)
                    VALUES ($1, $2, NOW())
                    ON CONFLICT DO NOTHING
                """, item_id, user_id)
            else:
                await conn.execute("""
                    DELETE FROM content_likes WHERE content_item_id = $1 AND user_id = $2
                """, item_id, user_id)

    async def set_reaction(self, item_id: str, user_id: str, emoji: Optional[str]) -> None:
        """Store the user's reaction; None clears it"""
        async with self.db_pool.acquire() as conn:
            if emoji:
                await conn.execute("""
                    INSERT INTO content_reactions (content_item_id, user_id, emoji, created_at)
                    VALUES ($1, $2, $3, NOW())
                    ON CONFLICT (content_item_id, user_id) DO UPDATE SET emoji = EXCLUDED.emoji
                """, item_id, user_id, emoji)
            else:
                await conn.execute("""
                    DELETE FROM content_reactions WHERE content_item_id = $1 AND user_id = $2
                """, item_id, user_id)

    async def add_share(self, item_id: str, user_id: str) -> bool:
        async with self.db_pool.acquire() as conn:
            result = await conn.execute("""
                INSERT INTO content_shares (content_item_id, user_id, created_at)
                VALUES ($1, $2, NOW())
                ON CONFLICT DO NOTHING
            """, item_id, user_id)
            return int(result.split()[-1]) > 0
