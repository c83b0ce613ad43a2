"""Service layer for listing photos."""

import logging
from collections import defaultdict

from sqlalchemy.orm import Session

from estate_feed.channel.base import ChannelClient
from estate_feed.database.repository import MediaRepository
from estate_feed.models.db_models import ChannelMessage, Listing, Media, Source
from estate_feed.models.pydantic_models import ChannelPost
from estate_feed.storage.base import ObjectStorage, StorageError

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = "listing-images"
MEDIA_CONTENT_TYPE = "image/jpeg"


def media_storage_path(source_id: int, message_id: int, ordinal: int = 0) -> str:
    """Object path of a message photo: ``{source}/{message}/{ordinal}.jpg``."""
    return f"{source_id}/{message_id}/{ordinal}.jpg"


class MediaPipeline:
    """Downloads post photos into object storage and tracks them in the catalog.

    The channel client is only needed for process_media; cleanup works with
    storage alone.
    """

    def __init__(
        self,
        session: Session,
        storage: ObjectStorage,
        client: ChannelClient | None = None,
        bucket: str = DEFAULT_BUCKET,
    ) -> None:
        """Initialize the pipeline.

        Args:
            session: SQLAlchemy session instance.
            storage: Object storage receiving the photos.
            client: Channel client used to download photos.
            bucket: Storage bucket for new uploads.
        """
        self._session = session
        self._storage = storage
        self._client = client
        self._bucket = bucket
        self._repo = MediaRepository(session)

    async def process_media(
        self,
        source: Source,
        post: ChannelPost,
        message_row: ChannelMessage,
        listing: Listing,
    ) -> Media | None:
        """Store the photo of a post and attach it to its listing.

        Uploads overwrite, and both the media row and the listing image are
        upserts, so reprocessing a post leaves exactly one of each.

        Args:
            source: Owning source.
            post: Channel post.
            message_row: Stored message row.
            listing: Listing the post belongs to.

        Returns:
            The Media row, or None when the post has no photo or storing failed.
        """
        if not post.has_photo:
            return None
        if self._client is None:
            logger.warning("No channel client, skipping media for message %d", post.message_id)
            return None

        try:
            data = await self._client.download_media(post)
            if not data:
                logger.warning("No media bytes for message %d", post.message_id)
                return None

            path = media_storage_path(source.id, post.message_id)
            stored_path = self._storage.upload(
                self._bucket, path, data, content_type=MEDIA_CONTENT_TYPE, upsert=True
            )
            public_url = self._storage.public_url(self._bucket, stored_path)

            media = self._repo.upsert_media(
                message_row_id=message_row.id,
                storage_bucket=self._bucket,
                storage_path=stored_path,
                cdn_url=public_url,
                position=0,
            )
            self._repo.link_to_listing(
                listing_id=listing.id,
                media_id=media.id,
                url=public_url,
                position=post.message_id,
            )
            return media
        except Exception:
            self._session.rollback()
            logger.warning(
                "Error processing media for message %d", post.message_id, exc_info=True
            )
            return None

    def cleanup_media(self, listing_id: int) -> int:
        """Remove a listing's photos from storage, then their rows.

        Storage failures are logged and do not stop row deletion.

        Args:
            listing_id: Listing ID.

        Returns:
            Number of media rows deleted.
        """
        media_rows = self._repo.get_media_for_listing(listing_id)

        paths_by_bucket: dict[str, list[str]] = defaultdict(list)
        for media in media_rows:
            if media.storage_bucket and media.storage_path:
                paths_by_bucket[media.storage_bucket].append(media.storage_path)

        for bucket, paths in paths_by_bucket.items():
            try:
                self._storage.remove(bucket, paths)
            except StorageError:
                logger.warning(
                    "Failed to remove %d objects from %s for listing %d",
                    len(paths),
                    bucket,
                    listing_id,
                    exc_info=True,
                )

        self._repo.delete_listing_images(listing_id)
        return self._repo.delete_media([media.id for media in media_rows])
