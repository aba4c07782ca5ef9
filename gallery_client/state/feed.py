"""
Paged feed loader - append-only pages with de-duplication
"""
from typing import Awaitable, Callable, Generic, Hashable, List, Optional, TypeVar
import logging

from .feedback import Feedback
from ..config import settings
from ..domain.models import FeedState
from ..exceptions import GalleryError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (offset, limit) -> page
PageFetcher = Callable[[int, int], Awaitable[List[T]]]


def _item_id(item) -> Hashable:
    return item.id


class PagedFeedLoader(Generic[T]):
    """
    Load a feed in fixed-size pages

    has_more is True while pages come back full. A page that exactly fills
    the last slot leaves has_more True, so one extra empty fetch happens at
    the end of a feed.

    Every fetch is tagged with a sequence number. replace_query() and
    dispose() bump the sequence, so a response for an older request is
    dropped instead of being mixed into the current results.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
        key: Callable[[T], Hashable] = _item_id,
        feedback: Optional[Feedback] = None,
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.fetch_page = fetch_page
        self.page_size = min(page_size, settings.MAX_PAGE_SIZE)
        self.key = key
        self.feedback = feedback or Feedback()
        self.state: FeedState[T] = FeedState()
        self.error: Optional[str] = None
        self._sequence = 0
        self._disposed = False

    @property
    def items(self) -> List[T]:
        return self.state.items

    @property
    def has_more(self) -> bool:
        return self.state.has_more

    @property
    def is_loading(self) -> bool:
        return self.state.is_loading

    async def load_page(self, reset: bool = False) -> bool:
        """
        Fetch the next page, or the first page again when reset

        Returns:
            True if a page was applied; False when ignored (already loading,
            exhausted, disposed), superseded, or failed
        """
        if self._disposed or self.state.is_loading:
            return False
        if not reset and not self.state.has_more:
            return False
        return await self._load(reset)

    async def refresh(self) -> bool:
        return await self.load_page(reset=True)

    async def replace_query(self, fetch_page: PageFetcher) -> bool:
        """Switch to a new query, superseding any fetch still in flight"""
        if self._disposed:
            return False
        self.fetch_page = fetch_page
        self._sequence += 1
        self.state = FeedState()
        return await self._load(reset=True)

    def dispose(self):
        self._disposed = True
        self._sequence += 1
        # A fetch still in flight is dropped on return
        self.state.is_loading = False

    async def _load(self, reset: bool) -> bool:
        self._sequence += 1
        sequence = self._sequence
        offset = 0 if reset else self.state.offset

        self.state.is_loading = True
        try:
            page = await self.fetch_page(offset, self.page_size)
        except GalleryError as e:
            if sequence == self._sequence:
                self.state.is_loading = False
                self.error = e.message
                self.feedback.error(e.message)
            return False
        except Exception:
            if sequence == self._sequence:
                self.state.is_loading = False
            raise

        if sequence != self._sequence:
            logger.debug(f"Dropping superseded page at offset {offset}")
            return False

        self.state.is_loading = False
        self._apply_page(page, offset, reset)
        self.error = None
        return True

    def _apply_page(self, page: List[T], offset: int, reset: bool):
        items = [] if reset else self.state.items
        seen = {self.key(item) for item in items}
        for item in page:
            item_key = self.key(item)
            if item_key in seen:
                continue
            seen.add(item_key)
            items.append(item)

        self.state.items = items
        self.state.offset = offset + len(page)
        self.state.has_more = len(page) >= self.page_size
