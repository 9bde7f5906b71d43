from typing import (
    Awaitable,
    Callable,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

T = TypeVar("T")

Page = Tuple[Sequence[T], Optional[str]]


def _has_next(token: Optional[str]) -> bool:
    # An empty-string token means "no more pages", same as None.
    return bool(token)


def paginate(
    fetch_page: Callable[[Optional[str]], Page]
) -> List[T]:
    """
    Collect every page of a cursor-paginated endpoint into one list.

    Parameters
    ----------
    fetch_page : callable
        Called with `None` for the first page and with the previous
        `next_page_token` afterwards. Must return `(items, next_token)`.

    Returns
    -------
    list
        Items of all pages, in page order and intra-page order.

    Notes
    -----
    - The loop stops when `next_token` is `None` or `""`.
    - Any exception raised by `fetch_page` propagates immediately and
      the items gathered so far are discarded.
    """
    items: List[T] = []
    token: Optional[str] = None

    while True:
        page_items, next_token = fetch_page(token)
        items.extend(page_items or [])

        if not _has_next(next_token):
            return items
        token = next_token


async def paginate_async(
    fetch_page: Callable[[Optional[str]], Awaitable[Page]]
) -> List[T]:
    """Same as `paginate` for a coroutine page fetcher."""
    items: List[T] = []
    token: Optional[str] = None

    while True:
        page_items, next_token = await fetch_page(token)
        items.extend(page_items or [])

        if not _has_next(next_token):
            return items
        token = next_token
