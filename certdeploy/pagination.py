"""
Paged listing traversal.

Turns a paged list action (CurrentPage/ShowSize/TotalCount) into a lazy
sequence of items. Traversal of a bucket ends exactly when the number of
items received matches the total reported by the server.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional

from .logger import get_logger


DEFAULT_PAGE_SIZE = 50


class PaginationIntegrityError(Exception):
    """Raised when server-reported totals disagree with the pages received."""
    pass


@dataclass
class PageCursor:
    """Position within one listing traversal."""
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def advance(self) -> None:
        """Move to the next page."""
        self.page += 1

    def as_params(self) -> Dict[str, int]:
        """
        Get the request parameters selecting this page.

        Returns:
            CurrentPage and ShowSize parameters
        """
        return {"CurrentPage": self.page, "ShowSize": self.page_size}


def _iter_bucket(
    client,
    endpoint: str,
    api_version: str,
    action: str,
    params: Mapping[str, Any],
    list_key: str,
    page_size: int,
    max_pages: Optional[int],
    label: str,
) -> Iterator[Dict[str, Any]]:
    """
    Traverse one listing (one status bucket) page by page.

    Ends when the items received equal the TotalCount of the latest page.

    Args:
        client: Object with a call(endpoint, api_version, action, params) method
        endpoint: Product endpoint URL
        api_version: Product API version
        action: List action name
        params: Parameters sent with every page request
        list_key: Response key holding the page items
        page_size: Items per page
        max_pages: Optional hard limit on page requests
        label: Suffix identifying the bucket in log lines and errors

    Yields:
        Raw item dictionaries

    Raises:
        PaginationIntegrityError: If the server totals are inconsistent
    """
    logger = get_logger()
    cursor = PageCursor(page_size=page_size)
    received = 0

    while True:
        if max_pages is not None and cursor.page > max_pages:
            raise PaginationIntegrityError(
                f"{action}{label}: gave up after {max_pages} page(s) "
                f"with {received} item(s) received"
            )

        logger.info(f"{action}{label}, page = {cursor.page}.")
        response = client.call(
            endpoint, api_version, action, {**params, **cursor.as_params()}
        )

        items = response.get(list_key) or []
        total = int(response.get("TotalCount", 0))

        for item in items:
            yield item

        received += len(items)
        if received == total:
            return
        if received > total:
            raise PaginationIntegrityError(
                f"{action}{label}: received {received} item(s) "
                f"but the server reported {total}"
            )
        if not items:
            raise PaginationIntegrityError(
                f"{action}{label}: page {cursor.page} was empty "
                f"with {total - received} of {total} item(s) outstanding"
            )

        cursor.advance()


def iter_items(
    client,
    endpoint: str,
    api_version: str,
    action: str,
    params: Optional[Mapping[str, Any]] = None,
    *,
    list_key: str,
    statuses: Optional[Iterable[str]] = None,
    status_param: str = "Status",
    page_size: int = DEFAULT_PAGE_SIZE,
    max_pages: Optional[int] = None,
) -> Iterator[Dict[str, Any]]:
    """
    Iterate over every item of a paged list action.

    Items are yielded in the order the server returns them. Each call
    starts a fresh traversal. When statuses are given, every status bucket
    is traversed in turn.

    Args:
        client: Object with a call(endpoint, api_version, action, params) method
        endpoint: Product endpoint URL
        api_version: Product API version
        action: List action name
        params: Extra parameters sent with every page request
        list_key: Response key holding the page items
        statuses: Optional status buckets to traverse
        status_param: Request parameter that selects the bucket
        page_size: Items per page
        max_pages: Hard limit on page requests per bucket

    Yields:
        Raw item dictionaries

    Raises:
        PaginationIntegrityError: If the server totals are inconsistent
    """
    params = dict(params or {})

    if statuses is None:
        yield from _iter_bucket(
            client, endpoint, api_version, action, params,
            list_key, page_size, max_pages, "",
        )
        return

    for status in statuses:
        status_value = getattr(status, "value", status)
        yield from _iter_bucket(
            client, endpoint, api_version, action,
            {**params, status_param: status_value},
            list_key, page_size, max_pages, f": {status_param.lower()} = {status_value}",
        )


def for_each_item(
    client,
    endpoint: str,
    api_version: str,
    action: str,
    params: Optional[Mapping[str, Any]],
    statuses: Optional[Iterable[str]],
    on_item: Callable[[Dict[str, Any]], None],
    *,
    list_key: str,
) -> int:
    """
    Invoke on_item for every listed item.

    Callback form of iter_items(); items are visited in listing order.

    Args:
        client: Object with a call(endpoint, api_version, action, params) method
        endpoint: Product endpoint URL
        api_version: Product API version
        action: List action name
        params: Extra parameters sent with every page request
        statuses: Optional status buckets to traverse
        on_item: Callback receiving each raw item
        list_key: Response key holding the page items

    Returns:
        Number of items visited
    """
    count = 0
    for item in iter_items(
        client, endpoint, api_version, action, params,
        list_key=list_key, statuses=statuses,
    ):
        on_item(item)
        count += 1
    return count
