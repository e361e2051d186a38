"""In-memory views of the browser's tabs and downloads.

The browser side pushes tab and download updates over the host protocol;
these registries keep the latest copy so the rename service can look them up.
"""
from __future__ import annotations

import dataclasses
from typing import Iterable, Optional

from download.base import DownloadItem, DownloadSource, TabInfo, TabResolver


def url_matches_pattern(url: str, pattern: str) -> bool:
    """Match ``url`` against a ``scheme://host/*`` pattern."""

    if not url or not pattern.endswith("/*"):
        return False
    prefix = pattern[:-1]
    return url.lower().startswith(prefix.lower())


class TabRegistry(TabResolver):
    def __init__(self) -> None:
        self._tabs: dict[int, TabInfo] = {}

    def update(self, tabs: Iterable[TabInfo]) -> None:
        for tab in tabs:
            if tab.id is None:
                continue
            self._tabs[tab.id] = tab

    def remove(self, tab_id: int) -> None:
        self._tabs.pop(tab_id, None)

    async def get_tab(self, tab_id: int) -> Optional[TabInfo]:
        return self._tabs.get(tab_id)

    async def query(self, url_pattern: str) -> list[TabInfo]:
        return [tab for tab in self._tabs.values() if url_matches_pattern(tab.url, url_pattern)]


class DownloadRegistry(DownloadSource):
    def __init__(self) -> None:
        self._items: dict[int, DownloadItem] = {}

    def upsert(self, item: DownloadItem) -> DownloadItem:
        """Merge the non-empty fields of ``item`` into the stored record."""

        current = self._items.get(item.id)
        if current is None:
            merged = item
        else:
            changes = {
                field.name: getattr(item, field.name)
                for field in dataclasses.fields(item)
                if getattr(item, field.name) not in (None, "")
            }
            merged = dataclasses.replace(current, **changes)
        self._items[item.id] = merged
        return merged

    def remove(self, download_id: int) -> None:
        self._items.pop(download_id, None)

    def __len__(self) -> int:
        return len(self._items)

    async def discard(self, download_id: int) -> None:
        self.remove(download_id)

    async def get(self, download_id: int) -> Optional[DownloadItem]:
        return self._items.get(download_id)
