"""Download records and the host capabilities the rename pipeline relies on."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from config.rename_settings import RenameSettings


class ConflictAction(StrEnum):
    """How the browser resolves a name collision in the download folder."""

    UNIQUIFY = "uniquify"
    OVERWRITE = "overwrite"
    PROMPT = "prompt"


@dataclass(frozen=True)
class DownloadItem:
    id: int
    filename: str = ""
    url: str = ""
    final_url: str = ""
    referrer: str = ""
    tab_id: Optional[int] = None
    mime: str = ""


@dataclass(frozen=True)
class TabInfo:
    id: Optional[int]
    url: str = ""
    title: str = ""


class SettingsStore(ABC):
    @abstractmethod
    async def read(self) -> "RenameSettings":
        """Return the stored settings with defaults for unset fields."""

    @abstractmethod
    async def write(self, settings: "RenameSettings") -> None:
        ...

    @abstractmethod
    async def reset(self) -> "RenameSettings":
        ...


class TabResolver(ABC):
    @abstractmethod
    async def get_tab(self, tab_id: int) -> Optional[TabInfo]:
        ...

    @abstractmethod
    async def query(self, url_pattern: str) -> list[TabInfo]:
        ...


class DownloadSource(ABC):
    @abstractmethod
    async def get(self, download_id: int) -> Optional[DownloadItem]:
        """Return the latest known state of a download."""

    async def discard(self, download_id: int) -> None:
        """Drop what is held for a decided download. Sources that keep nothing may ignore it."""


class RenameSink(ABC):
    @abstractmethod
    async def suggest(
        self,
        download_id: int,
        filename: str,
        conflict_action: ConflictAction = ConflictAction.UNIQUIFY,
    ) -> None:
        ...

    @abstractmethod
    async def keep_original(self, download_id: int) -> None:
        ...


class DecisionLog(ABC):
    @abstractmethod
    def record(
        self,
        *,
        download_id: int,
        state: str,
        filename: Optional[str],
        reason: Optional[str],
        attempts: int,
    ) -> None:
        ...
