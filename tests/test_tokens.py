from datetime import date, datetime

from config.rename_settings import RenameSettings
from core.mime_utils import extension_from_mime, extensions_agree
from core.tokens import (
    RenderContext,
    extract_tokens,
    format_date,
    resolve_download_title,
    resolve_extension_from_download,
)
from download.base import DownloadItem


def test_format_date_zero_pads_local_fields():
    assert format_date(datetime(2024, 5, 2, 12, 0, 0)) == "2024-05-02"
    assert format_date(date(2024, 12, 31)) == "2024-12-31"


def test_resolve_download_title_prefers_tab_title():
    title = resolve_download_title(
        tab_title="Quarterly Results: Q1",
        url="https://example.com/files/report.pdf",
        filename="report.pdf",
        max_length=80,
    )
    assert title == "Quarterly_Results_Q1"


def test_resolve_download_title_punctuation_tab_title_falls_through():
    title = resolve_download_title(
        tab_title="***",
        url="https://example.com/files/Annual%20Report.pdf?x=1",
        filename="whatever.pdf",
        max_length=80,
    )
    assert title == "Annual_Report"


def test_resolve_download_title_uses_filename_when_url_has_no_name():
    title = resolve_download_title(
        tab_title="",
        url="https://example.com/",
        filename="/home/user/Downloads/meeting notes.txt",
        max_length=80,
    )
    assert title == "meeting_notes"


def test_resolve_download_title_defaults_to_download():
    assert resolve_download_title(tab_title="", url="", filename="download.jpg", max_length=20) == "download"
    assert resolve_download_title(tab_title="!!!", url="", filename="", max_length=20) == "download"
    assert resolve_download_title() == "download"


def test_mime_conflict_prefers_mime():
    item = DownloadItem(id=1, filename="image.jpg", mime="image/webp", final_url="", url="")
    assert resolve_extension_from_download(item) == "webp"


def test_mime_alias_does_not_override_filename():
    item = DownloadItem(id=1, filename="photo.jpeg", mime="image/jpeg")
    assert resolve_extension_from_download(item) == "jpeg"


def test_extension_falls_back_through_urls():
    item = DownloadItem(
        id=1,
        filename="",
        final_url="https://cdn.example.com/media/clip.mp4",
        url="https://example.com/watch?v=1",
    )
    assert resolve_extension_from_download(item) == "mp4"

    original_only = DownloadItem(id=2, url="https://example.com/data/export.csv")
    assert resolve_extension_from_download(original_only) == "csv"


def test_extension_from_mime_when_nothing_else_is_known():
    item = DownloadItem(id=1, filename="download", mime="application/pdf; charset=binary")
    assert resolve_extension_from_download(item) == "pdf"


def test_generic_mime_keeps_filename_extension():
    item = DownloadItem(id=1, filename="archive.zip", mime="application/octet-stream")
    assert resolve_extension_from_download(item) == "zip"


def test_no_signals_gives_empty_extension():
    assert resolve_extension_from_download(DownloadItem(id=1)) == ""


def test_extension_from_mime_table_and_subtype_parsing():
    assert extension_from_mime("IMAGE/PNG") == "png"
    assert extension_from_mime("text/html; charset=utf-8") == "html"
    assert extension_from_mime("image/svg+xml") == "svg"
    assert extension_from_mime("audio/x-flac") == "flac"
    assert extension_from_mime("application/x-bzip2") == "bzip2"
    assert extension_from_mime("application/vnd.apple.mpegurl") == "mpegurl"
    assert extension_from_mime("application/ld+json") == "ld"
    assert extension_from_mime("garbage") == ""
    assert extension_from_mime("") == ""
    assert extension_from_mime(None) == ""


def test_extensions_agree_is_case_and_alias_insensitive():
    assert extensions_agree("JPG", "jpeg")
    assert extensions_agree("htm", "HTML")
    assert not extensions_agree("jpg", "webp")


def test_extract_tokens_backfills_placeholders():
    context = RenderContext(domain="", title="***", ext="t.x.t", date=date(2024, 5, 2))
    tokens = extract_tokens(context, RenameSettings(max_title_length=20))

    assert tokens.domain == "unknown-domain"
    assert tokens.title == "download"
    assert tokens.ext == "txt"
    assert tokens.date == "2024-05-02"
    assert tokens.year == "2024"
    assert tokens.original_name == "download"


def test_extract_tokens_original_name_replaces_forbidden_characters():
    context = RenderContext(
        domain="www.example.com",
        title="Page",
        ext="txt",
        date=date(2024, 5, 2),
        original_name='a:b?"c".txt',
    )
    tokens = extract_tokens(context, RenameSettings())

    assert tokens.domain == "example.com"
    assert tokens.original_name == "a_b__c_"
