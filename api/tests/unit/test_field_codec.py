from __future__ import annotations

import os
from typing import Any

import pytest
import requests

from listing_sync.application.services import field_codec
from listing_sync.domain.entities.sync_types import AttachmentRef, RemoteRecord
from listing_sync.infrastructure.media.http_downloader import HttpMediaDownloader
from listing_sync.shared.constants.sync_constants import FieldCategory
from listing_sync.shared.exceptions.sync import TransportError, ValidationError
from listing_sync.shared.utils.retry import RetryPolicy


def test_remote_to_local_filters_by_category(registry) -> None:
    record = RemoteRecord(
        record_id="rec1",
        fields={
            "Property Name": " <i>Casa</i> ",
            "Current Price": "$450,000",
            "Price Per SqFt": 999,
            "Listing Score": 71,
            "Last Modified": "2026-01-01T00:00:00.000Z",
            "Listing Photos": [{"id": "att1", "url": "https://x/1.png"}],
            "Bedrooms": 99,
            "Unmapped Column": "ignored",
        },
    )

    result = field_codec.remote_to_local(record, registry)

    assert result.values == {"property_name": "Casa", "price": 450000.0, "listing_score": 71.0}
    assert result.media == {"listing_photos": [{"id": "att1", "url": "https://x/1.png"}]}
    assert set(result.rejected) == {"bedrooms"}


def test_local_to_remote_formats_by_data_type(registry) -> None:
    values = {
        "property_name": "Casa",
        "bedrooms": 3.0,
        "price": "425000",
        "has_pool": 1,
        "list_date": "2026-02-01",
        "price_per_sqft": 212.5,
        "listing_score": 80,
        "city": "",
        "lot_size": None,
    }

    manual_only = field_codec.local_to_remote(values, registry, categories=(FieldCategory.MANUAL,))
    assert manual_only == {
        "Property Name": "Casa",
        "Bedrooms": 3,
        "Current Price": 425000.0,
        "Has Pool": True,
        "List Date": "2026-02-01",
    }

    calculated = field_codec.local_to_remote(values, registry, categories=(FieldCategory.CALCULATED_LOCAL,))
    assert calculated == {"Price Per SqFt": 212.5}


def test_parse_remote_attachment_uses_thumbnail_dimensions() -> None:
    ref = field_codec.parse_remote_attachment({
        "id": "att1",
        "url": "https://dl.airtable.test/att1/a.jpg",
        "filename": "a.jpg",
        "size": 2048,
        "type": "image/jpeg",
        "thumbnails": {"full": {"width": 800, "height": 600}},
    })
    assert ref.remote_attachment_id == "att1"
    assert (ref.width, ref.height) == (800, 600)
    assert ref.byte_size == 2048

    with pytest.raises(ValidationError):
        field_codec.parse_remote_attachment({"id": "att2", "filename": "sin-url.png"})


def test_attachments_to_remote_keeps_existing_ids() -> None:
    refs = [
        AttachmentRef(url="https://cdn/a.png", filename="a.png", remote_attachment_id="att1"),
        AttachmentRef(url="https://cdn/b.png", filename="b.png"),
    ]
    assert field_codec.attachments_to_remote(refs) == [
        {"id": "att1"},
        {"url": "https://cdn/b.png", "filename": "b.png"},
    ]


def test_best_effort_title() -> None:
    record = RemoteRecord(record_id="rec1", fields={"Property Name": "", "Street Address": "  9 Elm St "})
    assert field_codec.best_effort_title(record, ("Property Name", "Street Address"), "Sin nombre") == "9 Elm St"
    assert field_codec.best_effort_title(RemoteRecord("rec2", {}), ("Property Name",), "Sin nombre") == "Sin nombre"


# ----------------------------------------------------------------------
# Descarga de adjuntos
# ----------------------------------------------------------------------


class _StreamResponse:
    def __init__(self, status_code: int, chunks: list, headers: dict) -> None:
        self.status_code = status_code
        self._chunks = chunks
        self.headers = headers

    def iter_content(self, chunk_size: int):
        return iter(self._chunks)

    def __enter__(self):
        return self

    def __exit__(self, *args: Any) -> bool:
        return False


class _StreamSession:
    """Devuelve respuestas (o lanza excepciones) en orden; la última se repite."""

    def __init__(self, *items) -> None:
        self._items = list(items)
        self.calls = 0

    def get(self, url: str, **kwargs: Any):
        self.calls += 1
        item = self._items.pop(0) if len(self._items) > 1 else self._items[0]
        if isinstance(item, Exception):
            raise item
        return item


def _downloader(session, tmp_path, *, max_retries: int = 2) -> tuple[HttpMediaDownloader, list]:
    sleeps: list[float] = []
    downloader = HttpMediaDownloader(
        session=session,
        temp_dir=str(tmp_path),
        retry_policy=RetryPolicy(max_retries=max_retries),
        sleep=sleeps.append,
    )
    return downloader, sleeps


def _temp_files(tmp_path) -> list:
    return sorted(p.name for p in tmp_path.iterdir())


def test_http_downloader_writes_temp_file(tmp_path) -> None:
    session = _StreamSession(_StreamResponse(200, [b"abc", b"", b"def"], {"Content-Type": "image/png"}))
    downloader, sleeps = _downloader(session, tmp_path)

    downloaded = downloader.download("https://dl/x.png", max_bytes=100)

    assert downloaded.byte_size == 6
    assert downloaded.content_type == "image/png"
    assert sleeps == []
    with open(downloaded.path, "rb") as f:
        assert f.read() == b"abcdef"


def test_http_downloader_enforces_size_limit_and_cleans_up(tmp_path) -> None:
    declared = _StreamSession(_StreamResponse(200, [b"x"], {"Content-Length": "500"}))
    with pytest.raises(ValidationError):
        _downloader(declared, tmp_path)[0].download("https://dl/a", max_bytes=100)

    streamed = _StreamSession(_StreamResponse(200, [b"x" * 60, b"x" * 60], {}))
    with pytest.raises(ValidationError):
        _downloader(streamed, tmp_path)[0].download("https://dl/b", max_bytes=100)

    assert declared.calls == 1
    assert streamed.calls == 1
    assert _temp_files(tmp_path) == []


def test_http_downloader_retries_transient_failures(tmp_path) -> None:
    session = _StreamSession(
        requests.ConnectionError("transient"),
        _StreamResponse(503, [], {}),
        _StreamResponse(200, [b"png"], {"Content-Type": "image/png"}),
    )
    downloader, sleeps = _downloader(session, tmp_path)

    downloaded = downloader.download("https://dl/y.png", max_bytes=100)

    assert downloaded.byte_size == 3
    assert session.calls == 3
    assert len(sleeps) == 2
    assert sleeps[1] > sleeps[0]
    assert downloader.retry_stats.last_attempts == 3
    assert _temp_files(tmp_path) == [os.path.basename(downloaded.path)]


def test_http_downloader_gives_up_after_max_attempts(tmp_path) -> None:
    broken = _StreamSession(requests.ConnectionError("reset"))
    downloader, sleeps = _downloader(broken, tmp_path, max_retries=2)

    with pytest.raises(TransportError) as exc_info:
        downloader.download("https://dl/b", max_bytes=10)

    assert exc_info.value.attempts == 3
    assert broken.calls == 3
    assert len(sleeps) == 2
    assert _temp_files(tmp_path) == []


def test_http_downloader_does_not_retry_client_errors(tmp_path) -> None:
    not_found = _StreamSession(_StreamResponse(404, [], {}))
    downloader, sleeps = _downloader(not_found, tmp_path)

    with pytest.raises(TransportError) as exc_info:
        downloader.download("https://dl/a", max_bytes=10)

    assert exc_info.value.remote_status == 404
    assert exc_info.value.attempts == 1
    assert not_found.calls == 1
    assert sleeps == []
    assert _temp_files(tmp_path) == []
