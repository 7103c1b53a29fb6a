from __future__ import annotations

import os
import threading
from datetime import datetime, timedelta, timezone

import pytest

from listing_sync.application.services.sync_engine import SyncEngine
from listing_sync.infrastructure.repositories.listing_repository import ListingRepository
from listing_sync.infrastructure.repositories.sync_state_repository import SyncStateRepository
from listing_sync.shared.constants.sync_constants import SyncDirection
from listing_sync.shared.exceptions.sync import (
    ConfigurationError,
    NotFoundError,
    SyncInProgressError,
)


@pytest.fixture
def repository(db_session) -> ListingRepository:
    return ListingRepository(db_session)


@pytest.fixture
def state_store(db_session) -> SyncStateRepository:
    return SyncStateRepository(db_session)


def _listing_row(**overrides):
    row = {
        "Property Name": "Casa Dover",
        "Current Price": 500000,
        "Square Footage": 2000,
        "ZIP Code": "19901",
    }
    row.update(overrides)
    return row


def remote_attachment(attachment_id: str, filename: str = "photo.png") -> dict:
    """Adjunto con el formato de la API de Airtable."""
    return {
        "id": attachment_id,
        "url": f"https://dl.airtable.test/{attachment_id}/{filename}",
        "filename": filename,
        "type": "image/png",
    }


# ----------------------------------------------------------------------
# Airtable -> local
# ----------------------------------------------------------------------


def test_remote_record_creates_listing_and_pushes_calculated_fields(make_engine, remote_table, repository) -> None:
    rid = remote_table.add(_listing_row(**{"Price Per SqFt": 999, "Listing Score": 87}))

    stats = make_engine().sync_remote_to_local()

    assert stats.total_processed == 1
    assert stats.created == 1
    assert stats.updated == 0
    assert stats.errors == 0
    assert stats.calculations_triggered == 3

    local = repository.find_by_remote_id(rid)
    assert local.title == "Casa Dover"
    assert local.fields["price"] == 500000.0
    assert local.fields["square_footage"] == 2000
    assert local.fields["listing_score"] == 87.0
    # Nunca se lee un calculado local desde Airtable
    assert local.fields["price_per_sqft"] == 250.0
    assert local.fields["county"] == "Kent"
    assert local.fields["original_price"] == 500000.0
    assert local.last_synced_at is not None

    pushed_id, payload = remote_table.updates[-1]
    assert pushed_id == rid
    assert payload["Price Per SqFt"] == 250.0
    assert payload["County"] == "Kent"
    assert "Current Price" not in payload
    assert "Listing Score" not in payload


def test_square_footage_change_recalculates_price_per_sqft(make_engine, remote_table, repository) -> None:
    rid = remote_table.add(_listing_row())
    make_engine().sync_remote_to_local()

    remote_table.touch(rid, **{"Square Footage": 2500})
    stats = make_engine().sync_remote_to_local()

    assert stats.updated == 1
    assert stats.created == 0
    assert repository.find_by_remote_id(rid).fields["price_per_sqft"] == 200.0
    assert remote_table.records[rid]["Price Per SqFt"] == 200.0


def test_second_run_without_changes_is_idempotent(make_engine, remote_table, repository, downloader) -> None:
    rid = remote_table.add(
        _listing_row(**{
            "Listing Photos": [remote_attachment("att1", "a.png"), remote_attachment("att2", "b.png")],
        })
    )

    first = make_engine().sync_remote_to_local()
    local_before = repository.find_by_remote_id(rid)
    updates_before = len(remote_table.updates)

    second = make_engine().sync_remote_to_local()
    local_after = repository.find_by_remote_id(rid)

    assert first.created == 1
    assert second.created == 0
    assert second.updated == 0
    assert second.errors == 0
    assert local_after.fields == local_before.fields
    assert len(local_after.fields["listing_photos"]) == 2
    assert local_after.fields["photo_count"] == 2
    assert len(downloader.calls) == 2
    assert len(repository.list_synced_attachments()) == 2
    assert len(remote_table.updates) == updates_before


def test_failing_record_does_not_stop_the_batch(make_engine, remote_table, repository) -> None:
    ids = [
        remote_table.add(_listing_row(**{"Property Name": f"Casa {i}", "Current Price": 100000 + i}))
        for i in range(10)
    ]
    remote_table.failing_updates.add(ids[4])

    stats = make_engine().sync_remote_to_local()

    assert stats.total_processed == 10
    assert stats.errors == 1
    assert repository.find_by_remote_id(ids[4]) is None
    for rid in ids[:4] + ids[5:]:
        assert repository.find_by_remote_id(rid) is not None


def test_rolled_back_record_leaves_no_stats_or_files(make_engine, remote_table, repository, media_dir) -> None:
    ids = [
        remote_table.add(_listing_row(**{
            "Property Name": f"Casa {i}",
            "Listing Photos": [remote_attachment(f"att{i}", f"foto{i}.png")],
        }))
        for i in range(3)
    ]
    remote_table.failing_updates.add(ids[1])

    stats = make_engine().sync_remote_to_local()

    assert stats.total_processed == 3
    assert stats.created == 2
    assert stats.media_synced == 2
    assert stats.errors == 1
    assert repository.find_by_remote_id(ids[1]) is None
    assert len(repository.list_synced_attachments()) == 2
    stored = [name for _, _, files in os.walk(media_dir) for name in files]
    assert len(stored) == 2
    assert not any("foto1" in name for name in stored)


def test_out_of_range_value_is_rejected_per_field(make_engine, remote_table, repository) -> None:
    ids = [remote_table.add(_listing_row(**{"Property Name": f"Casa {i}"})) for i in range(10)]
    remote_table.records[ids[4]]["Current Price"] = -500

    stats = make_engine().sync_remote_to_local()

    assert stats.total_processed == 10
    assert stats.created == 10
    assert stats.errors == 1
    bad = repository.find_by_remote_id(ids[4])
    assert "price" not in bad.fields
    assert bad.fields["square_footage"] == 2000


def test_rejected_value_keeps_previous_local_value(make_engine, remote_table, repository) -> None:
    rid = remote_table.add(_listing_row())
    make_engine().sync_remote_to_local()

    remote_table.touch(rid, **{"Current Price": -500})
    stats = make_engine().sync_remote_to_local()

    assert stats.errors == 1
    assert repository.find_by_remote_id(rid).fields["price"] == 500000.0


def test_title_falls_back_to_address_then_default(make_engine, remote_table, repository) -> None:
    by_address = remote_table.add({"Street Address": "12 Main St"})
    untitled = remote_table.add({"Bedrooms": 3})

    make_engine().sync_remote_to_local()

    assert repository.find_by_remote_id(by_address).title == "12 Main St"
    assert repository.find_by_remote_id(untitled).title == "Listing from Airtable"


def test_media_disabled_skips_attachments(make_engine, remote_table, repository, downloader, sync_settings) -> None:
    rid = remote_table.add(_listing_row(**{"Featured Photo": [remote_attachment("att1")]}))

    stats = make_engine(sync_settings.with_changes(media_sync_enabled=False)).sync_remote_to_local()

    assert stats.media_synced == 0
    assert downloader.calls == []
    assert "featured_photo" not in repository.find_by_remote_id(rid).fields


def test_remote_configuration_error_aborts_run(make_engine, remote_table) -> None:
    remote_table.list_error = ConfigurationError("Airtable rechazó las credenciales (401)")
    with pytest.raises(ConfigurationError):
        make_engine().sync_remote_to_local()


# ----------------------------------------------------------------------
# local -> Airtable
# ----------------------------------------------------------------------


def test_local_listing_is_created_and_pushed(make_engine, remote_table, repository) -> None:
    local = repository.create_record(
        "Casa local",
        fields={"property_name": "Casa local", "price": 350000, "square_footage": 2000, "listing_score": 90},
    )
    repository.commit()

    stats = make_engine().sync_local_to_remote()

    assert stats.created == 1
    assert stats.updated == 0
    remote_id = repository.get_record(local.record_id).remote_record_id
    assert remote_id in remote_table.records
    remote_fields = remote_table.records[remote_id]
    assert remote_fields["Property Name"] == "Casa local"
    assert remote_fields["Current Price"] == 350000.0
    assert remote_fields["Price Per SqFt"] == 175.0
    assert "Listing Score" not in remote_fields


def test_local_edits_are_pushed_once(make_engine, remote_table, repository) -> None:
    local = repository.create_record("Casa local", fields={"price": 350000})
    repository.commit()
    make_engine().sync_local_to_remote()

    assert make_engine().sync_local_to_remote().total_processed == 0

    repository.set_fields(local.record_id, {"price": 360000})
    repository.commit()
    stats = make_engine().sync_local_to_remote()

    assert stats.total_processed == 1
    assert stats.updated == 1
    remote_id = repository.get_record(local.record_id).remote_record_id
    assert remote_table.records[remote_id]["Current Price"] == 360000.0
    assert remote_table.records[remote_id]["Property Name"] == "Casa local"


def test_missing_remote_record_is_recreated(make_engine, remote_table, repository) -> None:
    local = repository.create_record("Casa huérfana", remote_record_id="recGONE", fields={"bedrooms": 3})
    repository.commit()

    stats = make_engine().sync_local_to_remote()

    assert stats.created == 1
    assert stats.errors == 0
    new_id = repository.get_record(local.record_id).remote_record_id
    assert new_id != "recGONE"
    assert remote_table.records[new_id]["Bedrooms"] == 3


def test_local_square_footage_edit_recalculates_before_push(make_engine, remote_table, repository) -> None:
    rid = remote_table.add(_listing_row())
    make_engine().sync_remote_to_local()
    local = repository.find_by_remote_id(rid)

    repository.set_fields(local.record_id, {"square_footage": 2500})
    repository.commit()
    stats = make_engine().sync_local_to_remote()

    assert stats.updated == 1
    assert stats.calculations_triggered == 1
    assert repository.get_record(local.record_id).fields["price_per_sqft"] == 200.0
    _, payload = remote_table.updates[-1]
    assert payload["Square Footage"] == 2500
    assert payload["Price Per SqFt"] == 200.0

    make_engine().sync_remote_to_local()
    assert repository.get_record(local.record_id).fields["price_per_sqft"] == 200.0
    assert remote_table.records[rid]["Price Per SqFt"] == 200.0


def test_local_price_edit_counts_price_change(make_engine, remote_table, repository) -> None:
    rid = remote_table.add(_listing_row())
    make_engine().sync_remote_to_local()
    local = repository.find_by_remote_id(rid)
    assert local.fields["price_change_count"] == 0

    repository.set_fields(local.record_id, {"price": 450000})
    repository.commit()
    make_engine().sync_local_to_remote()

    fields = repository.get_record(local.record_id).fields
    assert fields["price_change_count"] == 1
    assert fields["price_per_sqft"] == 225.0
    assert remote_table.records[rid]["Price Changes"] == 1


def test_listings_created_from_remote_are_not_pushed_back(make_engine, remote_table, repository) -> None:
    rid = remote_table.add(_listing_row())
    make_engine().sync_remote_to_local()
    updates_before = len(remote_table.updates)

    stats = make_engine().sync_local_to_remote()

    assert stats.total_processed == 0
    assert len(remote_table.updates) == updates_before
    assert repository.find_by_remote_id(rid).modified_at is None


def test_sync_disabled_listings_are_not_pushed(make_engine, remote_table, repository) -> None:
    repository.create_record("Privado", sync_enabled=False, fields={"price": 1})
    repository.commit()

    stats = make_engine().sync_local_to_remote()

    assert stats.total_processed == 0
    assert remote_table.creates == []


def test_imported_attachments_are_pushed_by_remote_id(make_engine, remote_table, repository) -> None:
    rid = remote_table.add(_listing_row(**{"Listing Photos": [remote_attachment("att1"), remote_attachment("att2")]}))
    make_engine().sync_remote_to_local()
    local = repository.find_by_remote_id(rid)

    repository.set_fields(local.record_id, {"bedrooms": 4})
    repository.commit()
    make_engine().sync_local_to_remote()

    pushed_id, payload = remote_table.updates[-1]
    assert pushed_id == rid
    assert payload["Listing Photos"] == [{"id": "att1"}, {"id": "att2"}]
    assert payload["Bedrooms"] == 4


def test_sync_single_local_record(make_engine, remote_table, repository) -> None:
    local = repository.create_record("Casa puntual", fields={"price": 1000})
    repository.commit()

    stats = make_engine().sync_single_local_record(local.record_id)

    assert stats.total_processed == 1
    assert stats.created == 1
    with pytest.raises(NotFoundError):
        make_engine().sync_single_local_record(9999)


# ----------------------------------------------------------------------
# Checkpoints, locks y cancelación
# ----------------------------------------------------------------------


def test_checkpoint_advances_to_fetch_start(make_engine, state_store) -> None:
    fetch_start = datetime(2026, 5, 1, 8, 0, tzinfo=timezone.utc)

    make_engine(clock=lambda: fetch_start).sync_remote_to_local()

    assert state_store.get_checkpoint().last_remote_to_local == fetch_start
    assert state_store.get_checkpoint().last_local_to_remote is None


def test_checkpoint_never_moves_backwards(state_store) -> None:
    later = datetime(2026, 5, 1, 8, 0, tzinfo=timezone.utc)
    earlier = later - timedelta(hours=1)

    state_store.advance_checkpoint(SyncDirection.LOCAL_TO_REMOTE, later)
    current = state_store.advance_checkpoint(SyncDirection.LOCAL_TO_REMOTE, earlier)

    assert current == later
    assert state_store.get_checkpoint().last_local_to_remote == later
    with pytest.raises(ValueError):
        state_store.advance_checkpoint(SyncDirection.BIDIRECTIONAL, later)


def test_incremental_fetch_uses_checkpoint_and_reset_forces_full_sync(make_engine, remote_table) -> None:
    old = datetime(2020, 1, 1, tzinfo=timezone.utc)
    # Sin campos con cálculos: la corrida no vuelve a tocar el registro remoto
    remote_table.add({"Property Name": "Casa vieja", "Bedrooms": 3}, modified=old)

    assert make_engine().sync_remote_to_local().total_processed == 1
    assert make_engine().sync_remote_to_local().total_processed == 0

    engine = make_engine()
    engine.reset_checkpoint(SyncDirection.BIDIRECTIONAL)
    assert engine.sync_remote_to_local().total_processed == 1


def test_direction_lock_rejects_concurrent_writer(make_engine) -> None:
    lock = SyncEngine._direction_locks[SyncDirection.REMOTE_TO_LOCAL]
    assert lock.acquire(blocking=False)
    try:
        with pytest.raises(SyncInProgressError):
            make_engine().sync_remote_to_local()
    finally:
        lock.release()

    # La otra dirección no se bloquea
    make_engine().sync_local_to_remote()


def test_cancelled_run_skips_remaining_records(make_engine, remote_table, repository) -> None:
    for i in range(3):
        remote_table.add(_listing_row(**{"Property Name": f"Casa {i}"}))
    cancel = threading.Event()
    cancel.set()

    stats = make_engine(cancel_event=cancel).sync_remote_to_local()

    assert stats.total_processed == 0
    assert stats.skipped == 3
