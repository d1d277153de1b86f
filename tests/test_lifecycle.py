from datetime import datetime, timedelta, timezone

import pytest

from leadline.core.errors import InvalidPatchError
from leadline.db.base import Base
from leadline.db.session import SessionLocal, engine
from leadline.models.store_entry import StoreEntry
from leadline.schemas.lead import LeadPayload, LeadRecord
from leadline.services.lead_store import LeadStore, new_lead_key
from leadline.services.lifecycle import LeadQuery, apply_patch, get_lead, list_leads, matches, save_lead

T0 = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def make_record(created: datetime = T0, name: str = "Jess", **fields) -> LeadRecord:
    return LeadRecord(
        id=new_lead_key(created),
        created_at=created,
        updated_at=created,
        lead=LeadPayload(name=name, phone="+14355551234", service="fill"),
        **fields,
    )


def test_apply_patch_contacted_stamps_once():
    record = make_record()
    first = apply_patch(record, {"status": "contacted"}, now=T0 + timedelta(hours=1))
    assert first.status == "contacted"
    assert first.contacted_at == T0 + timedelta(hours=1)
    assert first.closed_at is None

    second = apply_patch(first, {"status": "contacted"}, now=T0 + timedelta(hours=2))
    assert second.contacted_at == T0 + timedelta(hours=1)
    assert second.updated_at == T0 + timedelta(hours=2)


@pytest.mark.parametrize("status", ["closed", "booked", "BOOKED "])
def test_apply_patch_closing_statuses_stamp_closed_at(status):
    record = make_record()
    patched = apply_patch(record, {"status": status}, now=T0 + timedelta(days=1))
    assert patched.closed_at == T0 + timedelta(days=1)

    reopened = apply_patch(patched, {"status": "new"}, now=T0 + timedelta(days=2))
    reclosed = apply_patch(reopened, {"status": "closed"}, now=T0 + timedelta(days=3))
    assert reclosed.closed_at == T0 + timedelta(days=1)


def test_apply_patch_rejects_unknown_status_without_mutation():
    record = make_record()
    with pytest.raises(InvalidPatchError):
        apply_patch(record, {"status": "pending", "internal_notes": "x"})
    assert record.status == "new"
    assert record.internal_notes == ""


def test_apply_patch_mutable_fields():
    record = make_record()
    patched = apply_patch(
        record,
        {
            "internal_notes": "n" * 3000,
            "tags": [f"tag{i}" for i in range(30)] + [None, "  "],
            "archived": "yes",
        },
        now=T0,
    )
    assert len(patched.internal_notes) == 2000
    assert patched.tags == [f"tag{i}" for i in range(25)]
    assert patched.archived is True
    assert patched.status == "new"


def test_apply_patch_non_list_tags_clears():
    record = make_record(tags=["old"])
    assert apply_patch(record, {"tags": "vip"}).tags == []


def test_apply_patch_updated_at_never_moves_backwards():
    record = make_record()
    patched = apply_patch(record, {}, now=T0 - timedelta(minutes=5))
    assert patched.updated_at == T0


def test_lead_query_from_params_defaults_and_clamps():
    query = LeadQuery.from_params()
    assert (query.status, query.q, query.archived, query.limit, query.offset) == ("", "", "false", 50, 0)

    query = LeadQuery.from_params(status=" Booked ", q=" JESS ", archived="ALL", limit="abc", offset="7")
    assert (query.status, query.q, query.archived, query.limit, query.offset) == ("booked", "jess", "all", 50, 7)

    assert LeadQuery.from_params(limit="999").limit == 200
    assert LeadQuery.from_params(offset="-1").offset == 0


def test_matches_free_text_across_fields():
    record = make_record(internal_notes="Prefers mornings", tags=["VIP"])
    assert matches(record, LeadQuery(q="mornings"))
    assert matches(record, LeadQuery(q="vip"))
    assert matches(record, LeadQuery(q="fill"))
    assert matches(record, LeadQuery(q="+1435"))
    assert not matches(record, LeadQuery(q="acrylic"))


def test_matches_archived_modes():
    archived = make_record(archived=True)
    active = make_record()
    assert not matches(archived, LeadQuery())
    assert matches(active, LeadQuery())
    assert matches(archived, LeadQuery(archived="true"))
    assert not matches(active, LeadQuery(archived="true"))
    assert matches(archived, LeadQuery(archived="all"))
    assert matches(active, LeadQuery(archived="all"))


def test_list_leads_newest_first_regardless_of_insert_order():
    store = LeadStore(SessionLocal, "lifecycle-test")
    records = [make_record(T0 + timedelta(minutes=m), name=f"Lead {m}") for m in (5, 1, 9, 3)]
    for record in records:
        save_lead(store, record)
    store.put("rate/1.2.3.4", {"count": 1})

    total, page = list_leads(store, LeadQuery(), workers=2)
    assert total == 4
    assert [r.lead.name for r in page] == ["Lead 9", "Lead 5", "Lead 3", "Lead 1"]

    total, page = list_leads(store, LeadQuery(limit=2, offset=1))
    assert total == 4
    assert [r.lead.name for r in page] == ["Lead 5", "Lead 3"]


def test_list_leads_skips_malformed_records():
    store = LeadStore(SessionLocal, "lifecycle-test")
    good = make_record()
    save_lead(store, good)
    store.put(new_lead_key(T0 + timedelta(minutes=1)), {"id": "broken"})

    total, page = list_leads(store, LeadQuery())
    assert total == 1
    assert page[0].id == good.id


def test_list_leads_skips_non_object_entries():
    store = LeadStore(SessionLocal, "lifecycle-test")
    good = make_record()
    save_lead(store, good)
    store.put(new_lead_key(T0 + timedelta(minutes=1)), ["not", "a", "lead"])
    store.put(new_lead_key(T0 + timedelta(minutes=2)), "text")

    total, page = list_leads(store, LeadQuery())
    assert total == 1
    assert page[0].id == good.id


def test_get_lead_returns_none_for_unreadable_entry():
    store = LeadStore(SessionLocal, "lifecycle-test")
    key = new_lead_key(T0)
    db = SessionLocal()
    db.add(StoreEntry(store=store.name, key=key, value="{not json", entry_metadata={}))
    db.commit()
    db.close()

    assert get_lead(store, key) is None
    assert list_leads(store, LeadQuery()) == (0, [])
    store.put(key, ["not", "a", "lead"])
    assert get_lead(store, key) is None


def test_save_lead_mirrors_metadata():
    store = LeadStore(SessionLocal, "lifecycle-test")
    record = apply_patch(make_record(), {"status": "booked", "archived": True})
    save_lead(store, record)
    assert store.get_metadata(record.id) == {"status": "booked", "archived": "true"}
    assert get_lead(store, record.id) == record
