"""Tests for Record, RecordId and RecordCollection.

Covers:
  - URL normalization to the host part
  - Password history accumulation
  - Id generation, prefix lookup, upsert, search
  - Plain-value conversion used for encryption
"""

from datetime import datetime, timezone

import pytest

from pser.vault.exceptions import InvalidUrlError
from pser.vault.records import Record, RecordCollection, RecordId, domain_from_url


class TestDomainFromUrl:

    @pytest.mark.parametrize("url, expected", [
        ("https://sub.example.com/a/b?x=1", "sub.example.com"),
        ("http://id1.cloud.abc.com/a/b/c.html", "id1.cloud.abc.com"),
        ("google.com", "google.com"),
        ("google.com/accounts", "google.com"),
        ("ftp://files.example.org", "files.example.org"),
        ("  https://padded.example.com/  ", "padded.example.com"),
        ("example.com#frag", "example.com"),
    ])
    def test_extracts_host(self, url, expected):
        assert domain_from_url(url) == expected

    @pytest.mark.parametrize("url", ["", "https:///path", "/only/a/path", "not a url"])
    def test_rejects_unparsable(self, url):
        with pytest.raises(InvalidUrlError):
            domain_from_url(url)

    def test_invalid_url_is_value_error(self):
        with pytest.raises(ValueError):
            domain_from_url("")


class TestRecord:

    def test_chained_setters(self):
        record = (
            Record()
            .set_username("juji")
            .set_url("https://google.com/accounts")
            .set_description("Mail")
            .set_email("juji@example.com")
            .set_phone("555-0100")
            .set_comment("primary")
        )
        assert record.username == "juji"
        assert record.url == "google.com"
        assert record.description == "Mail"
        assert record.email == "juji@example.com"
        assert record.phone == "555-0100"
        assert record.comment == "primary"

    def test_set_url_empty_clears(self):
        record = Record().set_url("google.com").set_url("")
        assert record.url == ""

    def test_set_url_invalid_raises(self):
        with pytest.raises(InvalidUrlError):
            Record().set_url("https:///nothing")

    def test_first_password_has_no_history(self):
        record = Record().set_password("first", now=100)
        assert record.password == "first"
        assert record.history == {}

    def test_password_history_accumulates(self):
        record = Record()
        record.set_password("one", now=100)
        record.set_password("two", now=200)
        record.set_password("three", now=300)
        assert record.password == "three"
        assert record.history == {200: "one", 300: "two"}

    def test_same_second_change_keeps_both(self):
        record = Record().set_password("one", now=100)
        record.set_password("two", now=200)
        record.set_password("three", now=200)
        assert record.history == {200: "one", 201: "two"}

    def test_history_entries_sorted_utc(self):
        record = Record(history={300: "b", 100: "a"})
        entries = record.history_entries()
        assert entries == [
            (datetime.fromtimestamp(100, tz=timezone.utc), "a"),
            (datetime.fromtimestamp(300, tz=timezone.utc), "b"),
        ]

    def test_matches_url_and_description_only(self):
        record = Record(username="google-user", url="mail.example.com", description="Work GitLab")
        assert record.matches("EXAMPLE")
        assert record.matches("gitlab")
        assert not record.matches("google")

    def test_plain_round_trip(self):
        record = Record(username="u", url="x.com", password="p", history={5: "old"})
        assert Record.from_plain(record.to_plain()) == record

    def test_from_plain_missing_fields_default_empty(self):
        assert Record.from_plain({"username": "u"}) == Record(username="u")

    def test_from_plain_rejects_bad_types(self):
        with pytest.raises(TypeError):
            Record.from_plain({"username": 5})
        with pytest.raises(TypeError):
            Record.from_plain({"history": {"1": "x"}})
        with pytest.raises(TypeError):
            Record.from_plain(["not", "a", "map"])

    def test_repr_hides_password(self):
        record = Record(password="s3cr3t", history={1: "older-s3cr3t"})
        assert "s3cr3t" not in repr(record)


class TestRecordId:

    def test_generate_is_32_hex(self):
        record_id = RecordId.generate()
        assert len(str(record_id)) == 32
        int(str(record_id), 16)

    def test_generate_unique(self):
        assert len({RecordId.generate() for _ in range(1000)}) == 1000

    def test_coerce(self):
        record_id = RecordId("abc")
        assert RecordId.coerce(record_id) is record_id
        assert RecordId.coerce("abc") == record_id

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            RecordId("")


class TestRecordCollection:

    @pytest.fixture
    def collection(self):
        return RecordCollection()

    def test_insert_assigns_unique_ids(self, collection):
        ids = {collection.insert(Record()) for _ in range(200)}
        assert len(ids) == 200
        assert len(collection) == 200

    def test_upsert_idempotent(self, collection):
        record = Record(username="a")
        collection.upsert("abc", record)
        collection.upsert("abc", record)
        assert len(collection) == 1
        assert collection.get("abc") == record

    def test_upsert_replaces(self, collection):
        record_id = collection.insert(Record(username="old"))
        collection.upsert(record_id, Record(username="new"))
        assert collection.get(record_id).username == "new"

    def test_remove(self, collection):
        record_id = collection.insert(Record())
        assert collection.remove(record_id) is not None
        assert record_id not in collection
        assert collection.remove(record_id) is None

    def test_clear(self, collection):
        collection.insert(Record())
        collection.clear()
        assert len(collection) == 0

    def test_stored_record_is_a_copy(self, collection):
        record = Record(username="a", history={1: "old"})
        record_id = collection.insert(record)
        record.username = "changed"
        record.history[2] = "later"
        assert collection.get(record_id) == Record(username="a", history={1: "old"})

    def test_returned_record_is_a_copy(self, collection):
        record_id = collection.insert(Record(username="a"))
        collection.get(record_id).set_username("changed")
        collection.items()[0][1].set_username("changed")
        collection.search("")[0][1].set_username("changed")
        assert collection.get(record_id).username == "a"

    def test_ids_with_prefix(self, collection):
        collection.upsert("abc123", Record())
        collection.upsert("abd456", Record())
        collection.upsert("xyz789", Record())
        assert sorted(str(i) for i in collection.ids_with_prefix("ab")) == ["abc123", "abd456"]
        assert collection.ids_with_prefix("ABC") == []
        assert len(collection.ids_with_prefix("")) == 3

    def test_search(self, collection):
        hit = collection.insert(Record(url="google.com"))
        collection.insert(Record(url="example.com"))
        results = collection.search("GOOGLE")
        assert [rid for rid, _ in results] == [hit]

    def test_search_empty_returns_all(self, collection):
        collection.insert(Record())
        collection.insert(Record(url="a.com"))
        assert len(collection.search("")) == 2

    def test_contains_accepts_str(self, collection):
        collection.upsert("abc", Record())
        assert "abc" in collection
        assert RecordId("abc") in collection
        assert "" not in collection

    def test_plain_round_trip(self, collection):
        collection.insert(Record(username="a", history={1: "x"}))
        collection.insert(Record(username="b"))
        restored = RecordCollection.from_plain(collection.to_plain())
        assert restored.items() == collection.items()

    def test_from_plain_rejects_non_map(self):
        with pytest.raises(TypeError):
            RecordCollection.from_plain([1, 2])
        with pytest.raises(TypeError):
            RecordCollection.from_plain({1: {}})
