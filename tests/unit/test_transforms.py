"""
Unit tests for built-in record transforms.

Each transform is exercised in isolation against a JobState so the
counters it touches can be checked.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from mpimport.core.transforms import (
    DROPPED,
    AliasTransform,
    DedupeTransform,
    EpochFilterTransform,
    FlattenPropertiesTransform,
    InsertIdTupleTransform,
    NormalizeTransform,
    RemoveNullsTransform,
    ScrubPropertiesTransform,
    TagTransform,
    TimeOffsetTransform,
    WhiteBlackListTransform,
    to_epoch_millis,
)
from mpimport.core.transforms.base_transform import as_millis
from mpimport.core.transforms.property_transforms import flatten
from mpimport.utils.serialization import hash_parts


class TestTimeHelpers:
    """Tests for time coercion helpers"""

    def test_iso_string_to_millis(self):
        assert to_epoch_millis("2024-01-01T00:00:00Z") == 1704067200000

    def test_naive_iso_is_utc(self):
        assert to_epoch_millis("2024-01-01T00:00:00") == 1704067200000

    def test_numeric_string_becomes_number(self):
        assert to_epoch_millis("1704067200") == 1704067200
        assert to_epoch_millis("1704067200.5") == 1704067200.5

    def test_unparseable_is_untouched(self):
        assert to_epoch_millis("last tuesday") == "last tuesday"
        assert to_epoch_millis(None) is None

    def test_as_millis_reads_seconds(self):
        assert as_millis(1704067200) == 1704067200000
        assert as_millis(1704067200000) == 1704067200000
        assert as_millis("soon") is None

    @given(st.integers(min_value=0, max_value=4_102_444_800_000))
    def test_property_numbers_pass_through(self, value):
        """Numbers are never altered by coercion"""
        assert to_epoch_millis(value) == value


class TestAliasTransform:
    """Tests for AliasTransform"""

    def test_disabled_without_aliases(self, make_job):
        assert AliasTransform.is_enabled(make_job().options) is False

    def test_renames_event_properties(self, make_job):
        transform = AliasTransform(make_job(aliases={"uuid": "distinct_id", "ts": "time"}))
        record = {"event": "x", "properties": {"uuid": "u1", "ts": 5, "other": 1}}
        result = transform.apply(record)
        assert result["properties"] == {"distinct_id": "u1", "time": 5, "other": 1}

    def test_renames_flat_event_keys(self, make_job):
        transform = AliasTransform(make_job(aliases={"name": "event"}))
        assert transform.apply({"name": "x", "uuid": "u1"}) == {"event": "x", "uuid": "u1"}

    def test_renames_profile_operation_keys(self, make_job):
        transform = AliasTransform(make_job(record_type="user", aliases={"mail": "$email"}))
        record = {"$distinct_id": "u1", "$set": {"mail": "a@b.c"}}
        assert transform.apply(record)["$set"] == {"$email": "a@b.c"}


class TestNormalizeTransform:
    """Tests for NormalizeTransform"""

    def test_enabled_by_fix_data(self, make_job):
        assert NormalizeTransform.is_enabled(make_job(fix_data=True).options) is True
        assert NormalizeTransform.is_enabled(make_job().options) is False
        assert NormalizeTransform.is_enabled(make_job(fix_data=True, record_type="table").options) is False

    def test_flat_event_is_reshaped(self, make_job):
        transform = NormalizeTransform(make_job(fix_data=True))
        result = transform.apply(
            {"event": "sign up", "distinct_id": "u1", "time": "2024-01-01T00:00:00Z", "plan": "pro"}
        )
        assert result["event"] == "sign up"
        props = result["properties"]
        assert props["time"] == 1704067200000
        assert props["plan"] == "pro"
        assert props["$insert_id"] == hash_parts("sign up", "u1", 1704067200000)

    def test_insert_id_is_deterministic(self, make_job):
        transform = NormalizeTransform(make_job(fix_data=True))
        first = transform.apply({"event": "a", "properties": {"distinct_id": "u", "time": 1}})
        second = transform.apply({"event": "a", "properties": {"distinct_id": "u", "time": 1}})
        assert first["properties"]["$insert_id"] == second["properties"]["$insert_id"]

    def test_existing_insert_id_is_kept(self, make_job):
        transform = NormalizeTransform(make_job(fix_data=True))
        result = transform.apply({"event": "a", "properties": {"$insert_id": "keep-me"}})
        assert result["properties"]["$insert_id"] == "keep-me"

    def test_flat_user_is_wrapped_in_set(self, make_job):
        job = make_job({"token": "tok"}, record_type="user", fix_data=True)
        result = NormalizeTransform(job).apply({"distinct_id": "u1", "name": "Ada"})
        assert result == {"$distinct_id": "u1", "$set": {"name": "Ada"}, "$token": "tok"}

    def test_engage_export_shape_is_unwrapped(self, make_job):
        job = make_job({"token": "tok"}, record_type="user", fix_data=True)
        result = NormalizeTransform(job).apply(
            {"$distinct_id": "u1", "$properties": {"$email": "a@b.c"}}
        )
        assert result["$set"] == {"$email": "a@b.c"}

    def test_user_without_id_becomes_empty(self, make_job):
        job = make_job({"token": "tok"}, record_type="user", fix_data=True)
        assert NormalizeTransform(job).apply({"name": "nobody"}) == {}

    def test_group_gets_group_key(self, make_job):
        job = make_job({"token": "tok", "group_key": "company_id"}, record_type="group", fix_data=True)
        result = NormalizeTransform(job).apply({"group_id": "g1", "plan": "pro"})
        assert result == {
            "$group_id": "g1",
            "$set": {"plan": "pro"},
            "$token": "tok",
            "$group_key": "company_id",
        }

    def test_profile_with_operation_is_kept(self, make_job):
        job = make_job({"token": "tok"}, record_type="user", fix_data=True)
        record = {"$distinct_id": "u1", "$token": "other", "$set_once": {"first": 1}}
        assert NormalizeTransform(job).apply(record) == record


class TestRemoveNullsTransform:
    """Tests for RemoveNullsTransform"""

    def test_strips_blank_values(self, make_job):
        transform = RemoveNullsTransform(make_job(remove_nulls=True))
        record = {
            "event": "x",
            "properties": {"a": None, "b": "", "c": {}, "d": [], "e": 0, "f": False},
        }
        assert transform.apply(record)["properties"] == {"e": 0, "f": False}

    def test_strips_profile_operation_values(self, make_job):
        transform = RemoveNullsTransform(make_job(record_type="user", remove_nulls=True))
        record = {"$distinct_id": "u1", "$set": {"name": None, "plan": "pro"}}
        assert transform.apply(record)["$set"] == {"plan": "pro"}


class TestTimeOffsetTransform:
    """Tests for TimeOffsetTransform"""

    def test_shifts_milliseconds(self, make_job):
        transform = TimeOffsetTransform(make_job(time_offset=-5))
        record = {"event": "x", "properties": {"time": 1_700_000_000_000}}
        assert transform.apply(record)["properties"]["time"] == 1_700_000_000_000 - 5 * 3_600_000

    def test_shifts_seconds(self, make_job):
        transform = TimeOffsetTransform(make_job(time_offset=1))
        record = {"event": "x", "properties": {"time": 1_700_000_000}}
        assert transform.apply(record)["properties"]["time"] == 1_700_003_600

    def test_missing_time_is_untouched(self, make_job):
        transform = TimeOffsetTransform(make_job(time_offset=1))
        record = {"event": "x", "properties": {}}
        assert transform.apply(record) == {"event": "x", "properties": {}}


class TestEpochFilterTransform:
    """Tests for EpochFilterTransform"""

    @pytest.fixture
    def job(self, make_job):
        return make_job(epoch_start=1_700_000_000, epoch_end=1_700_000_100)

    def test_drops_events_before_window(self, job):
        transform = EpochFilterTransform(job)
        result = transform.apply({"event": "x", "properties": {"time": 1_699_999_999_000}})
        assert result is DROPPED
        assert job.out_of_bounds == 1

    def test_drops_events_after_window(self, job):
        transform = EpochFilterTransform(job)
        assert transform.apply({"event": "x", "properties": {"time": 1_700_000_101}}) is DROPPED

    def test_keeps_events_inside_window(self, job):
        transform = EpochFilterTransform(job)
        record = {"event": "x", "properties": {"time": 1_700_000_050}}
        assert transform.apply(record) is record
        assert job.out_of_bounds == 0

    def test_keeps_events_without_time(self, job):
        transform = EpochFilterTransform(job)
        record = {"event": "x", "properties": {"distinct_id": "u"}}
        assert transform.apply(record) is record


class TestTagTransform:
    """Tests for TagTransform"""

    def test_tags_win_over_existing_keys(self, make_job):
        transform = TagTransform(make_job(tags={"source": "backfill"}))
        record = {"event": "x", "properties": {"source": "web", "a": 1}}
        assert transform.apply(record)["properties"] == {"source": "backfill", "a": 1}

    def test_tags_profiles(self, make_job):
        transform = TagTransform(make_job(record_type="user", tags={"source": "backfill"}))
        record = {"$distinct_id": "u1", "$set": {"name": "Ada"}}
        assert transform.apply(record)["$set"] == {"name": "Ada", "source": "backfill"}


class TestWhiteBlackListTransform:
    """Tests for WhiteBlackListTransform"""

    def test_event_whitelist(self, make_job):
        job = make_job(event_whitelist=["keep"])
        transform = WhiteBlackListTransform(job)
        assert transform.apply({"event": "drop", "properties": {}}) is DROPPED
        assert transform.apply({"event": "keep", "properties": {}}) != DROPPED
        assert job.whitelist_skipped == 1

    def test_event_blacklist(self, make_job):
        job = make_job(event_blacklist="drop")
        transform = WhiteBlackListTransform(job)
        assert transform.apply({"event": "drop", "properties": {}}) is DROPPED
        assert job.blacklist_skipped == 1

    def test_prop_key_lists(self, make_job):
        job = make_job(prop_key_whitelist=["plan"], prop_key_blacklist=["email"])
        transform = WhiteBlackListTransform(job)
        assert transform.apply({"event": "x", "properties": {"other": 1}}) is DROPPED
        assert transform.apply({"event": "x", "properties": {"plan": 1, "email": "a"}}) is DROPPED
        kept = {"event": "x", "properties": {"plan": 1}}
        assert transform.apply(kept) is kept
        assert (job.whitelist_skipped, job.blacklist_skipped) == (1, 1)

    def test_prop_value_lists(self, make_job):
        job = make_job(prop_val_whitelist=["pro"], prop_val_blacklist=["test"])
        transform = WhiteBlackListTransform(job)
        assert transform.apply({"event": "x", "properties": {"plan": "free"}}) is DROPPED
        assert transform.apply({"event": "x", "properties": {"plan": "pro", "env": "test"}}) is DROPPED
        assert (job.whitelist_skipped, job.blacklist_skipped) == (1, 1)

    def test_counts_once_per_record(self, make_job):
        job = make_job(event_blacklist=["x"], prop_key_blacklist=["email"])
        transform = WhiteBlackListTransform(job)
        transform.apply({"event": "x", "properties": {"email": "a"}})
        assert job.blacklist_skipped == 1


class TestDedupeTransform:
    """Tests for DedupeTransform"""

    def test_drops_duplicates_regardless_of_key_order(self, make_job):
        job = make_job(dedupe=True)
        transform = DedupeTransform(job)
        first = {"event": "x", "properties": {"a": 1, "b": 2}}
        second = {"properties": {"b": 2, "a": 1}, "event": "x"}
        assert transform.apply(first) is first
        assert transform.apply(second) is DROPPED
        assert job.duplicates == 1


class TestPropertyTransforms:
    """Tests for scrub, flatten and insert id tuple transforms"""

    def test_scrub_nested_keys(self, make_job):
        transform = ScrubPropertiesTransform(make_job(scrub_props=["email", "ssn"]))
        record = {"event": "x", "properties": {"email": "a", "user": {"ssn": "1", "name": "n"}}}
        assert transform.apply(record)["properties"] == {"user": {"name": "n"}}

    def test_scrub_profiles(self, make_job):
        transform = ScrubPropertiesTransform(make_job(record_type="user", scrub_props=["$email"]))
        record = {"$distinct_id": "u1", "$set": {"$email": "a", "name": "n"}}
        assert transform.apply(record) == {"$distinct_id": "u1", "$set": {"name": "n"}}

    def test_flatten_helper(self):
        assert flatten({"a": {"b": 1, "c": {"d": 2}}, "e": [1], "f": {}}) == {
            "a.b": 1,
            "a.c.d": 2,
            "e": [1],
            "f": {},
        }

    def test_flatten_transform_keeps_bag_identity(self, make_job):
        transform = FlattenPropertiesTransform(make_job(flatten_data=True))
        props = {"geo": {"city": "Paris"}}
        record = {"event": "x", "properties": props}
        transform.apply(record)
        assert record["properties"] is props
        assert props == {"geo.city": "Paris"}

    def test_insert_id_tuple(self, make_job):
        transform = InsertIdTupleTransform(make_job(insert_id_tuple=["distinct_id", "order_id"]))
        record = {"event": "x", "properties": {"distinct_id": "u1", "order_id": 7}}
        assert transform.apply(record)["properties"]["$insert_id"] == hash_parts("u1", 7)

    def test_insert_id_tuple_skips_records_without_keys(self, make_job):
        transform = InsertIdTupleTransform(make_job(insert_id_tuple=["order_id"]))
        record = {"event": "x", "properties": {"distinct_id": "u1"}}
        assert "$insert_id" not in transform.apply(record)["properties"]
