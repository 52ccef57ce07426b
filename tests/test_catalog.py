from cimawatch.catalog import count_matches, match_catalog, matched_by_code, restrict
from tests.conftest import make_record


def test_restrict_matches_on_normalized_code() -> None:
    records = [make_record("01 23"), make_record("9999")]
    assert restrict(records, {"0123"}) == [records[0]]


def test_empty_catalog_matches_nothing() -> None:
    records = [make_record("111111"), make_record("222222")]
    assert restrict(records, set()) == []
    assert count_matches(records, frozenset()) == 0
    assert all(not m.in_catalog for m in match_catalog(records, set()))


def test_match_catalog_annotates_in_order() -> None:
    records = [make_record("111-111"), make_record("222222"), make_record("333333")]
    matches = match_catalog(records, {"111111", "333333"})
    assert [m.record for m in matches] == records
    assert [m.in_catalog for m in matches] == [True, False, True]


def test_record_without_digits_never_matches() -> None:
    assert restrict([make_record(None), make_record("N/A")], {""}) == []


def test_matched_by_code_keeps_first_position_and_last_record() -> None:
    first = make_record("111111", name="old")
    other = make_record("222222")
    dup = make_record("111-111", name="new")
    out = matched_by_code([first, other, dup], {"111111", "222222"})
    assert list(out) == ["111111", "222222"]
    assert out["111111"] is dup


def test_count_matches() -> None:
    records = [make_record("111111"), make_record("111111"), make_record("999999")]
    assert count_matches(records, {"111111"}) == 2
