import pytest

from api_utils import RAListParams, parse_filter, parse_range, parse_sort


@pytest.mark.parametrize("raw, expected", [
    ("[0,9]", (0, 10)),
    ("[10,19]", (10, 10)),
    ("[-5,2]", (0, 3)),
    ("[7,3]", (7, 1)),
    ("garbage", (0, 10)),
])
def test_parse_range(raw, expected):
    assert parse_range(raw) == expected


def test_parse_sort_only_allows_known_fields():
    assert parse_sort('["period","ASC"]', {"period"}, "created_at") == "period"
    assert parse_sort('["password","ASC"]', {"period"}, "created_at") == "created_at"
    assert parse_sort("nope", {"period"}, "created_at") == "-created_at"


def test_parse_filter_ignores_non_objects():
    assert parse_filter('{"status": "failed"}') == {"status": "failed"}
    assert parse_filter("[1, 2]") == {}
    assert parse_filter("{broken") == {}
    assert parse_filter(None) == {}


def test_list_params_defaults_to_newest_first():
    params = RAListParams(range="[0,24]", sort='["created_at","DESC"]', filter='{"status": null}')

    assert (params.skip, params.limit) == (0, 25)
    assert params.order({"file_name"}) == "-created_at"
    assert params.apply_filters("qs", {"status": lambda q, v: pytest.fail("null filter applied")}) == "qs"
