from datetime import date, datetime

import pytest

from rrm.domain.dates import normalize


def test_month_number_maps_to_portuguese_month_name():
    nd = normalize(3, 0)
    assert nd.display_label == "Março"
    assert nd.sort_key == 3
    assert nd.canonical_key is None

    assert normalize("12", 5).display_label == "Dezembro"
    assert normalize(1.0, 5).sort_key == 1


@pytest.mark.parametrize("raw", ["2025-01-10", "2025-01-10T13:45:00", "2025-01-10 08:00", "10/01/2025"])
def test_full_dates_get_a_canonical_key(raw):
    nd = normalize(raw, 0)
    assert nd.canonical_key == "2025-01-10"
    assert nd.display_label == "10/01/2025"
    assert nd.sort_key == 20250110


def test_date_objects_are_canonical():
    assert normalize(date(2024, 2, 29), 0).canonical_key == "2024-02-29"
    assert normalize(datetime(2024, 3, 1, 10, 30), 0).canonical_key == "2024-03-01"


def test_day_month_without_year_uses_current_year_and_has_no_key():
    nd = normalize("05/03", 9, today=date(2024, 6, 1))
    assert nd.display_label == "05/03/2024"
    assert nd.sort_key == 20240305
    assert nd.canonical_key is None


def test_impossible_calendar_date_falls_back_to_index():
    nd = normalize("31/02/2025", 4)
    assert nd.canonical_key is None
    assert nd.sort_key == 4
    assert nd.display_label == "31/02/2025"


def test_free_text_month_is_parsed_to_month_and_year():
    nd = normalize("Jan 2025", 0)
    assert nd.display_label == "Janeiro/2025"
    assert nd.sort_key == 202501
    assert nd.canonical_key is None


def test_unparseable_values_keep_their_text_and_position():
    nd = normalize("sem data", 7)
    assert nd.sort_key == 7
    assert nd.display_label == "sem data"

    out_of_range = normalize("13", 2)
    assert out_of_range.sort_key == 2
    assert out_of_range.display_label == "13"


@pytest.mark.parametrize("raw", [None, "", [], {}, 3.5, float("nan"), True, "2025-13-45", "99/99", object()])
def test_normalize_never_raises(raw):
    nd = normalize(raw, 1)
    assert isinstance(nd.sort_key, int)
    assert isinstance(nd.display_label, str)
