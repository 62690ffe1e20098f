from datetime import date

from nursery_core.app.services import dashboard_service

BATCHES = [
    {"id": 1, "collected_at": date(2024, 3, 5)},
    {"id": 2, "collected_at": date(2024, 1, 20)},
    {"id": 3, "collected_at": date(2024, 3, 28)},
]

SEEDLINGS = [
    {"species": "Teak", "height_range": "10-20 cm", "count": 5, "survived_count": 4, "batch_id": 1},
    {"species": "Rosewood", "height_range": "20-30 cm", "count": 2, "survived_count": None, "batch_id": 2},
    {"species": "Teak", "height_range": "20-30 cm", "count": 3, "survived_count": 3, "batch_id": 3},
    {"species": "Neem", "height_range": "10-20 cm", "count": None, "survived_count": None, "batch_id": None},
    {"species": "Neem", "height_range": "5-10 cm", "count": 4, "survived_count": 1, "batch_id": 99},
]


def test_total_treats_missing_counts_as_zero():
    assert dashboard_service.total(SEEDLINGS) == 14


def test_species_stats_in_first_occurrence_order():
    assert dashboard_service.species_stats(SEEDLINGS) == [
        {"label": "Teak", "count": 8},
        {"label": "Rosewood", "count": 2},
        {"label": "Neem", "count": 4},
    ]


def test_height_stats_keep_labels_as_given():
    assert dashboard_service.height_stats(SEEDLINGS) == [
        {"label": "10-20 cm", "count": 5},
        {"label": "20-30 cm", "count": 5},
        {"label": "5-10 cm", "count": 4},
    ]


def test_growth_trend_skips_unresolved_batches_and_sorts_by_date():
    assert dashboard_service.growth_trend(SEEDLINGS, BATCHES) == [
        {"collected_at": date(2024, 1, 20), "count": 2},
        {"collected_at": date(2024, 3, 5), "count": 5},
        {"collected_at": date(2024, 3, 28), "count": 3},
    ]


def test_seasonal_trend_groups_by_month():
    assert dashboard_service.seasonal_trend(SEEDLINGS, BATCHES) == [
        {"year": 2024, "month": 1, "count": 2},
        {"year": 2024, "month": 3, "count": 8},
    ]


def test_survival_rate():
    assert dashboard_service.survival_rate(SEEDLINGS) == round(8 / 14 * 100, 2)
    assert dashboard_service.survival_rate([]) == 0
    assert dashboard_service.survival_rate([{"count": 0, "survived_count": 3}]) == 0


def test_summarize_is_pure():
    first = dashboard_service.summarize(SEEDLINGS, BATCHES)
    second = dashboard_service.summarize(SEEDLINGS, BATCHES)
    assert first == second
    assert first["species_count"] == 3
    assert first["height_range_count"] == 3


def test_collected_at_as_text_is_accepted():
    batches = [{"id": 1, "collected_at": "2024-03-05"}]
    assert dashboard_service.growth_trend(SEEDLINGS[:1], batches) == [{"collected_at": date(2024, 3, 5), "count": 5}]
