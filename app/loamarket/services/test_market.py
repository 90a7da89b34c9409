import pytest

from loamarket.errors import ApiKeyMissing, UpstreamError
from loamarket.services import market


def _named(*names):
    return {"Items": [{"Name": n} for n in names]}


def test_autocomplete_ignores_short_queries(fake_client):
    assert market.autocomplete(fake_client, " a ") == []
    assert fake_client.calls == []


def test_autocomplete_requires_key():
    from loamarket.conftest import FakeLostArkClient

    with pytest.raises(ApiKeyMissing):
        market.autocomplete(FakeLostArkClient(api_key=""), "돌파석")


def test_autocomplete_tops_up_from_wide_search_without_duplicates(fake_client):
    fake_client.market[("돌파석", 50000)] = _named("A", "B", "C")
    fake_client.market[("돌파석", 0)] = _named("B", "C", "D", "E", "F", "G", "H", "I", "J", "K", "L")

    names = [i["Name"] for i in market.autocomplete(fake_client, "돌파석")]

    assert len(names) == 10
    assert len(set(names)) == 10
    assert names[:4] == ["A", "B", "C", "D"]


def test_autocomplete_skips_wide_search_when_narrow_is_full(fake_client):
    fake_client.market[("젬", 50000)] = _named(*[f"item {n}" for n in range(12)])

    items = market.autocomplete(fake_client, "젬")

    assert len(items) == 10
    assert [c[2] for c in fake_client.calls] == [50000]


def test_autocomplete_survives_a_failed_narrow_search(fake_client):
    fake_client.market[("융화", 50000)] = UpstreamError("boom", 500)
    fake_client.market[("융화", 0)] = _named("융화 재료", "융화 재료")

    assert market.autocomplete(fake_client, "융화") == [{"Name": "융화 재료"}]


def test_search_market_item_falls_back_to_all_categories(fake_client):
    fake_client.market[("파편", 50000)] = UpstreamError("boom", 500)
    fake_client.market[("파편", 0)] = _named("명예의 파편")

    assert market.search_market_item(fake_client, " 파편 ") == _named("명예의 파편")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("아비도스 융화 재료(유물)", ("아비도스 융화 재료", "유물")),
        ("아비도스 융화 재료 (귀속)", ("아비도스 융화 재료 (귀속)", None)),
        ("운명의 돌파석", ("운명의 돌파석", None)),
    ],
)
def test_split_grade(name, expected):
    assert market.split_grade(name) == expected


def test_fetch_all_grades_keeps_cheapest_market_listing_per_grade(fake_client):
    fake_client.market[("융화 재료", 50000)] = {
        "Items": [
            {"Name": "융화 재료", "Grade": "유물", "CurrentMinPrice": 90},
            {"Name": "융화 재료", "Grade": "유물", "CurrentMinPrice": 70},
            {"Name": "융화 재료", "Grade": "영웅", "CurrentMinPrice": 20},
        ]
    }

    results = market.fetch_all_grades(fake_client, "융화 재료(유물)", "market", "티어4")

    assert len(results) == 1
    assert results[0]["CurrentMinPrice"] == 70
    assert results[0]["source"] == "거래소"
    assert results[0]["tier"] == "티어4"
    assert results[0]["grade"] == "유물"


def test_fetch_all_grades_reads_auction_buy_prices(fake_client):
    fake_client.auction[("겁화의 보석", 210000)] = {
        "Items": [
            {"Name": "10레벨 겁화의 보석", "Grade": "고대", "AuctionInfo": {"BuyPrice": 0}},
            {"Name": "10레벨 겁화의 보석", "Grade": "고대", "AuctionInfo": {"BuyPrice": 500}},
            {"Name": "10레벨 겁화의 보석", "Grade": "고대", "AuctionInfo": {"BuyPrice": 400}},
        ]
    }

    results = market.fetch_all_grades(fake_client, "겁화의 보석", "auction")

    assert len(results) == 1
    assert results[0]["CurrentMinPrice"] == 400
    assert results[0]["source"] == "경매장"
    assert results[0]["BundleCount"] == 1


def test_fetch_all_grades_returns_empty_when_nothing_listed(fake_client):
    assert market.fetch_all_grades(fake_client, "없는 아이템") == []


def test_probe_item_category_summarises_first_match(fake_client):
    fake_client.market[("크리스탈", 0)] = {
        "Items": [{"Name": "크리스탈", "Grade": "일반", "CategoryCode": 60000}]
    }

    report = market.probe_item_category(fake_client, "크리스탈")

    assert [r["searchedCategoryCode"] for r in report["results"]] == [0]
    assert report["summary"]["categoryCode"] == 60000
    assert report["summary"]["category"] == "N/A"
