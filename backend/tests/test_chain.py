"""Tests for URL chaining through proxy hops."""

from urllib.parse import parse_qs, urlsplit

from overleaf_web.proxy.chain import chain_url


def _extract(url: str) -> tuple[str, dict[str, list[str]]]:
    query = parse_qs(urlsplit(url).query)
    return query["url"][0], query


def test_single_hop_escapes_target() -> None:
    result = chain_url("https://foo.bar.com/p1/p2?url=evil", ["https://first.com/x1/x2"])
    assert result == "https://first.com/x1/x2?url=https%3A%2F%2Ffoo.bar.com%2Fp1%2Fp2%3Furl%3Devil"


def test_single_hop_does_not_leak_inner_query() -> None:
    result = chain_url("https://foo.bar.com/p?url=evil&next_is_proxy=true", ["https://first.com/x"])
    query = parse_qs(urlsplit(result).query)
    assert set(query) == {"url"}
    assert query["url"] == ["https://foo.bar.com/p?url=evil&next_is_proxy=true"]


def test_three_hops_nest_and_round_trip() -> None:
    target = "https://foo.bar.com/p1/p2?url=evil&x=1 2"
    chain = ["https://first.com/a", "https://second.com/b", "https://third.com/c"]
    result = chain_url(target, chain)

    assert urlsplit(result).netloc == "third.com"
    current = result
    flags = []
    for _ in chain:
        current, query = _extract(current)
        flags.append(query.get("next_is_proxy"))
    assert current == target
    assert flags == [["true"], ["true"], None]


def test_hop_query_is_replaced() -> None:
    result = chain_url("https://example.com/", ["https://first.com/x?stale=1"])
    assert "stale" not in result
