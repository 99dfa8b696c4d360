from bestreward.domain.models import Channel, parse_channel_name
from bestreward.engine.matcher import MatchTier, match


def _channel(channel_id: str, display_name: str) -> Channel:
    return Channel(id=channel_id, display_name=display_name)


CHANNELS = [
    _channel("pxmart", "全聯福利中心 (全聯, PX Mart)"),
    _channel("seven", "7-ELEVEN[7-11,小七]"),
    _channel("net", "NET"),
    _channel("netflix", "Netflix"),
]


def _ranked(keyword: str, channels=CHANNELS) -> list[tuple[str, MatchTier]]:
    return [(item.channel.id, item.tier) for item in match(keyword, channels)]


def test_parse_channel_name_splits_aliases() -> None:
    name = parse_channel_name("  全聯福利中心 ( 全聯 , PX Mart ,) ")

    assert name.label == "全聯福利中心"
    assert name.base_name == "全聯福利中心"
    assert name.aliases == ["全聯", "px mart"]


def test_parse_channel_name_without_aliases() -> None:
    name = parse_channel_name("Netflix")

    assert name.label == "Netflix"
    assert name.base_name == "netflix"
    assert name.aliases == []


def test_only_the_last_group_holds_aliases() -> None:
    name = parse_channel_name("Shop (Outlet) (shop1, s1)")

    assert name.label == "Shop (Outlet)"
    assert name.aliases == ["shop1", "s1"]

    bracketed = parse_channel_name("Shop [Outlet] [a]")
    assert bracketed.label == "Shop [Outlet]"
    assert bracketed.aliases == ["a"]


def test_channel_parses_name_once_on_construction() -> None:
    channel = _channel("pxmart", "全聯福利中心 (全聯, PX Mart)")

    assert channel.name is channel.name
    assert channel.label == "全聯福利中心"


def test_base_name_exact_match_is_tier_zero() -> None:
    assert _ranked("全聯福利中心") == [("pxmart", MatchTier.BASE_EXACT)]


def test_alias_exact_match_is_tier_one() -> None:
    assert _ranked("全聯") == [("pxmart", MatchTier.ALIAS_EXACT)]
    assert _ranked("小七") == [("seven", MatchTier.ALIAS_EXACT)]


def test_alias_substring_is_tier_two() -> None:
    assert _ranked("px") == [("pxmart", MatchTier.ALIAS_PARTIAL)]


def test_base_name_substring_is_tier_three() -> None:
    assert _ranked("福利") == [("pxmart", MatchTier.PARTIAL)]


def test_tiers_for_base_and_alias_pattern() -> None:
    channels = [_channel("c", "Base (alpha, beta)")]

    assert _ranked("base", channels) == [("c", MatchTier.BASE_EXACT)]
    assert _ranked("alpha", channels) == [("c", MatchTier.ALIAS_EXACT)]
    assert _ranked("lph", channels) == [("c", MatchTier.ALIAS_PARTIAL)]
    assert _ranked("as", channels) == [("c", MatchTier.PARTIAL)]


def test_matching_ignores_case_and_surrounding_whitespace() -> None:
    assert _ranked("  PX MART ") == [("pxmart", MatchTier.ALIAS_EXACT)]


def test_better_tier_ranks_first() -> None:
    assert _ranked("net") == [("net", MatchTier.BASE_EXACT), ("netflix", MatchTier.PARTIAL)]


def test_equal_tiers_keep_input_order() -> None:
    channels = [_channel("netflix", "Netflix"), _channel("network", "Network Store")]

    assert [cid for cid, _ in _ranked("net", channels)] == ["netflix", "network"]
    assert [cid for cid, _ in _ranked("net", list(reversed(channels)))] == ["network", "netflix"]


def test_blank_keyword_matches_nothing() -> None:
    assert match("", CHANNELS) == []
    assert match("   ", CHANNELS) == []


def test_unknown_keyword_returns_empty_list() -> None:
    assert match("costco", CHANNELS) == []
