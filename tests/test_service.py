from datetime import date
from decimal import Decimal

import pytest

from bestreward.domain.errors import NotFoundError, ValidationError
from bestreward.domain.models import OptionKind
from bestreward.engine.calculator import RewardComponent
from bestreward.engine.matcher import MatchTier


def _summary(result):
    return [(option.label, option.total_percentage) for option in result.included]


class TestChannelQuery:
    def test_resolve_alias(self, service):
        matches = service.resolve_channel("全聯")

        assert [(item.channel.id, item.tier) for item in matches] == [("ch_pxmart", MatchTier.ALIAS_EXACT)]

    def test_excluded_scheme_is_reported_separately(self, service):
        [result] = service.query_by_channels(["全聯"])

        assert result.channel_id == "ch_pxmart"
        assert result.channel_name == "全聯福利中心"
        assert [option.excluded_by for option in result.excluded] == ["台新Richart-基本回饋"]
        assert _summary(result) == [("國泰CUBE-集精選", Decimal("2.0")), ("LINE Pay", Decimal("1"))]
        assert result.results[0].is_excluded

    def test_amount_fills_in_rewards(self, service):
        [result] = service.query_by_channels(["全聯"], Decimal("1000"))
        grocery, linepay = result.included

        assert [item.reward for item in grocery.components] == [3, 17]
        assert grocery.total_reward == 20
        assert grocery.requires_switch
        assert grocery.activity_end == date(2026, 12, 31)
        assert linepay.kind == OptionKind.PAYMENT
        assert linepay.total_reward == 10

    def test_without_amount_rewards_are_empty(self, service):
        [result] = service.query_by_channels(["全聯"])

        assert result.included[0].total_reward is None

    def test_keyword_matching_several_channels(self, service):
        net, netflix = service.query_by_channels(["net"])

        assert (net.channel_id, net.match_tier) == ("ch_net", MatchTier.BASE_EXACT)
        assert _summary(net) == [("國泰CUBE-集精選加碼", Decimal("2.0")), ("台新Richart-基本回饋", Decimal("1.5"))]
        assert (netflix.channel_id, netflix.match_tier) == ("ch_netflix", MatchTier.PARTIAL)
        assert _summary(netflix) == [("國泰CUBE-玩數位", Decimal("3.0")), ("台新Richart-基本回饋", Decimal("1.5"))]
        assert netflix.included[0].note == "subscription only"

    def test_unknown_keyword(self, service):
        [result] = service.query_by_channels(["nowhere"])

        assert result.keyword == "nowhere"
        assert result.channel_id is None
        assert result.results == []

    def test_channel_id_with_payment_pairing(self, service):
        [result] = service.query_by_channels(["ch_ubereats"])

        assert result.match_tier is None
        assert _summary(result) == [
            ("國泰CUBE-玩數位", Decimal("3.0")),
            ("台新Richart-基本回饋", Decimal("1.5")),
            ("台新Richart-基本回饋-LINE Pay", Decimal("1.5")),
            ("LINE Pay", Decimal("1")),
        ]
        paired = result.included[2]
        assert paired.kind == OptionKind.PAYMENT_SCHEME
        assert (paired.scheme_id, paired.payment_method_id) == ("richart_general", "pm_linepay")

    def test_payment_without_configs_uses_own_percentage(self, service):
        [result] = service.query_by_channels(["ch_7eleven"], Decimal("1000"))

        jkopay = next(option for option in result.included if option.payment_method_id == "pm_jkopay")
        assert jkopay.total_percentage == Decimal("1.5")
        assert jkopay.total_reward == 15
        assert jkopay.note == "app payment only"


class TestCalculation:
    def test_calculate(self, service):
        result = service.calculate(
            Decimal("1000"),
            [RewardComponent(percentage="0.3"), RewardComponent(percentage="2.7")],
        )
        assert result.total_reward == 30

    def test_calculate_requires_components(self, service):
        with pytest.raises(ValidationError):
            service.calculate(Decimal("1000"), [])

    def test_preview_projects_quota_without_writing(self, service, quota_store):
        result = service.calculate_with_scheme(Decimal("1000"), "cube_digital")

        assert [line.calculated_reward for line in result.breakdown] == [3, 27]
        assert result.total_reward == 30
        bonus = result.quota_projection[1]
        assert bonus.reward_config_id == "rc_digital_bonus"
        assert bonus.deducted == 27
        assert bonus.remaining_before == Decimal("500")
        assert bonus.remaining_after == Decimal("473")
        assert bonus.next_refresh_date == date(2026, 6, 1)
        assert quota_store.list_all() == []

    def test_payment_fallback_has_no_quota(self, service):
        result = service.calculate_with_scheme(Decimal("1000"), payment_method_id="pm_jkopay")

        assert result.total_reward == 15
        assert result.quota_projection == []

    def test_needs_scheme_or_payment(self, service):
        with pytest.raises(ValidationError):
            service.calculate_with_scheme(Decimal("1000"))

    def test_unknown_scheme(self, service):
        with pytest.raises(NotFoundError):
            service.calculate_with_scheme(Decimal("1000"), "nope")


class TestQuota:
    def test_consume_then_adjust(self, service):
        consumed = service.consume_quota("rc_digital_bonus", None, Decimal("100"))
        assert (consumed.used_amount, consumed.remaining_amount, consumed.version) == (
            Decimal("100"),
            Decimal("400"),
            1,
        )

        adjusted = service.adjust_quota("rc_digital_bonus", None, Decimal("-30"))
        assert adjusted.used_amount == Decimal("70")
        assert adjusted.version == 2

    def test_adjust_floors_at_zero(self, service):
        service.consume_quota("rc_digital_bonus", None, Decimal("10"))

        assert service.adjust_quota("rc_digital_bonus", None, Decimal("-50")).used_amount == Decimal("0")

    def test_consume_rejects_negative(self, service):
        with pytest.raises(ValidationError):
            service.consume_quota("rc_digital_bonus", None, Decimal("-1"))

    def test_monthly_refresh_on_read(self, service):
        service.consume_quota("rc_digital_bonus", None, Decimal("100"), as_of=date(2026, 4, 30))

        assert service.remaining_quota("rc_digital_bonus", as_of=date(2026, 4, 30)).used_amount == Decimal("100")
        fresh = service.remaining_quota("rc_digital_bonus", as_of=date(2026, 5, 1))
        assert fresh.used_amount == Decimal("0")
        assert fresh.remaining_amount == Decimal("500")

    def test_activity_refresh_after_end(self, service):
        service.post_transaction(Decimal("1000"), "cube_grocery")

        ended = service.remaining_quota("rc_grocery_bonus", as_of=date(2027, 1, 1))
        assert ended.used_amount == Decimal("0")
        assert ended.next_refresh_date is None
        assert service.remaining_quota("rc_grocery_bonus").next_refresh_date == date(2027, 1, 1)

    def test_shared_group_draws_source_quota(self, service):
        posting = service.post_transaction(Decimal("1000"), "cube_grocery_plus")

        assert posting.total_reward == 20
        status = service.remaining_quota("rc_grocery_bonus")
        assert status.used_amount == Decimal("17")
        assert status.remaining_amount == Decimal("283")

    def test_payment_pairing_has_its_own_quota(self, service):
        posting = service.post_transaction(Decimal("1000"), "richart_general", "pm_linepay")

        assert posting.total_reward == 15
        assert service.remaining_quota("rc_richart_bonus", "pm_linepay").used_amount == Decimal("12")
        assert service.remaining_quota("rc_richart_bonus").used_amount == Decimal("0")

    def test_statement_basis_rounds_running_total(self, service):
        for _ in range(2):
            service.post_transaction(Decimal("40"), "richart_general")

        status = service.remaining_quota("rc_richart_bonus")
        assert status.current_amount == Decimal("80")
        assert status.used_amount == Decimal("1")

    def test_reverse_restores_usage(self, service):
        service.post_transaction(Decimal("1000"), "cube_digital")
        reversed_ = service.reverse_transaction(Decimal("1000"), "cube_digital")

        bonus = reversed_.quotas[1]
        assert bonus.used_amount == Decimal("0")
        assert bonus.current_amount == Decimal("0")

    def test_payment_owned_config_cannot_pair_with_other_payment(self, service):
        with pytest.raises(ValidationError):
            service.consume_quota("rc_linepay", "pm_jkopay", Decimal("10"))

    def test_unknown_reward_config(self, service):
        with pytest.raises(NotFoundError):
            service.remaining_quota("nope")

    def test_overview_is_read_only(self, service, quota_store):
        entries = service.quota_overview()

        assert [entry.label for entry in entries] == [
            "國泰CUBE-玩數位",
            "國泰CUBE-集精選",
            "台新Richart-基本回饋",
            "台新Richart-基本回饋-LINE Pay",
            "LINE Pay",
        ]
        assert entries[3].quotas[1].payment_method_id == "pm_linepay"
        assert quota_store.list_all() == []


def test_assign_shared_group_through_service(service) -> None:
    scheme = service.assign_shared_group("cube_digital", "cube_grocery")

    assert scheme.shared_reward_group_id == "cube_grocery"
    assert [item.id for item in service.effective_rewards("cube_digital")] == [
        "rc_grocery_base",
        "rc_grocery_bonus",
    ]
