from collections.abc import Callable
from datetime import date
from decimal import Decimal

from loguru import logger

from bestreward.config import settings
from bestreward.domain.catalog import Catalog
from bestreward.domain.errors import ValidationError
from bestreward.domain.models import (
    CalculationMethod,
    Channel,
    OptionComponent,
    OptionKind,
    PaymentMethod,
    QuotaKey,
    QuotaState,
    RefreshRule,
    RewardConfig,
    RewardOption,
    Scheme,
)
from bestreward.engine import quota as ledger
from bestreward.engine.calculator import (
    CalculationResult,
    RewardComponent,
    calculate_reward,
    calculate_total,
)
from bestreward.engine.matcher import MatchTier, RankedMatch, match
from bestreward.engine.resolver import application_for, is_applicable, is_excluded
from bestreward.engine.selectors import rank_options
from bestreward.repository.catalog_store import CatalogStore, ReorderKind
from bestreward.repository.quota_store import QuotaStore
from bestreward.schemas.responses import (
    ChannelQueryResult,
    QuotaOverviewEntry,
    QuotaProjection,
    QuotaStatus,
    SchemeCalculation,
    TransactionPosting,
)


class RewardResolutionService:
    """Entry point for the administrative layer.

    Holds no state of its own: every call loads a fresh catalog snapshot and
    reads quota rows as of the given date.
    """

    def __init__(
        self,
        catalog_store: CatalogStore,
        quota_store: QuotaStore,
        today: Callable[[], date] = settings.today,
    ):
        self.catalog_store = catalog_store
        self.quota_store = quota_store
        self._today = today

    # Channel resolution and querying

    def resolve_channel(self, keyword: str) -> list[RankedMatch]:
        catalog = self.catalog_store.load()
        matches = match(keyword, catalog.ordered_channels())
        logger.debug("Keyword {!r} matched {} channel(s)", keyword, len(matches))
        return matches

    def query_by_channels(self, keys: list[str], amount: Decimal | None = None) -> list[ChannelQueryResult]:
        catalog = self.catalog_store.load()
        results: list[ChannelQueryResult] = []

        for key in keys:
            if catalog.has_channel(key):
                matched = [(catalog.channel(key), None)]
            else:
                matched = [(item.channel, item.tier) for item in match(key, catalog.ordered_channels())]

            if not matched:
                results.append(ChannelQueryResult(keyword=key))
                continue

            for channel, tier in matched:
                results.append(self._query_channel(catalog, channel, key, tier, amount))

        return results

    def _query_channel(
        self,
        catalog: Catalog,
        channel: Channel,
        keyword: str,
        tier: MatchTier | None,
        amount: Decimal | None,
    ) -> ChannelQueryResult:
        options: list[RewardOption] = []

        for scheme in catalog.ordered_schemes():
            label = catalog.scheme_label(scheme)
            if is_excluded(scheme, channel.id):
                options.append(
                    RewardOption(
                        kind=OptionKind.SCHEME,
                        label=label,
                        scheme_id=scheme.id,
                        is_excluded=True,
                        excluded_by=label,
                    )
                )
            elif is_applicable(scheme, channel.id):
                application = application_for(scheme.applications, channel.id)
                options.append(
                    self._scheme_option(
                        catalog,
                        scheme,
                        label,
                        amount,
                        note=application.note if application else None,
                    )
                )

        for payment in catalog.ordered_payment_methods():
            application = application_for(payment.applications, channel.id)
            if application is None:
                continue

            components = self._components(self._payment_configs(catalog, payment), amount)
            options.append(
                self._option(
                    OptionKind.PAYMENT,
                    payment.name,
                    components,
                    payment_method_id=payment.id,
                    note=application.note,
                )
            )

            for scheme_id in payment.linked_scheme_ids:
                scheme = catalog.scheme(scheme_id)
                if is_excluded(scheme, channel.id):
                    continue
                option = self._scheme_option(
                    catalog,
                    scheme,
                    f"{catalog.scheme_label(scheme)}-{payment.name}",
                    amount,
                    note=application.note,
                )
                options.append(
                    option.model_copy(
                        update={"kind": OptionKind.PAYMENT_SCHEME, "payment_method_id": payment.id}
                    )
                )

        excluded, included = rank_options(options)
        return ChannelQueryResult(
            keyword=keyword,
            channel_id=channel.id,
            channel_name=channel.label,
            match_tier=tier,
            excluded=excluded,
            included=included,
        )

    def _scheme_option(
        self,
        catalog: Catalog,
        scheme: Scheme,
        label: str,
        amount: Decimal | None,
        note: str | None,
    ) -> RewardOption:
        components = self._components(catalog.effective_rewards(scheme.id), amount)
        return self._option(
            OptionKind.SCHEME,
            label,
            components,
            scheme_id=scheme.id,
            requires_switch=scheme.requires_switch,
            activity_end=scheme.activity_end,
            note=note,
        )

    @staticmethod
    def _option(kind: OptionKind, label: str, components: list[OptionComponent], **fields) -> RewardOption:
        rewards = [item.reward for item in components]
        return RewardOption(
            kind=kind,
            label=label,
            components=components,
            total_percentage=sum((item.percentage for item in components), Decimal("0")),
            total_reward=sum(rewards) if components and None not in rewards else None,
            **fields,
        )

    @staticmethod
    def _components(configs: list[RewardConfig], amount: Decimal | None) -> list[OptionComponent]:
        return [
            OptionComponent(
                reward_config_id=config.id or None,
                percentage=config.percentage,
                calculation_method=config.calculation_method,
                reward=(
                    calculate_reward(amount, config.percentage, config.calculation_method)
                    if amount is not None
                    else None
                ),
            )
            for config in configs
        ]

    @staticmethod
    def _payment_configs(catalog: Catalog, payment: PaymentMethod) -> list[RewardConfig]:
        configs = catalog.payment_rewards(payment.id)
        if configs:
            return configs
        # No configured components: fall back to the method's own baseline percentage.
        return [
            RewardConfig(
                id="",
                payment_method_id=payment.id,
                percentage=payment.own_reward_percentage,
                calculation_method=CalculationMethod.ROUND,
            )
        ]

    # Calculation

    def calculate(self, amount: Decimal, components: list[RewardComponent]) -> CalculationResult:
        if not components:
            raise ValidationError("at least one reward component is required")
        return calculate_total(amount, components)

    def _rewards_for(
        self,
        catalog: Catalog,
        scheme_id: str | None,
        payment_method_id: str | None,
    ) -> list[tuple[RewardConfig, QuotaKey | None]]:
        """Reward configs for a scheme and/or payment method, with the quota row each one draws from.

        A scheme used through a payment method keeps the scheme's rewards but
        tracks quota separately for that pairing.
        """
        if scheme_id is not None:
            if payment_method_id is not None:
                catalog.payment_method(payment_method_id)
            return [
                (config, QuotaKey(reward_config_id=config.id, payment_method_id=payment_method_id))
                for config in catalog.effective_rewards(scheme_id)
            ]

        if payment_method_id is not None:
            payment = catalog.payment_method(payment_method_id)
            return [
                (config, QuotaKey(reward_config_id=config.id) if config.id else None)
                for config in self._payment_configs(catalog, payment)
            ]

        raise ValidationError("either scheme_id or payment_method_id is required")

    def calculate_with_scheme(
        self,
        amount: Decimal,
        scheme_id: str | None = None,
        payment_method_id: str | None = None,
        as_of: date | None = None,
    ) -> SchemeCalculation:
        """Preview the reward and quota effect of a transaction. Nothing is written."""
        as_of = as_of or self._today()
        catalog = self.catalog_store.load()
        rewards = self._rewards_for(catalog, scheme_id, payment_method_id)
        calculation = calculate_total(amount, [self._to_component(config) for config, _ in rewards])

        projections: list[QuotaProjection] = []
        for config, key in rewards:
            if key is None:
                continue
            rule = self._rule(catalog, config)
            before = self._current_state(key, rule, as_of)
            after, deducted = ledger.post(before, config, amount)
            remaining_after = after.remaining(config.quota_limit)
            projections.append(
                QuotaProjection(
                    reward_config_id=config.id,
                    payment_method_id=key.payment_method_id,
                    percentage=config.percentage,
                    quota_limit=config.quota_limit,
                    used_before=before.used_amount,
                    remaining_before=before.remaining(config.quota_limit),
                    deducted=deducted,
                    used_after=after.used_amount,
                    remaining_after=remaining_after,
                    reference_amount=ledger.reference_amount(remaining_after, config.percentage),
                    next_refresh_date=ledger.next_refresh_date(rule, as_of),
                )
            )

        return SchemeCalculation(
            amount=calculation.amount,
            breakdown=calculation.breakdown,
            total_reward=calculation.total_reward,
            quota_projection=projections,
        )

    @staticmethod
    def _to_component(config: RewardConfig) -> RewardComponent:
        return RewardComponent(percentage=config.percentage, calculation_method=config.calculation_method)

    # Quota accounting

    @staticmethod
    def _rule(catalog: Catalog, config: RewardConfig) -> RefreshRule:
        return RefreshRule.for_config(config, catalog.activity_end_for(config))

    def _current_state(self, key: QuotaKey, rule: RefreshRule, as_of: date) -> QuotaState:
        stored = self.quota_store.get(key)
        state = stored if stored is not None else ledger.new_state(key, rule, as_of)
        return ledger.refreshed(state, rule, as_of)

    def _status(self, catalog: Catalog, config: RewardConfig, state: QuotaState, as_of: date) -> QuotaStatus:
        remaining = state.remaining(config.quota_limit)
        return QuotaStatus(
            reward_config_id=config.id,
            payment_method_id=state.payment_method_id,
            percentage=config.percentage,
            calculation_method=config.calculation_method.value,
            quota_limit=config.quota_limit,
            used_amount=state.used_amount,
            remaining_amount=remaining,
            current_amount=state.current_amount,
            reference_amount=ledger.reference_amount(remaining, config.percentage),
            last_refresh_marker=state.last_refresh_marker,
            next_refresh_date=ledger.next_refresh_date(self._rule(catalog, config), as_of),
            version=state.version,
        )

    @staticmethod
    def _quota_key(catalog: Catalog, config: RewardConfig, payment_method_id: str | None) -> QuotaKey:
        if payment_method_id is not None:
            catalog.payment_method(payment_method_id)
        if config.payment_method_id is not None:
            # Payment-owned rewards have a single quota row; the pairing is implied.
            if payment_method_id not in (None, config.payment_method_id):
                raise ValidationError(
                    f"reward config {config.id} belongs to payment method {config.payment_method_id}"
                )
            return QuotaKey(reward_config_id=config.id)
        return QuotaKey(reward_config_id=config.id, payment_method_id=payment_method_id)

    def _mutate_quota(
        self,
        reward_config_id: str,
        payment_method_id: str | None,
        as_of: date | None,
        change: Callable[[QuotaState], QuotaState],
    ) -> QuotaStatus:
        as_of = as_of or self._today()
        catalog = self.catalog_store.load()
        config = catalog.reward_config(reward_config_id)
        key = self._quota_key(catalog, config, payment_method_id)

        state = self._current_state(key, self._rule(catalog, config), as_of)
        saved = self.quota_store.save([change(state)])[0]
        logger.info(
            "Quota {}/{} used {} -> {}",
            key.reward_config_id,
            key.payment_method_id,
            state.used_amount,
            saved.used_amount,
        )
        return self._status(catalog, config, saved, as_of)

    def remaining_quota(
        self,
        reward_config_id: str,
        payment_method_id: str | None = None,
        as_of: date | None = None,
    ) -> QuotaStatus:
        as_of = as_of or self._today()
        catalog = self.catalog_store.load()
        config = catalog.reward_config(reward_config_id)
        key = self._quota_key(catalog, config, payment_method_id)
        state = self._current_state(key, self._rule(catalog, config), as_of)
        return self._status(catalog, config, state, as_of)

    def consume_quota(
        self,
        reward_config_id: str,
        payment_method_id: str | None,
        amount: Decimal,
        as_of: date | None = None,
    ) -> QuotaStatus:
        return self._mutate_quota(
            reward_config_id,
            payment_method_id,
            as_of,
            lambda state: ledger.consume(state, amount),
        )

    def adjust_quota(
        self,
        reward_config_id: str,
        payment_method_id: str | None,
        delta: Decimal,
        as_of: date | None = None,
    ) -> QuotaStatus:
        """Correct recorded usage by a signed delta (negative gives quota back)."""
        return self._mutate_quota(
            reward_config_id,
            payment_method_id,
            as_of,
            lambda state: ledger.apply_adjustment(state, delta),
        )

    def _record(
        self,
        amount: Decimal,
        scheme_id: str | None,
        payment_method_id: str | None,
        as_of: date | None,
        step: Callable[[QuotaState, RewardConfig, Decimal], tuple[QuotaState, int]],
    ) -> TransactionPosting:
        as_of = as_of or self._today()
        catalog = self.catalog_store.load()
        rewards = self._rewards_for(catalog, scheme_id, payment_method_id)
        calculation = calculate_total(amount, [self._to_component(config) for config, _ in rewards])

        tracked = [(config, key) for config, key in rewards if key is not None]
        new_states = []
        for config, key in tracked:
            state = self._current_state(key, self._rule(catalog, config), as_of)
            new_states.append(step(state, config, amount)[0])

        saved = self.quota_store.save(new_states)
        return TransactionPosting(
            amount=calculation.amount,
            breakdown=calculation.breakdown,
            total_reward=calculation.total_reward,
            quotas=[
                self._status(catalog, config, state, as_of)
                for (config, _), state in zip(tracked, saved)
            ],
        )

    def post_transaction(
        self,
        amount: Decimal,
        scheme_id: str | None = None,
        payment_method_id: str | None = None,
        as_of: date | None = None,
    ) -> TransactionPosting:
        posting = self._record(amount, scheme_id, payment_method_id, as_of, ledger.post)
        logger.info(
            "Posted {} on scheme={} payment={}: reward {}",
            amount,
            scheme_id,
            payment_method_id,
            posting.total_reward,
        )
        return posting

    def reverse_transaction(
        self,
        amount: Decimal,
        scheme_id: str | None = None,
        payment_method_id: str | None = None,
        as_of: date | None = None,
    ) -> TransactionPosting:
        posting = self._record(amount, scheme_id, payment_method_id, as_of, ledger.unpost)
        logger.info("Reversed {} on scheme={} payment={}", amount, scheme_id, payment_method_id)
        return posting

    def quota_overview(self, as_of: date | None = None) -> list[QuotaOverviewEntry]:
        """Every quota row the catalog can draw from, refreshed as of ``as_of`` (read only)."""
        as_of = as_of or self._today()
        catalog = self.catalog_store.load()
        entries: list[QuotaOverviewEntry] = []

        def statuses(configs: list[RewardConfig], payment_method_id: str | None) -> list[QuotaStatus]:
            result = []
            for config in configs:
                key = QuotaKey(reward_config_id=config.id, payment_method_id=payment_method_id)
                state = self._current_state(key, self._rule(catalog, config), as_of)
                result.append(self._status(catalog, config, state, as_of))
            return result

        for scheme in catalog.ordered_schemes():
            own = catalog.own_rewards(scheme.id)
            if own:
                entries.append(
                    QuotaOverviewEntry(
                        label=catalog.scheme_label(scheme),
                        scheme_id=scheme.id,
                        quotas=statuses(own, None),
                    )
                )

        for payment in catalog.ordered_payment_methods():
            for scheme_id in payment.linked_scheme_ids:
                scheme = catalog.scheme(scheme_id)
                entries.append(
                    QuotaOverviewEntry(
                        label=f"{catalog.scheme_label(scheme)}-{payment.name}",
                        scheme_id=scheme.id,
                        payment_method_id=payment.id,
                        quotas=statuses(catalog.effective_rewards(scheme.id), payment.id),
                    )
                )
            own = catalog.payment_rewards(payment.id)
            if own:
                entries.append(
                    QuotaOverviewEntry(
                        label=payment.name,
                        payment_method_id=payment.id,
                        quotas=statuses(own, None),
                    )
                )

        return entries

    # Shared reward groups and ordering

    def effective_rewards(self, scheme_id: str) -> list[RewardConfig]:
        return self.catalog_store.load().effective_rewards(scheme_id)

    def assign_shared_group(self, scheme_id: str, target_scheme_id: str | None) -> Scheme:
        return self.catalog_store.assign_shared_group(scheme_id, target_scheme_id).scheme(scheme_id)

    def reorder(self, kind: ReorderKind, ordered_ids: list[str]) -> None:
        self.catalog_store.reorder(kind, ordered_ids)
