from collections import defaultdict

from pydantic import BaseModel, Field, PrivateAttr, model_validator

from bestreward.domain.errors import NotFoundError
from bestreward.domain.models import Card, Channel, PaymentMethod, RewardConfig, Scheme
from bestreward.engine.resolver import effective_rewards, validate_shared_group


def _ordered(items):
    return sorted(items, key=lambda item: item.display_order)


class Catalog(BaseModel):
    """Read-only snapshot of everything the engine resolves against.

    Loading a catalog checks every cross reference, including the one-hop
    shared reward rule, so the engine never sees a dangling id.
    """

    channels: list[Channel] = Field(default_factory=list)
    cards: list[Card] = Field(default_factory=list)
    schemes: list[Scheme] = Field(default_factory=list)
    payment_methods: list[PaymentMethod] = Field(default_factory=list)
    reward_configs: list[RewardConfig] = Field(default_factory=list)

    _channels: dict[str, Channel] = PrivateAttr(default_factory=dict)
    _cards: dict[str, Card] = PrivateAttr(default_factory=dict)
    _schemes: dict[str, Scheme] = PrivateAttr(default_factory=dict)
    _payment_methods: dict[str, PaymentMethod] = PrivateAttr(default_factory=dict)
    _reward_configs: dict[str, RewardConfig] = PrivateAttr(default_factory=dict)
    _scheme_rewards: dict[str, list[RewardConfig]] = PrivateAttr(default_factory=dict)
    _payment_rewards: dict[str, list[RewardConfig]] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _check_references(self) -> "Catalog":
        for kind, items in (
            ("channel", self.channels),
            ("card", self.cards),
            ("scheme", self.schemes),
            ("payment method", self.payment_methods),
            ("reward config", self.reward_configs),
        ):
            seen: set[str] = set()
            for item in items:
                if item.id in seen:
                    raise ValueError(f"duplicate {kind} id {item.id}")
                seen.add(item.id)

        card_ids = {card.id for card in self.cards}
        channel_ids = {channel.id for channel in self.channels}
        scheme_ids = {scheme.id for scheme in self.schemes}
        payment_ids = {payment.id for payment in self.payment_methods}

        for scheme in self.schemes:
            if scheme.card_id not in card_ids:
                raise ValueError(f"scheme {scheme.id} references unknown card {scheme.card_id}")
            for channel_id in [app.channel_id for app in scheme.applications] + scheme.exclusions:
                if channel_id not in channel_ids:
                    raise ValueError(f"scheme {scheme.id} references unknown channel {channel_id}")

        for payment in self.payment_methods:
            for app in payment.applications:
                if app.channel_id not in channel_ids:
                    raise ValueError(f"payment method {payment.id} references unknown channel {app.channel_id}")
            for scheme_id in payment.linked_scheme_ids:
                if scheme_id not in scheme_ids:
                    raise ValueError(f"payment method {payment.id} links unknown scheme {scheme_id}")

        for config in self.reward_configs:
            if config.scheme_id is not None and config.scheme_id not in scheme_ids:
                raise ValueError(f"reward config {config.id} references unknown scheme {config.scheme_id}")
            if config.payment_method_id is not None and config.payment_method_id not in payment_ids:
                raise ValueError(
                    f"reward config {config.id} references unknown payment method {config.payment_method_id}"
                )

        for scheme in self.schemes:
            siblings = [item for item in self.schemes if item.card_id == scheme.card_id]
            validate_shared_group(scheme, scheme.shared_reward_group_id, siblings)
        return self

    def model_post_init(self, __context) -> None:
        self._channels = {item.id: item for item in self.channels}
        self._cards = {item.id: item for item in self.cards}
        self._schemes = {item.id: item for item in self.schemes}
        self._payment_methods = {item.id: item for item in self.payment_methods}
        self._reward_configs = {item.id: item for item in self.reward_configs}

        scheme_rewards = defaultdict(list)
        payment_rewards = defaultdict(list)
        for config in _ordered(self.reward_configs):
            if config.scheme_id is not None:
                scheme_rewards[config.scheme_id].append(config)
            else:
                payment_rewards[config.payment_method_id].append(config)
        self._scheme_rewards = dict(scheme_rewards)
        self._payment_rewards = dict(payment_rewards)

    def channel(self, channel_id: str) -> Channel:
        try:
            return self._channels[channel_id]
        except KeyError:
            raise NotFoundError("Channel", channel_id) from None

    def card(self, card_id: str) -> Card:
        try:
            return self._cards[card_id]
        except KeyError:
            raise NotFoundError("Card", card_id) from None

    def scheme(self, scheme_id: str) -> Scheme:
        try:
            return self._schemes[scheme_id]
        except KeyError:
            raise NotFoundError("Scheme", scheme_id) from None

    def payment_method(self, payment_method_id: str) -> PaymentMethod:
        try:
            return self._payment_methods[payment_method_id]
        except KeyError:
            raise NotFoundError("PaymentMethod", payment_method_id) from None

    def reward_config(self, reward_config_id: str) -> RewardConfig:
        try:
            return self._reward_configs[reward_config_id]
        except KeyError:
            raise NotFoundError("RewardConfig", reward_config_id) from None

    def has_channel(self, channel_id: str) -> bool:
        return channel_id in self._channels

    def ordered_channels(self) -> list[Channel]:
        return _ordered(self.channels)

    def ordered_schemes(self) -> list[Scheme]:
        """Schemes grouped by card order, then by their own order."""
        card_order = {card.id: card.display_order for card in self.cards}
        return sorted(self.schemes, key=lambda item: (card_order[item.card_id], item.display_order))

    def ordered_payment_methods(self) -> list[PaymentMethod]:
        return _ordered(self.payment_methods)

    def schemes_on_card(self, card_id: str) -> list[Scheme]:
        return _ordered(item for item in self.schemes if item.card_id == card_id)

    def own_rewards(self, scheme_id: str) -> list[RewardConfig]:
        return list(self._scheme_rewards.get(scheme_id, []))

    def payment_rewards(self, payment_method_id: str) -> list[RewardConfig]:
        return list(self._payment_rewards.get(payment_method_id, []))

    def effective_rewards(self, scheme_id: str) -> list[RewardConfig]:
        scheme = self.scheme(scheme_id)
        return effective_rewards(scheme, self.schemes_on_card(scheme.card_id), self._scheme_rewards)

    def scheme_label(self, scheme: Scheme) -> str:
        return f"{self.card(scheme.card_id).name}-{scheme.name}"

    def activity_end_for(self, config: RewardConfig):
        """Activity end of the scheme owning ``config``; payment rewards have none."""
        if config.scheme_id is None:
            return None
        return self.scheme(config.scheme_id).activity_end
