from collections.abc import Mapping

from loguru import logger

from bestreward.domain.errors import CycleError, NotFoundError, ValidationError
from bestreward.domain.models import ChannelApplication, RewardConfig, Scheme


def _find(scheme_id: str, schemes_on_card: list[Scheme]) -> Scheme | None:
    return next((item for item in schemes_on_card if item.id == scheme_id), None)


def source_scheme(scheme: Scheme, schemes_on_card: list[Scheme]) -> Scheme:
    """The scheme whose reward configs ``scheme`` actually uses.

    Exactly one hop: a target that itself shares is rejected rather than walked.
    """
    if scheme.shared_reward_group_id is None:
        return scheme

    target = _find(scheme.shared_reward_group_id, schemes_on_card)
    if target is None:
        raise NotFoundError("Scheme", scheme.shared_reward_group_id)
    if target.card_id != scheme.card_id:
        raise ValidationError(f"scheme {scheme.id} shares rewards with a scheme on another card")
    if target.shared_reward_group_id is not None:
        raise CycleError(f"scheme {scheme.id} shares with {target.id}, which shares again")
    return target


def effective_rewards(
    scheme: Scheme,
    schemes_on_card: list[Scheme],
    rewards_by_scheme: Mapping[str, list[RewardConfig]],
) -> list[RewardConfig]:
    source = source_scheme(scheme, schemes_on_card)
    if source.id != scheme.id:
        logger.debug("Scheme {} resolves rewards from {}", scheme.id, source.id)
    return sorted(rewards_by_scheme.get(source.id, []), key=lambda item: item.display_order)


def validate_shared_group(scheme: Scheme, target_id: str | None, schemes_on_card: list[Scheme]) -> None:
    """Reject a shared group assignment that is cross-card, chained or cyclic."""
    if target_id is None:
        return
    if target_id == scheme.id:
        raise CycleError(f"scheme {scheme.id} cannot share rewards with itself")

    target = _find(target_id, schemes_on_card)
    if target is None or target.card_id != scheme.card_id:
        raise ValidationError(f"shared reward target {target_id} is not on card {scheme.card_id}")
    if target.shared_reward_group_id is not None:
        raise CycleError(
            f"scheme {target_id} already shares with {target.shared_reward_group_id}; "
            "point at the source scheme instead"
        )

    dependants = [
        item.id
        for item in schemes_on_card
        if item.shared_reward_group_id == scheme.id and item.id != scheme.id
    ]
    if dependants:
        raise CycleError(
            f"scheme {scheme.id} is the reward source for {', '.join(dependants)} and cannot share itself"
        )


def is_excluded(scheme: Scheme, channel_id: str) -> bool:
    return channel_id in scheme.exclusions


def is_applicable(scheme: Scheme, channel_id: str) -> bool:
    # An empty application set means the scheme applies everywhere; exclusions always win.
    if is_excluded(scheme, channel_id):
        return False
    if not scheme.applications:
        return True
    return any(app.channel_id == channel_id for app in scheme.applications)


def application_for(applications: list[ChannelApplication], channel_id: str) -> ChannelApplication | None:
    return next((app for app in applications if app.channel_id == channel_id), None)
