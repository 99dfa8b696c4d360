from enum import IntEnum

from pydantic import BaseModel

from bestreward.domain.models import Channel, ChannelName


class MatchTier(IntEnum):
    BASE_EXACT = 0
    ALIAS_EXACT = 1
    ALIAS_PARTIAL = 2
    PARTIAL = 3


class RankedMatch(BaseModel):
    channel: Channel
    tier: MatchTier


def _match_tier(keyword: str, name: ChannelName) -> MatchTier | None:
    if name.base_name == keyword:
        return MatchTier.BASE_EXACT
    if keyword in name.aliases:
        return MatchTier.ALIAS_EXACT
    if any(keyword in alias for alias in name.aliases):
        return MatchTier.ALIAS_PARTIAL
    if keyword in name.base_name or keyword in name.full_name:
        return MatchTier.PARTIAL
    return None


def match(keyword: str, channels: list[Channel]) -> list[RankedMatch]:
    """Rank channels against a free-text keyword.

    Lower tier is better. Channels with the same tier keep their order from
    ``channels``, so callers control the tie-break by how they sort the input.
    A blank keyword matches nothing.
    """
    normalized = keyword.strip().lower()
    if not normalized:
        return []

    matches: list[RankedMatch] = []
    for channel in channels:
        tier = _match_tier(normalized, channel.name)
        if tier is not None:
            matches.append(RankedMatch(channel=channel, tier=tier))

    matches.sort(key=lambda item: item.tier)
    return matches
