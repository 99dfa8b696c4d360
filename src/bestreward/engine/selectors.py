from bestreward.domain.models import RewardOption


def rank_options(options: list[RewardOption]) -> tuple[list[RewardOption], list[RewardOption]]:
    """Split options into (excluded, included), included sorted by total percentage, best first.

    Equal percentages keep their input order.
    """
    excluded = [item for item in options if item.is_excluded]
    included = [item for item in options if not item.is_excluded]
    included.sort(key=lambda item: item.total_percentage, reverse=True)
    return excluded, included
