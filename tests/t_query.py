from bestreward.api.deps import get_service


def t_query_sample_catalog() -> None:
    results = get_service().query_by_channels(["全聯", "net"])

    for result in results:
        print(result.channel_name, result.match_tier)
        for option in result.included:
            print("  ", option.total_percentage, option.label)


# Not collected by pytest; run from the project root to debug the sample catalog.
if __name__ == "__main__":
    t_query_sample_catalog()
