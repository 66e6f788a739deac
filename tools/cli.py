"""Argument helpers shared by the command line entry points."""


def parse_count(value: str) -> int:
    """Parse counts like 20000, 20k or 1m."""
    value = value.strip().lower()
    if value.endswith("k"):
        return int(float(value[:-1]) * 1_000)
    if value.endswith("m"):
        return int(float(value[:-1]) * 1_000_000)
    return int(value)
