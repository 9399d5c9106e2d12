"""Landing-page experiment definitions.

The site runs a single two-arm experiment: variant A and variant B, each
with its own landing page. Traffic weights are percentages; only A's
weight decides the assignment threshold, so they need not sum to 100.
"""

from dataclasses import dataclass, field

VARIANTS: tuple[str, ...] = ("A", "B")

LANDING_PATHS: dict[str, str] = {
    "A": "/landing-a",
    "B": "/landing-b",
}


def is_valid_variant(value: object) -> bool:
    return isinstance(value, str) and value in VARIANTS


def landing_path(variant: str) -> str:
    return LANDING_PATHS[variant]


def variant_for_path(path: str) -> str | None:
    """Return the variant a landing path implies, or None for other paths."""
    for variant, variant_path in LANDING_PATHS.items():
        if path.rstrip("/") == variant_path:
            return variant
    return None


@dataclass(frozen=True)
class ABTestConfig:
    enabled: bool = True
    traffic_split: dict[str, float] = field(
        default_factory=lambda: {"A": 50.0, "B": 50.0}
    )

    def __post_init__(self):
        missing = [v for v in VARIANTS if v not in self.traffic_split]
        if missing:
            raise ValueError(f"traffic_split missing variants: {missing}")
        if any(w < 0 for w in self.traffic_split.values()):
            raise ValueError("Traffic weights must not be negative")

    @classmethod
    def pinned(cls, variant: str) -> "ABTestConfig":
        """Config that always assigns ``variant`` (used by the landing pages)."""
        if not is_valid_variant(variant):
            raise ValueError(f"Unknown variant: {variant!r}")
        return cls(
            enabled=True,
            traffic_split={"A": 100.0, "B": 0.0} if variant == "A" else {"A": 0.0, "B": 100.0},
        )


# Default experiment served from the site root
DEFAULT_AB_TEST = ABTestConfig(enabled=True, traffic_split={"A": 50.0, "B": 50.0})
