"""Simulation parameters for landing-page traffic.

These numbers model a pre-launch waitlist funnel:
  assignment -> page_view(s) -> button_click -> signup_attempt -> signup_success

Variant B converts slightly better so the dashboard has something to show.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SimulationConfig:
    num_visitors: int = 500
    # Number of days the simulation spans
    days: int = 30
    # Random seed for reproducibility
    seed: int = 42

    # Share of visitors arriving via ?direct_access (test sessions)
    test_session_share: float = 0.05

    # Funnel step probabilities (conditional on reaching previous step)
    prob_click: float = 0.55
    prob_signup_attempt_a: float = 0.35
    prob_signup_attempt_b: float = 0.45
    prob_signup_success: float = 0.85

    # Browsing behavior
    min_page_views: int = 1
    max_page_views: int = 3

    click_targets: tuple[str, ...] = (
        "signup-cta",
        "hero-cta",
        "features-learn-more",
        "footer-signup",
    )

    first_names: tuple[str, ...] = (
        "john", "jane", "bob", "alice", "charlie", "diana", "edward", "fiona",
        "george", "helen", "ivan", "julia", "kevin", "laura", "mike", "nancy",
        "oscar", "penny", "quinn", "rachel",
    )
    last_names: tuple[str, ...] = (
        "smith", "johnson", "williams", "brown", "jones", "garcia", "miller",
        "davis", "rodriguez", "martinez", "wilson", "anderson", "thomas",
        "taylor", "moore", "jackson", "martin",
    )
    email_domains: tuple[str, ...] = (
        "gmail.com", "yahoo.com", "hotmail.com", "outlook.com", "company.com",
        "startup.io", "tech.org", "business.net", "example.com", "test.co",
    )

    user_agents: tuple[str, ...] = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1",
        "Mozilla/5.0 (Android 14; Mobile; rv:121.0) Gecko/121.0 Firefox/121.0",
    )
    referrers: tuple[str, ...] = (
        "https://google.com/search?q=ai+marketing",
        "https://twitter.com/",
        "https://linkedin.com/",
        "https://reddit.com/r/marketing",
        "https://producthunt.com/",
        "https://news.ycombinator.com/",
        "",
    )


# Fixed entries used to seed a fresh instance for local development
SEED_WAITLIST: tuple[tuple[str, str], ...] = (
    ("john.doe@example.com", "A"),
    ("jane.smith@example.com", "B"),
    ("bob.wilson@example.com", "A"),
    ("alice.johnson@example.com", "B"),
    ("charlie.brown@example.com", "A"),
    ("diana.prince@example.com", "B"),
    ("edward.norton@example.com", "A"),
    ("fiona.apple@example.com", "B"),
)
