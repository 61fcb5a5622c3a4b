# Minimum payment (inclusive) -> coupons granted. Highest matching tier wins.
GRANT_TIERS: tuple[tuple[int, int], ...] = (
    (300_000, 3),
    (200_000, 2),
    (100_000, 1),
)
