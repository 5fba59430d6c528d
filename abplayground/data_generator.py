from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Optional

import pandas as pd
import structlog

from .config import ACTIVITY_KEY, GOLDEN_GAMMA, METRIC_KEYS, WAU_KEY, GeneratorConfig
from .random_utils import XorShift32, box_muller

logger = structlog.get_logger()

WAU_WINDOW = 7

# (base rate, uniform spread, gaussian noise, floor) per success metric
SUCCESS_RATES = {
    "VideoViews": (2.2, 0.7, 0.20, 50),
    "Shares": (0.12, 0.06, 0.02, 5),
    "Comments": (0.18, 0.08, 0.025, 8),
    "Likes": (0.65, 0.12, 0.05, 20),
}


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def format_date_label(d: date) -> str:
    return f"{d.month}/{d.day}"


def generate_data(
    days: Optional[int] = None,
    seed: Optional[int] = None,
    var_boost: Optional[float] = None,
    end_date: Optional[date] = None,
    cfg: Optional[GeneratorConfig] = None,
) -> pd.DataFrame:
    """Generate a deterministic daily baseline of product metrics.

    - DAU follows a floored random walk with drift and weekly seasonality.
    - Sessions / Logins / Signups are DAU times a noisy per-user rate.
    - Success metrics (VideoViews, Shares, Comments, Likes) add Box-Muller noise
      to their per-user rate, scaled by ``var_boost``.
    - WAU is recomputed afterwards as a shrunk 7-day rolling DAU sum, drawn from
      a second stream seeded ``seed ^ 0x9E3779B9``.

    Parameters left as None come from ``cfg`` (default ``GeneratorConfig()``).

    Returns a pandas DataFrame with one row per day ending at ``end_date``
    (default: today): date, label, DAU, WAU, Sessions, Logins, Signups,
    VideoViews, Shares, Comments, Likes.
    """
    cfg = cfg or GeneratorConfig()
    days = cfg.days if days is None else days
    seed = cfg.seed if seed is None else seed
    var_boost = cfg.var_boost if var_boost is None else var_boost

    if days < 1:
        raise ValueError("days must be >= 1")
    if end_date is None:
        end_date = date.today()

    rng = XorShift32(seed)
    rand = rng.next
    start = end_date - timedelta(days=days - 1)

    dau = 1000 + math.floor(rand() * 500)
    sessions_per_user = 1.6 + rand() * 0.7
    login_rate = 0.65 + rand() * 0.2

    rows: list[dict] = []
    for i in range(days):
        d = start + timedelta(days=i)

        drift = (rand() - 0.48) * (25 * (1 + var_boost))
        season = 60 * math.sin((2 * math.pi * i) / 7)
        dau = max(200, dau + drift + season * (0.2 + rand() * (0.1 + var_boost)))

        sessions = max(300, dau * (sessions_per_user + (rand() - 0.5) * (0.3 + var_boost)))
        logins = max(150, dau * (login_rate + (rand() - 0.5) * (0.08 + var_boost)))
        signups = max(20, dau * (0.04 + rand() * (0.02 + var_boost / 2)) + rand() * 15 * (1 + var_boost))

        row = {
            "date": d.isoformat(),
            "label": format_date_label(d),
            ACTIVITY_KEY: round_half_up(dau),
            WAU_KEY: 0,
            "Sessions": round_half_up(sessions),
            "Logins": round_half_up(logins),
            "Signups": round_half_up(signups),
        }

        # the uniform term is drawn before the gaussian pair for every metric
        for key, (base, spread, noise, floor) in SUCCESS_RATES.items():
            per_user = base + spread * rand() + noise * box_muller(rng) * (1 + var_boost)
            row[key] = max(floor, round_half_up(dau * max(0.0, per_user)))

        rows.append(row)

    rng2 = XorShift32((seed ^ GOLDEN_GAMMA) & 0xFFFFFFFF)
    wau_shrink = 0.55 + rng2.next() * 0.1
    for i, row in enumerate(rows):
        window = rows[max(0, i - (WAU_WINDOW - 1)) : i + 1]
        rolling_sum = sum(r[ACTIVITY_KEY] for r in window)
        row[WAU_KEY] = round_half_up(rolling_sum * wau_shrink)

    df = pd.DataFrame(rows, columns=["date", "label", *METRIC_KEYS])
    logger.info("series_generated", days=days, seed=seed, var_boost=var_boost, end_date=end_date.isoformat())
    return df


def export_to_csv(df: pd.DataFrame) -> str:
    """Export a baseline or simulated series to a CSV string.

    Cohort columns outside the test window are written as empty cells.
    """
    out = df.drop(columns=["label"], errors="ignore")
    return out.to_csv(index=False)
