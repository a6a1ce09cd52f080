"""Application configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="EDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # SQLite database path for the outcome history
    db_path: Path = Path.home() / ".edge-engine" / "outcomes.db"

    # --- Adaptive calibration ---
    calibration_window_days: int = 30
    calibration_max_records: int = 100
    calibration_min_signals: int = 20
    learning_rate: float = 0.1
    overconfidence_threshold: float = -0.1
    underconfidence_threshold: float = 0.1
    overconfidence_confidence_adjustment: float = 0.3
    overconfidence_edge_adjustment: float = 0.05
    underconfidence_confidence_adjustment: float = 0.2
    underconfidence_edge_adjustment: float = 0.03

    # --- Time-to-resolution weighting ---
    base_min_edge: float = 0.05
    max_min_edge: float = 0.20
    # Do not open positions within this many days of resolution (6 hours)
    no_trade_days: float = 0.25
    wait_horizon_days: float = 7.0
    enter_small_multiplier: float = 0.5

    # --- Kelly sizing ---
    # Multiplier on full Kelly (2.0 = double Kelly before the position cap)
    kelly_multiplier: float = 2.0
    max_position_size: float = 0.05
    edge_buffer: float = 0.01
    min_liquidity: float = 1_000.0
    # (min_liquidity, multiplier) tiers, highest first; below the last tier
    # the thin-market multiplier applies
    liquidity_tiers: tuple[tuple[float, float], ...] = (
        (100_000.0, 1.2),
        (20_000.0, 1.1),
        (5_000.0, 1.0),
    )
    thin_market_multiplier: float = 0.9

    # --- Exit thresholds (percent units) ---
    profit_target_percent: float = 25.0
    trailing_stop_percent: float = 15.0
    trailing_stop_arm_percent: float = 10.0
    stop_loss_percent: float = 20.0
    time_decay_days: float = 3.0
    lock_profit_days: float = 1.0
    lock_profit_min_percent: float = 5.0
    stale_position_days: float = 30.0
    stale_max_pnl_percent: float = 5.0
    edge_reversal_threshold: float = 0.03
    confidence_drop_threshold: float = 20.0
    liquidity_dry_threshold: float = 10_000.0
    max_position_liquidity_ratio: float = 0.20

    # --- Peak P&L tracker ---
    peak_tracker_max_size: int = 1_000
    peak_tracker_ttl_seconds: float | None = None

    # --- Arbitrage / relationships ---
    arbitrage_min_deviation: float = 0.05
    subset_min_gap: float = 0.05
    similarity_threshold: float = 0.7
    max_scan_markets: int = 100
    weight_inverse: float = 1.0
    weight_subset: float = 0.8
    weight_correlated: float = 0.5
    weight_other: float = 0.3
    max_exposure_multiple: float = 2.0

    # --- Risk metrics ---
    risk_free_rate: float = 0.02
    periods_per_year: int = 252
    var_confidence: float = 0.95
    min_var_samples: int = 10

    @field_validator("learning_rate", "max_position_size", "similarity_threshold")
    @classmethod
    def _unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"value must be in [0, 1], got {v}")
        return v

    @field_validator("var_confidence")
    @classmethod
    def _var_confidence_in_range(cls, v: float) -> float:
        if not 0.0 < v < 1.0:
            raise ValueError(f"var_confidence must be in (0, 1), got {v}")
        return v

    @field_validator("calibration_min_signals", "calibration_max_records", "peak_tracker_max_size")
    @classmethod
    def _positive_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"count must be >= 1, got {v}")
        return v

    @field_validator(
        "base_min_edge",
        "kelly_multiplier",
        "min_liquidity",
        "stop_loss_percent",
        "trailing_stop_percent",
        "profit_target_percent",
        "arbitrage_min_deviation",
        "subset_min_gap",
    )
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"threshold must be >= 0, got {v}")
        return v


def get_settings() -> Settings:
    """Get a settings instance built from the environment."""
    return Settings()
