"""Configuration management for the driver payroll engine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True)
class AdvancePolicy:
    """
    Limits applied when an advance is created.

    Attributes:
        min_amount: Smallest advance that may be granted.
        max_amount: Largest single advance.
        max_outstanding: Cap on outstanding balance plus the new amount.
        min_weeks: Fewest repayment weeks.
        max_weeks: Most repayment weeks.
        max_active_advances: ACTIVE advances allowed per employee at once.
    """

    min_amount: Decimal = Decimal("50.00")
    max_amount: Decimal = Decimal("5000.00")
    max_outstanding: Decimal = Decimal("5000.00")
    min_weeks: int = 1
    max_weeks: int = 26
    max_active_advances: int = 1

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.min_amount <= 0:
            raise ValueError("min_amount must be positive")
        if self.max_amount < self.min_amount:
            raise ValueError("max_amount cannot be below min_amount")
        if self.max_outstanding < self.max_amount:
            raise ValueError("max_outstanding cannot be below max_amount")
        if self.min_weeks < 1:
            raise ValueError("min_weeks must be at least 1")
        if self.max_weeks < self.min_weeks:
            raise ValueError("max_weeks cannot be below min_weeks")
        if self.max_active_advances < 1:
            raise ValueError("max_active_advances must be at least 1")


@dataclass(frozen=True)
class EscrowPolicy:
    """Escrow defaults."""

    default_target: Decimal = Decimal("3000.00")

    def __post_init__(self) -> None:
        if self.default_target <= 0:
            raise ValueError("default_target must be positive")


@dataclass(frozen=True)
class AdjustmentPolicy:
    """Bounds for a single adjustment amount."""

    min_amount: Decimal = Decimal("0.01")
    max_amount: Decimal = Decimal("50000.00")

    def __post_init__(self) -> None:
        if self.min_amount <= 0 or self.max_amount < self.min_amount:
            raise ValueError("adjustment bounds must satisfy 0 < min <= max")


@dataclass(frozen=True)
class CalculatorPolicy:
    """
    Thresholds for the informational suggestions.

    Attributes:
        auto_repayment_percent: Share of gross offered as a repayment.
        max_auto_repayment: Hard cap on a suggested repayment.
        min_net_after_repayment: Suggest nothing if projected net falls below this.
        escrow_min_net_pay: Projected net that an escrow suggestion must preserve.
        max_escrow_deposit: Cap on a suggested weekly escrow deposit.
        min_escrow_deposit: Suggestions smaller than this are dropped.
        escrow_weeks_target: Weeks over which the escrow gap is spread.
    """

    auto_repayment_percent: Decimal = Decimal("10")
    max_auto_repayment: Decimal = Decimal("200.00")
    min_net_after_repayment: Decimal = Decimal("300.00")
    escrow_min_net_pay: Decimal = Decimal("500.00")
    max_escrow_deposit: Decimal = Decimal("500.00")
    min_escrow_deposit: Decimal = Decimal("50.00")
    escrow_weeks_target: int = 6

    def __post_init__(self) -> None:
        if self.escrow_weeks_target < 1:
            raise ValueError("escrow_weeks_target must be at least 1")
        if self.min_escrow_deposit > self.max_escrow_deposit:
            raise ValueError("min_escrow_deposit cannot exceed max_escrow_deposit")


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    data_dir: Path
    engine_version: str
    log_level: str
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    advances: AdvancePolicy = field(default_factory=AdvancePolicy)
    escrow: EscrowPolicy = field(default_factory=EscrowPolicy)
    adjustments: AdjustmentPolicy = field(default_factory=AdjustmentPolicy)
    calculator: CalculatorPolicy = field(default_factory=CalculatorPolicy)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            data_dir=Path(os.getenv("PAYROLL_DATA_DIR", "./payroll_data")),
            engine_version=os.getenv("ENGINE_VERSION", "1.0.0"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            advances=AdvancePolicy(
                min_amount=Decimal(os.getenv("ADVANCE_MIN_AMOUNT", "50.00")),
                max_amount=Decimal(os.getenv("ADVANCE_MAX_AMOUNT", "5000.00")),
                max_outstanding=Decimal(os.getenv("ADVANCE_MAX_OUTSTANDING", "5000.00")),
                min_weeks=int(os.getenv("ADVANCE_MIN_WEEKS", "1")),
                max_weeks=int(os.getenv("ADVANCE_MAX_WEEKS", "26")),
                max_active_advances=int(os.getenv("ADVANCE_MAX_ACTIVE", "1")),
            ),
            escrow=EscrowPolicy(
                default_target=Decimal(os.getenv("ESCROW_DEFAULT_TARGET", "3000.00")),
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()


def configure_logging(settings: Settings) -> None:
    """Apply the configured log level to the package logger."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("driver_payroll").setLevel(settings.log_level)
