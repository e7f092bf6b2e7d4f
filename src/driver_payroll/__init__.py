"""Weekly driver payroll: advances, escrow, adjustments, recurring fees and pay calculation."""

__version__ = "0.1.0"
