"""HTTP adapter over the payroll services."""
