"""Commission payroll engine: lock, adjust, approve and export payroll runs."""

__version__ = "0.1.0"
