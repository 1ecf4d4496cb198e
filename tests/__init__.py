"""Commission payroll test suite."""
