"""HTTP API for the commission payroll engine."""
