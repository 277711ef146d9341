"""Storage state reconstruction, simulation and input validation."""
