"""PK/PD simulation configuration tool: projection of analyses to JSON."""
