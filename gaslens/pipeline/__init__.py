"""Per-session orchestration of analysis components."""
