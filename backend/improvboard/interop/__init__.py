"""Bridge for the Mon-Pacing remote pacing app."""
