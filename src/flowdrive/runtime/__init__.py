"""Host capability, manager registry and wiring."""
