"""Domain layer - clock, decimal helpers and read-side DTOs. Zero I/O."""
