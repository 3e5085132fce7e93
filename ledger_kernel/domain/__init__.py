"""Pure domain layer: value objects, calendar arithmetic, events and clock."""
