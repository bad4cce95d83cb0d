"""Pure domain layer: clock and read-side DTOs. No I/O, no ORM imports."""
