"""Bookati booking core: slots, locks, bookings and package quota."""

__version__ = "1.0.0"
