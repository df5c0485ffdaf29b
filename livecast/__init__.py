"""Live rooms: binary wire protocol, room server and console lobby client."""

__version__ = "0.1.0"