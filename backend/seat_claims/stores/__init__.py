"""
Seat stores - the persistence side of the claim protocols.
Protocols depend on the SeatStore interface only.
"""

from .interfaces import SeatStore, SeatTransaction
from .memory import InMemorySeatStore

__all__ = ['SeatStore', 'SeatTransaction', 'InMemorySeatStore']
