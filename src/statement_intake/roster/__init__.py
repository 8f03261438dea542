"""Read-only roster of companies and their bank accounts."""

from .roster import BankAccount, BankRoster, RosterError, load_roster, roster_from_dict

__all__ = ["BankAccount", "BankRoster", "RosterError", "load_roster", "roster_from_dict"]
