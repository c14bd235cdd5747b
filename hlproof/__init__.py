"""hlproof: Hoare-logic proof checking for the Imp language."""

__version__ = "0.1.0"
