"""Pharmacy billing core: GST pricing, batch stock reservation and invoice bookkeeping."""

__version__ = "0.1.0"
