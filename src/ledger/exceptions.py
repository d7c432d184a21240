"""Ledger-specific exceptions"""


class LedgerError(Exception):
    """Base exception for the ledger layer"""

    pass


class EmptyLedgerError(LedgerError):
    """There are no transactions to work with"""

    pass


class NothingToExportError(EmptyLedgerError):
    """An export was requested over an empty transaction list"""

    def __init__(self, message: str = "No transactions to export"):
        super().__init__(message)
