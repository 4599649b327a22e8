"""Source adapters: one per kind of external input.

- :mod:`.document` reads a PDF statement and asks the model to extract it.
- :mod:`.spreadsheet` parses a delimited export and asks the model to extract it.
- :mod:`.aggregator` pages a bank aggregator's ``/transactions/sync`` feed.
- :mod:`.processor` pages a payment processor's balance-transaction ledger.
"""

from .aggregator import AggregatorAdapter, AggregatorClient, SyncPage
from .document import DocumentAdapter
from .processor import ProcessorAdapter, ProcessorClient
from .spreadsheet import SpreadsheetAdapter

__all__ = [
    "AggregatorAdapter",
    "AggregatorClient",
    "DocumentAdapter",
    "ProcessorAdapter",
    "ProcessorClient",
    "SpreadsheetAdapter",
    "SyncPage",
]
