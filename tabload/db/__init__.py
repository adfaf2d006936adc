from .batch_insert import BatchInsertError, BatchMetrics, InsertResult
from .connection import connect
from .identifiers import TableName, index_name, quote_ident
from .loader import iter_batches, load, select_rows
from .swap import TransactionError, discard_staging, promote, stage, transaction

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "connect",
    "TableName",
    "index_name",
    "quote_ident",
    "iter_batches",
    "load",
    "select_rows",
    "TransactionError",
    "discard_staging",
    "promote",
    "stage",
    "transaction",
]
