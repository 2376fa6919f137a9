"""Public interface for the ``bank_buckets`` package.

Statements are imported into a single ledger, transactions are sorted into
per-account buckets and bucket balances are reported. This module only
re-exports the stable import surface; the logic lives in the submodules.
"""

from .api import (
    AccountMergeResult,
    FileImportResult,
    ImportReport,
    accept_bucket_suggestions,
    account_suggestions,
    add_bucket,
    add_bucket_keyword,
    auto_assign,
    bucket_balances,
    bucket_suggestions,
    classify_transaction,
    delete_bucket,
    delete_saved_account,
    import_statements,
    merge_accounts,
    remove_bucket_keyword,
    rename_bucket,
    reset,
    save_account,
    set_starting_allocation,
    update_bucket_keyword,
)
from .errors import (
    BankBucketsError,
    LedgerError,
    ParseError,
    StoreCapacityError,
    StoreConflictError,
    StoreError,
)
from .models import (
    AccountSuggestion,
    Bucket,
    BucketSuggestion,
    MergeResult,
    MergeStats,
    SavedAccount,
    StartingAllocation,
    Transaction,
)
from .persistence import LedgerStore

__all__ = [
    # API
    "import_statements",
    "account_suggestions",
    "save_account",
    "merge_accounts",
    "delete_saved_account",
    "add_bucket",
    "rename_bucket",
    "add_bucket_keyword",
    "update_bucket_keyword",
    "remove_bucket_keyword",
    "delete_bucket",
    "bucket_suggestions",
    "accept_bucket_suggestions",
    "set_starting_allocation",
    "classify_transaction",
    "auto_assign",
    "bucket_balances",
    "reset",
    "FileImportResult",
    "ImportReport",
    "AccountMergeResult",
    # Store
    "LedgerStore",
    # Models / types
    "Transaction",
    "Bucket",
    "StartingAllocation",
    "SavedAccount",
    "AccountSuggestion",
    "BucketSuggestion",
    "MergeResult",
    "MergeStats",
    # Errors
    "BankBucketsError",
    "ParseError",
    "StoreError",
    "StoreCapacityError",
    "StoreConflictError",
    "LedgerError",
]
