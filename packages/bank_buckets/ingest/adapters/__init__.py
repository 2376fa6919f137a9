"""Per-format statement adapters (bank-export CSV, aggregator-export CSV, PDF text)."""
