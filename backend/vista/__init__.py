"""Vista: Notion content sync, normalization and embedding backend."""
