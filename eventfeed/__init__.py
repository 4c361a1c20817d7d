"""IoT event feed: ledger in-memory dan pagination berbasis cursor."""
