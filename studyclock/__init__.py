"""Study Clock: study timer, session ledger and study-time analytics."""
