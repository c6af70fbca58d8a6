"""SiteLedger notification pipeline."""
