"""Chain data gateway implementations."""
