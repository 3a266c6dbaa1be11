"""Admin module: user accounts and the audit trail."""
