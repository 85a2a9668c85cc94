"""ERP suite backend: HR and finance management."""
