"""cli - balance-checker command line interface and report rendering."""
