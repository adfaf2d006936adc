"""tabload: load delimited text / spreadsheet exports into PostgreSQL tables."""

__version__ = "0.3.0"
