"""Command line interface (``tabload`` console script, ``python -m tabload.cli``)."""
