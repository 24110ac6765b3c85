#!/usr/bin/env python
"""
Thin wrapper script to invoke the grouped_commit CLI.

Running ``python gcommit.py`` is equivalent to running the ``gcommit``
console script installed via ``pyproject.toml``.
"""

from grouped_commit.cli import main


if __name__ == "__main__":
    main(prog_name="gcommit")
