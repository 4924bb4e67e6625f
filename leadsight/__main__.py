"""Main entry point when executing leadsight as a package.

This allows running the package using python -m leadsight.
"""

from leadsight.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
