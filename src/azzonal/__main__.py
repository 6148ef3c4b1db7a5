"""Allow ``python -m azzonal``."""

from azzonal.cli import main

main()
