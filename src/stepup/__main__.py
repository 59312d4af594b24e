"""Allow ``python -m stepup``."""

from stepup.cli import main

main()
