"""Allow ``python -m atelier``."""

from atelier.cli.main import main

main()
