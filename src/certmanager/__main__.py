"""Allow ``python -m certmanager``."""

from certmanager.cli.main import main

main()
