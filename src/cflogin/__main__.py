"""Allow ``python -m cflogin``."""

from cflogin.app import main

main()
