"""Allow ``python -m uspd_readmodel``."""
from .cli import main

raise SystemExit(main())
