import sys

from pgcompose.cli import main

sys.exit(main())
