import sys

from auroraid.cli import main

sys.exit(main())
