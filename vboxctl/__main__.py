import sys

from vboxctl.cli import main

sys.exit(main())
