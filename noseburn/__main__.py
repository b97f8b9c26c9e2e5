import sys

from noseburn.cli import main

sys.exit(main())
