# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import sys

from borrowck.driver import main

sys.exit(main())
