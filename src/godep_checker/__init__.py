"""
godep-checker: reconcile two Godeps manifests.

Compares the dependency pins of a project with those of a vendored
dependency it tracks and orders divergent revisions using git history.
"""

import logging

__version__ = "1.0.0"

logging.getLogger("godep_checker").addHandler(logging.NullHandler())
