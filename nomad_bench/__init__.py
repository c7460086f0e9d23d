"""nomad-bench - load-test driver for a Nomad cluster.

Provisions synthetic jobs, watches allocation placement progress and
reports placed/booting/running counts to a metrics sink.
"""

__version__ = "0.3.0"
