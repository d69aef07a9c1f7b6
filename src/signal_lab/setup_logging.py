"""Logging configuration for the signal_lab package."""

import logging

import coloredlogs

KERNEL_LOGGER = "signal_lab.dsp"


def setup_logging(level: str = "INFO", kernel_level: str | None = None) -> None:
  """Install colored console logging on the root logger.

  The kernel modules only create loggers; call this once from a script.

  Args:
    level: Root logging level (e.g., "INFO", "DEBUG", "WARNING").
    kernel_level: Separate level for the ``signal_lab.dsp`` loggers, so fault
      pipeline and analysis traces can be enabled without debug output from
      other libraries. Defaults to ``level``.
  """
  root_level = logging.getLevelName(level)
  kernel = logging.getLevelName(kernel_level or level)

  log_format = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
  # The handler must pass the more verbose of the two levels.
  coloredlogs.install(
    level=min(root_level, kernel),
    fmt=log_format,
    datefmt="%H:%M:%S",
    is_system_wide=True,
  )
  logging.getLogger().setLevel(root_level)
  logging.getLogger(KERNEL_LOGGER).setLevel(kernel)
