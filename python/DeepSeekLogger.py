#!/usr/bin/env python3
# SPDX-License-Identifier: GPL-3.0-or-later
# SPDX-CopyrightText: 2025 Gerhard Gappmeier <gappy1502@gmx.net>
#
# This class is used by the deepseek chat scripts to trace debug info
# to a log file and severe errors also to the console.
import os
import logging
from logging.handlers import RotatingFileHandler

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

class DeepSeekLogger:
    ERROR = logging.ERROR
    WARNING = logging.WARNING
    INFO = logging.INFO
    DEBUG = logging.DEBUG

    def __init__(self, log_dir, log_filename, log_level=logging.ERROR, name='deepseek'):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(log_level)
        self.logger.propagate = False
        # drop handlers of a previous instance using the same logger name
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        self.fh = None  # File handler
        self.log_path = None

        try:
            if not os.path.exists(log_dir):
                os.makedirs(log_dir, exist_ok=True)

            log_path = os.path.join(log_dir, log_filename)
            fh = RotatingFileHandler(log_path, maxBytes=5*1024*1024, backupCount=2)
            fh.setLevel(log_level)
            fh.setFormatter(logging.Formatter(LOG_FORMAT))
            self.logger.addHandler(fh)
            self.fh = fh
            self.log_path = log_path
        except (OSError, PermissionError):
            # File logging will be skipped
            pass

        # Console handler only shows errors unless debugging is enabled
        ch = logging.StreamHandler()
        ch.setLevel(logging.ERROR)
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        self.logger.addHandler(ch)
        self.ch = ch

    def setLevel(self, level):
        self.logger.setLevel(level)
        if self.fh:
            self.fh.setLevel(level)

    def setConsoleLevel(self, level):
        """Change what is traced to stderr, e.g. DEBUG for --debug."""
        self.ch.setLevel(level)
        if level < self.logger.level:
            self.logger.setLevel(level)

    def error(self, message):
        """Log an error message."""
        self.logger.error(message)

    def info(self, message):
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message):
        """Log a warning message."""
        self.logger.warning(message)

    def debug(self, message):
        """Log a debug message."""
        self.logger.debug(message)
