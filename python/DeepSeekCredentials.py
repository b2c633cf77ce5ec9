#!/usr/bin/env python3
# SPDX-License-Identifier: GPL-3.0-or-later
# SPDX-CopyrightText: 2025 Gerhard Gappmeier <gappy1502@gmx.net>
#
# This class is used by the deepseek chat scripts to retrieve the
# API credential, which is read from the environment.
import os

DEFAULT_API_KEY_VAR = "DEEPSEEK_API_KEY"

class DeepSeekCredentials:
    def __init__(self, env_var: str = DEFAULT_API_KEY_VAR):
        self.env_var = env_var

    def GetApiKey(self) -> str:
        """
        Retrieve the bearer token for the DeepSeek API.

        The key is taken from the DEEPSEEK_API_KEY environment variable.
        Surrounding whitespace is stripped.

        Raises EnvironmentError if the variable is unset or empty.
        """
        key = os.getenv(self.env_var)
        if key and key.strip():
            return key.strip()

        raise EnvironmentError(f"{self.env_var} environment variable is not set.")
