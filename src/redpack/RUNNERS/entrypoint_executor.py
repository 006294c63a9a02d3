"""
Utilities for resolving which process a container starts as PID 1.
"""
import posixpath
from typing import List, Optional

# Interpreters that may front an entrypoint script
SHELLS = {"sh", "ash", "bash", "dash"}


class EntrypointExecutor:
    """
    Applies Docker's ENTRYPOINT / CMD rules and checks the result
    against the script a recipe expects to run.
    """
    def get_full_command(self, entrypoint: Optional[List[str]], cmd: Optional[List[str]]) -> List[str]:
        """
        Combines entrypoint and cmd into a single command list.

        :param entrypoint: The ENTRYPOINT list.
        :param cmd: The CMD list.
        :return: The full command list.
        """
        # An ENTRYPOINT is the executable and CMD its arguments; without one, CMD is everything.
        entrypoint = list(entrypoint or [])
        cmd = list(cmd or [])
        if entrypoint:
            return entrypoint + cmd
        return cmd

    def launches_script(self, command: List[str], script_path: str) -> bool:
        """
        True when `command` starts `script_path`, either directly
        or as the first argument of a shell.

        :param command: Full PID 1 command list.
        :param script_path: Absolute path of the expected script.
        """
        if not command:
            return False
        if command[0] == script_path:
            return True
        if posixpath.basename(command[0]) in SHELLS:
            args = [arg for arg in command[1:] if not arg.startswith("-")]
            return bool(args) and args[0] == script_path
        return False
