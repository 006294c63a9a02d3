"""
Utilities for interpolating environment variables into configuration values.
"""
import re
from typing import Any, Dict

# ${VAR} or ${VAR:-default}
_PLACEHOLDER = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}')


class EnvironmentInterpolator:
    """
    Substitutes ${VAR} and ${VAR:-default} in configuration values.
    Interpolation runs on the parsed values, not the raw YAML text,
    so a substituted value can never change the document's structure.
    """
    def __init__(self, context: Dict[str, str]):
        self.context = context

    def interpolate(self, template: str) -> str:
        """
        Interpolates a single string.

        :param template: The string containing ${VAR} placeholders.
        :return: The interpolated string.
        :raises KeyError: If a variable is unset and has no default.
        """
        def replace(match):
            name, default = match.group(1), match.group(2)
            value = self.context.get(name)
            if default is not None:
                # ${VAR:-default} also covers a set but empty VAR
                return value if value else default
            if value is None:
                raise KeyError(name)
            return value

        return _PLACEHOLDER.sub(replace, template)

    def interpolate_tree(self, data: Any) -> Any:
        """
        Interpolates every string inside nested dicts and lists. Keys are left alone.
        """
        if isinstance(data, str):
            return self.interpolate(data)
        if isinstance(data, dict):
            return {key: self.interpolate_tree(value) for key, value in data.items()}
        if isinstance(data, list):
            return [self.interpolate_tree(item) for item in data]
        return data
