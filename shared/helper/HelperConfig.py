"""Central configuration helper for the knowledge bridge."""

import logging
import os


class HelperConfig:
    """Central configuration helper. Reads all settings from environment variables.

    An optional ``overrides`` mapping takes precedence over the process
    environment; the CLI runner and the tests use it to inject settings
    without touching ``os.environ``.
    """

    def __init__(self, logger: logging.Logger, overrides: dict[str, str] | None = None) -> None:
        self._logger = logger
        self._overrides = {k.upper(): str(v) for k, v in (overrides or {}).items()}

    def _read(self, key: str) -> str | None:
        """Return the raw value for ``key``, treating empty strings as unset."""
        if key in self._overrides:
            return self._overrides[key] or None
        return os.getenv(key) or None

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string environment variable.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (str | None): Fallback value if the variable is not set.

        Returns:
            str: The resolved value.

        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        key = key.upper()
        val = self._read(key)
        if val is None and default is None:
            raise ValueError(f"Environment variable '{key}' is not set.")
        return val.strip() if val is not None else default

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a numeric environment variable.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (float | int | None): Fallback value if the variable is not set.

        Returns:
            float | int: The resolved numeric value.

        Raises:
            ValueError: If the variable is not set and no default is provided.
            ValueError: If the value cannot be parsed as a number.
        """
        key = key.upper()
        raw = self._read(key)
        if raw is None:
            if default is None:
                raise ValueError(f"Environment variable '{key}' is not set.")
            return default
        try:
            return int(raw) if "." not in raw else float(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key}' is not a valid number: '{raw}'.")

    def get_ranged_val(self, key: str, minimum: float, maximum: float, default: float | int | None = None) -> float | int:
        """Read a numeric environment variable and enforce an inclusive range.

        Raises:
            ValueError: If the value lies outside [minimum, maximum].
        """
        val = self.get_number_val(key, default=default)
        if not minimum <= val <= maximum:
            raise ValueError(
                f"Environment variable '{key.upper()}' must be between {minimum} and {maximum}. Got: {val}."
            )
        return val

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a boolean environment variable.

        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        key = key.upper()
        raw = self._read(key)
        if raw is None:
            if default is None:
                raise ValueError(f"Environment variable '{key}' is not set.")
            return default
        return raw.lower() in ("true", "1", "yes")

    def get_list_val(self, key: str, default: list[str] | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a list environment variable written as ``[elem1,elem2,...]``.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (list[str] | None): Fallback value if the variable is not set.
            separator (str): The delimiter between elements.
            element_type (type): The type each element is cast to.

        Returns:
            list: The resolved list of elements.

        Raises:
            ValueError: If the variable is not set and no default is provided,
                or if it is not bracketed, or if an element cannot be cast.
        """
        key = key.upper()
        raw_val = self._read(key)
        if raw_val is None:
            if default is None:
                raise ValueError(f"Environment variable '{key}' is not set.")
            return default
        raw_val = raw_val.strip()
        if not raw_val.startswith("[") or not raw_val.endswith("]"):
            raise ValueError(f"Environment variable '{key}' must be in the format '[elem1{separator}elem2{separator}...]'. Got: '{raw_val}'")
        elements = [v.strip() for v in raw_val[1:-1].split(separator) if v.strip()]
        if not elements:
            return []
        try:
            return [element_type(elem) for elem in elements]
        except ValueError as e:
            raise ValueError(f"Environment variable '{key}' contains invalid elements: {e}. Type set to {element_type.__name__}. Got: '{raw_val}'")

    def get_choice_list_val(self, key: str, choices: list[str], default: list[str] | None = None) -> list[str]:
        """Read a list environment variable whose elements must come from ``choices``.

        Elements are lowercased and duplicates are dropped, keeping first occurrence.

        Raises:
            ValueError: If an element is not one of ``choices``.
        """
        values = [v.lower() for v in self.get_list_val(key, default=default)]
        unknown = [v for v in values if v not in choices]
        if unknown:
            raise ValueError(f"Environment variable '{key.upper()}' contains unknown values {unknown}. Allowed: {choices}")
        return list(dict.fromkeys(values))

    def get_logger(self) -> logging.Logger:
        """Return the application logger."""
        return self._logger
