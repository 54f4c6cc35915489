"""
Scalar wrapper types stored as their string form.
"""

from __future__ import annotations

from typing import Any, Dict


class CoreType:
    """
    Base class for value wrappers that persist as ``str(instance)`` and are
    rebuilt by calling the class with the raw column value.
    """

    def __init__(self, value: Any) -> None:
        self.value = value

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.value!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CoreType) or other.__class__ is not self.__class__:
            return NotImplemented
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash((self.__class__, str(self)))


class Enumeration(CoreType):
    """
    Core type restricted to the upper-case constants declared on the class.

    ``__default__`` names the constant used when no value is given.
    """

    __default__: Any = None

    def __init__(self, value: Any = None) -> None:
        if value is None:
            value = self.__default__
        constants = self.get_constants()
        matches = [constant for constant in constants.values() if str(constant) == str(value)]
        if not matches:
            raise ValueError(
                f"Invalid value {value!r} for enumeration {self.__class__.__name__}"
            )
        super().__init__(matches[0])

    @classmethod
    def get_constants(cls) -> Dict[str, Any]:
        constants: Dict[str, Any] = {}
        for klass in reversed(cls.__mro__):
            for name, value in vars(klass).items():
                if name.isupper() and not name.startswith("_"):
                    constants[name] = value
        return constants
