"""
Vault Sensitivity Classifier — Decide whether a value should be encrypted.

Heuristic only: an ordered list of named regular expressions is checked
against the value and the first match wins. A miss does not prove the value
is harmless.
"""
import re
import logging
from typing import Optional, Union
from collections.abc import Iterable

from pydantic import BaseModel

logger = logging.getLogger("navigator.keyvault")

PatternLike = Union[str, re.Pattern, "SensitivePattern"]


class SensitivePattern(BaseModel):
    """A named matcher in the classifier list."""

    name: str
    regex: re.Pattern

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @classmethod
    def build(cls, name: str, pattern: str, flags: int = re.IGNORECASE) -> "SensitivePattern":
        return cls(name=name, regex=re.compile(pattern, flags))

    def matches(self, value: str) -> bool:
        return self.regex.search(value) is not None


DEFAULT_PATTERNS: tuple[SensitivePattern, ...] = (
    SensitivePattern.build("password", r"password"),
    SensitivePattern.build("secret", r"secret"),
    SensitivePattern.build("token", r"token"),
    SensitivePattern.build("key", r"key"),
    SensitivePattern.build("credential", r"credential"),
    SensitivePattern.build("private", r"private"),
    SensitivePattern.build("auth", r"auth"),
    SensitivePattern.build("api_key", r"api[-_]?key"),
    SensitivePattern.build("access_token", r"access[-_]?token"),
    SensitivePattern.build("refresh_token", r"refresh[-_]?token"),
    SensitivePattern.build("jwt", r"jwt"),
    SensitivePattern.build("certificate", r"certificate"),
    SensitivePattern.build("passphrase", r"passphrase"),
    SensitivePattern.build("publishable_key", r"^pk_"),
    SensitivePattern.build("secret_key", r"^sk_"),
    SensitivePattern.build("base64_blob", r"^[A-Za-z0-9+/]{40,}={0,2}$", flags=0),
)


def _coerce(pattern: PatternLike, index: int) -> SensitivePattern:
    if isinstance(pattern, SensitivePattern):
        return pattern
    if isinstance(pattern, re.Pattern):
        return SensitivePattern(name=f"custom_{index}", regex=pattern)
    if isinstance(pattern, str):
        return SensitivePattern.build(f"custom_{index}", pattern)
    raise TypeError(f"Unsupported sensitive pattern type: {type(pattern).__name__}")


class SensitivityClassifier:
    """Ordered matcher list.

    Args:
        patterns: Matchers replacing the defaults. Strings are compiled
            case-insensitively; compiled patterns keep their own flags.
    """

    def __init__(self, patterns: Optional[Iterable[PatternLike]] = None):
        self._patterns = self._normalize(patterns) if patterns is not None \
            else DEFAULT_PATTERNS

    @property
    def patterns(self) -> tuple[SensitivePattern, ...]:
        return self._patterns

    @staticmethod
    def _normalize(patterns: Iterable[PatternLike]) -> tuple[SensitivePattern, ...]:
        return tuple(_coerce(p, i) for i, p in enumerate(patterns))

    def match(
        self,
        value: str,
        patterns: Optional[Iterable[PatternLike]] = None,
    ) -> Optional[SensitivePattern]:
        """Return the first matcher that fires, or None.

        ``patterns`` overrides the configured list for this call; an empty
        iterable matches nothing.
        """
        matchers = self._patterns if patterns is None else self._normalize(patterns)
        for matcher in matchers:
            if matcher.matches(value):
                return matcher
        return None

    def is_sensitive_value(
        self,
        value: str,
        patterns: Optional[Iterable[PatternLike]] = None,
    ) -> bool:
        return self.match(value, patterns) is not None
