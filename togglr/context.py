"""
Request context for feature evaluation and cache key derivation.
"""

import hashlib
import json
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union


class RequestContext:
    """
    Attribute bag sent with every evaluation.

    Keys are dot-namespaced strings such as ``user.id`` or ``device.type``.
    Setters update the context in place and return it, so calls can be
    chained. Setting an existing key overwrites the previous value.

    Example:
        ```python
        context = (
            RequestContext()
            .with_user_id("123")
            .with_country("US")
            .set("plan", "premium")
        )
        ```
    """

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, Any] = dict(data) if data else {}

    def set(self, key: str, value: Any) -> "RequestContext":
        """Set a custom attribute."""
        if not isinstance(key, str) or not key:
            raise ValueError("context key must be a non-empty string")
        self._data[key] = value
        return self

    def set_many(self, attrs: Mapping[str, Any]) -> "RequestContext":
        """Set several attributes at once."""
        for key, value in attrs.items():
            self.set(key, value)
        return self

    def with_user_id(self, user_id: str) -> "RequestContext":
        return self.set("user.id", user_id)

    def with_user_email(self, email: str) -> "RequestContext":
        return self.set("user.email", email)

    def with_anonymous(self, anonymous: bool) -> "RequestContext":
        return self.set("user.anonymous", bool(anonymous))

    def with_country(self, country: str) -> "RequestContext":
        return self.set("country", country)

    def with_region(self, region: str) -> "RequestContext":
        return self.set("region", region)

    def with_city(self, city: str) -> "RequestContext":
        return self.set("city", city)

    def with_device_type(self, device_type: str) -> "RequestContext":
        return self.set("device.type", device_type)

    def with_manufacturer(self, manufacturer: str) -> "RequestContext":
        return self.set("device.manufacturer", manufacturer)

    def with_os(self, os: str) -> "RequestContext":
        return self.set("os", os)

    def with_os_version(self, version: str) -> "RequestContext":
        return self.set("os.version", version)

    def with_browser(self, browser: str) -> "RequestContext":
        return self.set("browser", browser)

    def with_browser_version(self, version: str) -> "RequestContext":
        return self.set("browser.version", version)

    def with_language(self, language: str) -> "RequestContext":
        return self.set("language", language)

    def with_connection_type(self, connection_type: str) -> "RequestContext":
        return self.set("connection.type", connection_type)

    def with_age(self, age: int) -> "RequestContext":
        if isinstance(age, bool) or not isinstance(age, int) or age < 0:
            raise ValueError("age must be a non-negative integer")
        return self.set("user.age", age)

    def with_gender(self, gender: str) -> "RequestContext":
        return self.set("user.gender", gender)

    def with_ip(self, ip: str) -> "RequestContext":
        return self.set("ip", ip)

    def with_app_version(self, version: str) -> "RequestContext":
        return self.set("app.version", version)

    def with_platform(self, platform: str) -> "RequestContext":
        return self.set("platform", platform)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """Return a copy of the attributes."""
        return dict(self._data)

    def items(self) -> Iterator[Tuple[str, Any]]:
        return iter(list(self._data.items()))

    def is_empty(self) -> bool:
        return not self._data

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RequestContext):
            return self._data == other._data
        return NotImplemented

    def __repr__(self) -> str:
        return f"RequestContext({self._data!r})"


ContextLike = Union[RequestContext, Mapping[str, Any]]


def _as_mapping(context: Optional[ContextLike]) -> Mapping[str, Any]:
    if context is None:
        return {}
    if isinstance(context, RequestContext):
        return context.to_dict()
    return context


def canonical_json(context: Optional[ContextLike]) -> str:
    """
    Serialize a context with sorted keys and no insignificant whitespace.

    Strings stay quoted so ``"1"`` and ``1`` never serialize the same way.
    """
    return json.dumps(
        _as_mapping(context),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def make_cache_key(feature_key: str, context: Optional[ContextLike]) -> str:
    """
    Derive the cache key for a feature evaluation.

    The hash is the MD5 of the canonical JSON of the context.

    Args:
        feature_key: Feature being evaluated
        context: Request context or plain mapping

    Returns:
        ``"{feature_key}:{32 hex chars}"``
    """
    payload = canonical_json(context).encode("utf-8")
    digest = hashlib.md5(payload, usedforsecurity=False).hexdigest()
    return f"{feature_key}:{digest}"
