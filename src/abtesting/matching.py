"""
Target matching against experiment scope patterns.

Three pattern forms, checked in order:
  "*"          matches every target
  "/base/*"    matches anything under "/base/", not "/base" itself
  anything     exact string equality

Targets are compared as given. No case folding, trailing-slash or regex
handling is done here.
"""

GLOBAL_PATTERN = "*"
WILDCARD_SUFFIX = "/*"


def matches(target: str, pattern: str) -> bool:
    """Return True if target falls within pattern's scope."""
    if pattern == GLOBAL_PATTERN:
        return True
    if pattern.endswith(WILDCARD_SUFFIX):
        base = pattern[: -len(WILDCARD_SUFFIX)]
        return target.startswith(base + "/")
    return target == pattern


def is_valid_pattern(pattern: str) -> bool:
    """A pattern is valid when "*" appears only as the whole pattern or a trailing "/*"."""
    if not isinstance(pattern, str) or not pattern:
        return False
    if pattern == GLOBAL_PATTERN:
        return True
    body = pattern[: -len(WILDCARD_SUFFIX)] if pattern.endswith(WILDCARD_SUFFIX) else pattern
    return "*" not in body
