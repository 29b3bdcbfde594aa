def like_pattern(term: str) -> str:
    """Build a LIKE pattern matching ``term`` anywhere, escaping wildcards with a backslash."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
