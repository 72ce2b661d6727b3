def to_uppercase(value: str | None) -> str | None:
    """
    Converts a string to uppercase if it's not None.
    """
    if value is None:
        return None
    return value.strip().upper()


def to_lowercase(value: str | None) -> str | None:
    """
    Converts a string to lowercase if it's not None.
    """
    if value is None:
        return None
    return value.strip().lower()


def normalize_url_path(value: str | None) -> str | None:
    """
    Ensure a mount path starts with a single slash and has no trailing slash.

    "api/graphql/" -> "/api/graphql"
    """
    if value is None:
        return None
    cleaned = value.strip().strip("/")
    return f"/{cleaned}" if cleaned else "/"
