import re
from urllib.parse import urlsplit

MYSHOPIFY_SUFFIX = ".myshopify.com"
_SHOP_DOMAIN_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*\.myshopify\.com$")


def normalize_shop_domain(value: str) -> str:
    """Lower-case a shop reference and strip scheme, path and port.

    Returns an empty string when the value is not a ``*.myshopify.com`` domain.
    """
    if not value:
        return ""

    value = value.strip().lower()
    if "://" in value:
        value = urlsplit(value).hostname or ""
    value = value.split("/")[0].split(":")[0].strip(".")

    if not _SHOP_DOMAIN_PATTERN.match(value):
        return ""
    return value


def shop_name_from_domain(shop_domain: str) -> str:
    return shop_domain.replace(MYSHOPIFY_SUFFIX, "")
