from __future__ import annotations

import urllib.parse


def normalize_target_url(target: str) -> str:
    """
    Normalize user input into a full URL, keeping path and query.

    Accepts:
      - http://host:port/path
      - host:port/path
      - 127.0.0.1:8080/foo
    """
    t = (target or "").strip()
    if not t:
        raise ValueError("target is empty")

    # "127.0.0.1:8080" parses as a scheme unless prefixed
    if not t.lower().startswith(("http://", "https://")):
        t = "http://" + t

    p = urllib.parse.urlparse(t)
    if not p.hostname:
        raise ValueError(f"invalid target: {t}")

    return urllib.parse.urlunparse((p.scheme.lower(), p.netloc, p.path or "/", p.params, p.query, ""))
