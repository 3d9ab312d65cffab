"""Attribution helpers shared by both relays.

Keeping formatting here prevents drift between the two directions and keeps
relayed messages consistent regardless of which side they came from.
"""

from __future__ import annotations


def matrix_localpart(user_id: str) -> str:
    """Return the local display handle of a Matrix user id (``@alice:hs`` -> ``alice``)."""

    return user_id.split(":", 1)[0].lstrip("@")


def format_text(sender_name: str, body: str) -> str:
    return f"{sender_name}: {body}"


def format_caption(sender_name: str, caption: str) -> str:
    return f"(from {sender_name}\n{caption})"
