from __future__ import annotations


def can_access_order(order, *, user=None, session_token: str = "") -> bool:
    """Admins see every order, users their own, guests need the order's session token."""
    if user is not None and getattr(user, "is_authenticated", False):
        if getattr(user, "is_staff", False):
            return True
        if order.user_id is not None:
            return order.user_id == user.id
    if order.user_id is None:
        token = (session_token or "").strip()
        return bool(token) and token == (order.session_token or "")
    return False
