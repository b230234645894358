"""Session-backed cart persistence.

The session is treated as a key-value collaborator: the cart is read, written
and deleted under a single key and nothing else in the session is touched.
"""

from importlib import import_module

from django.conf import settings

from .models import Cart

CART_SESSION_KEY = "cart"


class SessionCartStore:
    """Load and save a ``Cart`` inside a Django session (or any dict-like)."""

    def __init__(self, session, key: str = CART_SESSION_KEY):
        if session is None:
            raise ValueError("A session is required to store the cart")
        self.session = session
        self.key = key

    def load(self) -> Cart:
        return Cart.from_dict(self.session.get(self.key))

    def save(self, cart: Cart) -> Cart:
        self.session[self.key] = cart.to_dict()
        # Nested dict mutation is not detected by Django sessions
        if hasattr(self.session, "modified"):
            self.session.modified = True
        return cart

    def delete(self) -> None:
        if self.key in self.session:
            del self.session[self.key]


def clear_cart_for_session_key(session_key: str | None) -> bool:
    """Remove the cart from a stored session outside of a request.

    Used when a payment is approved by a server-to-server callback. Returns
    True when a session was found and updated.
    """

    if not session_key:
        return False
    engine = import_module(settings.SESSION_ENGINE)
    session = engine.SessionStore(session_key=session_key)
    if not session.exists(session_key):
        return False
    SessionCartStore(session).delete()
    session.save()
    return True
