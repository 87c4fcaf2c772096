from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    broadcasted when the user asks to log out
    """

    bubble = True


class UserLoginMessage(Message):
    """
    Fired once a login or registration succeeded, so screens can refresh
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired by the cart key subscription after every settled cart fetch.
    Triggers a redraw of the cart screen.
    """

    bubble = True


class NewOrderMessage(Message):
    """
    Fired when the orders listing was refetched, e.g. after a checkout.
    Listened to by past orders and the admin dashboard.
    """

    bubble = True


class NavigateRequestedMessage(Message):
    """
    Posted by widgets that want to move to another client side path.
    Handled at app level, which runs it through the router.
    """

    bubble = True

    def __init__(self, path: str) -> None:
        super().__init__()
        self.path = path


class RouteChangedMessage(Message):
    """
    fired by the app after the router rendered a path
    """

    bubble = True

    def __init__(self, old_path: str | None, new_path: str) -> None:
        super().__init__()
        self.old_path = old_path
        self.new_path = new_path
