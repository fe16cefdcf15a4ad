from scoreboard import socketio

NAMESPACE = '/ws'


def game_room(game_id) -> str:
    return f"game:{game_id}"


def owner_room(owner_id) -> str:
    return f"owner:{owner_id}"


class Broadcaster:
    """Fans events out to Socket.IO rooms. Safe to call from background tasks."""

    def __init__(self, namespace: str = NAMESPACE):
        self.namespace = namespace

    def to_game(self, game_id, event: str, payload) -> None:
        socketio.emit(event, payload, to=game_room(game_id), namespace=self.namespace)

    def to_owner(self, owner_id, event: str, payload) -> None:
        socketio.emit(event, payload, to=owner_room(owner_id), namespace=self.namespace)
