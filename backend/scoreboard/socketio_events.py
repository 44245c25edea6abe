from flask_socketio import join_room, leave_room, emit
from scoreboard import socketio


def _rating_room(data):
    rating_id = (data or {}).get('rating_id')
    if isinstance(rating_id, bool):
        return None
    try:
        return f"rating:{int(rating_id)}"
    except (TypeError, ValueError):
        return None


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_rating(data):
    # Subscribers receive 'rating_results_updated' after every committed recompute
    room = _rating_room(data)
    if not room:
        emit('error', {'message': 'rating_id is required'})
        return
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_rating(data):
    room = _rating_room(data)
    if not room:
        emit('error', {'message': 'rating_id is required'})
        return
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('join_rating', handle_join_rating, namespace='/ws')
    socketio.on_event('leave_rating', handle_leave_rating, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('join_rating', handle_join_rating, namespace='/')
        socketio.on_event('leave_rating', handle_leave_rating, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
