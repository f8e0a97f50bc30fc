import logging

from flask import Flask, request
from flask_socketio import SocketIO, emit

from config import Config
from handlers import ArenaServer, Command
from registry import RoomRegistry

logger = logging.getLogger(__name__)


class SocketIOTransport:
    def __init__(self, socketio, namespace='/'):
        self.socketio = socketio
        self.namespace = namespace

    def emit(self, event, data=None, to=None):
        if data is None:
            self.socketio.emit(event, to=to, namespace=self.namespace)
        else:
            self.socketio.emit(event, data, to=to, namespace=self.namespace)

    def enter_room(self, sid, code):
        self.socketio.server.enter_room(sid, code, namespace=self.namespace)

    def leave_room(self, sid, code):
        self.socketio.server.leave_room(sid, code, namespace=self.namespace)


def register_handlers(socketio, arena):
    def bind(command):
        def handler(data=None):
            arena.dispatch(command, request.sid, data)
        handler.__name__ = f'handle_{command.name.lower()}'
        return handler

    for command in Command:
        socketio.on_event(command.value, bind(command))

    @socketio.on('connect')
    def handle_connect(auth=None):
        logger.info('Client connected: %s', request.sid)
        emit('connected', {'sid': request.sid})


def create_app(config=None, scheduler=None, registry=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    socketio = SocketIO(
        app,
        cors_allowed_origins=app.config['CORS_ALLOWED_ORIGINS'],
        engineio_logger=app.config['ENGINEIO_LOGGER'],
        ping_timeout=app.config['PING_TIMEOUT'],
        ping_interval=app.config['PING_INTERVAL'],
    )
    arena = ArenaServer(
        registry if registry is not None else RoomRegistry(),
        SocketIOTransport(socketio),
        scheduler if scheduler is not None else socketio,
        collision_mode=app.config['COLLISION_MODE'],
    )
    app.extensions['arena'] = arena
    register_handlers(socketio, arena)
    return app, socketio


def main():
    logging.basicConfig(
        level=Config.LOG_LEVEL,
        format='[%(asctime)s] %(levelname)s %(name)s: %(message)s',
    )
    app, socketio = create_app()
    logger.info('Server on port %s', app.config['PORT'])
    socketio.run(app, host=app.config['HOST'], port=app.config['PORT'], allow_unsafe_werkzeug=True)


if __name__ == '__main__':
    main()
