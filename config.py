import os


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'your-secret-key')
    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', 3000))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Socket.IO
    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '*')
    ENGINEIO_LOGGER = _env_bool('ENGINEIO_LOGGER', False)
    PING_TIMEOUT = int(os.environ.get('PING_TIMEOUT', 60))
    PING_INTERVAL = int(os.environ.get('PING_INTERVAL', 25))

    # 'ordered' resolves every contact from both sides, 'unordered' once per pair
    COLLISION_MODE = os.environ.get('COLLISION_MODE', 'ordered')
