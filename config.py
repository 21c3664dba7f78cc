import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma separated list of browser origins allowed to connect
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000')
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    SOCKET_HOST = os.environ.get('SOCKET_HOST', '0.0.0.0')
    SOCKET_PORT = int(os.environ.get('SOCKET_PORT', '3001'))
    # Room lifecycle timers (seconds)
    ROOM_CLEANUP_DELAY_SEC = float(os.environ.get('ROOM_CLEANUP_DELAY_SEC', '5'))
    RECONNECT_GRACE_SEC = float(os.environ.get('RECONNECT_GRACE_SEC', '30'))
    STALE_ROOM_MAX_AGE_SEC = float(os.environ.get('STALE_ROOM_MAX_AGE_SEC', '3600'))
    STALE_SWEEP_INTERVAL_SEC = float(os.environ.get('STALE_SWEEP_INTERVAL_SEC', '60'))
    # HP given to slots without a locked bird (reconstructed rooms)
    DEFAULT_PLAYER_HP = int(os.environ.get('DEFAULT_PLAYER_HP', '100'))
    MAX_NAME_LENGTH = int(os.environ.get('MAX_NAME_LENGTH', '32'))
