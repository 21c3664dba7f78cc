from birdbattle import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Use SocketIO server to enable websockets in dev
    socketio.run(app, host=app.config['SOCKET_HOST'], port=app.config['SOCKET_PORT'],
                 allow_unsafe_werkzeug=True)
