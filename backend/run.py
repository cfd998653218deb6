import os

from debate import create_app, socketio

app = create_app()

if __name__ == '__main__':
    port = int(os.environ.get('PORT', '3000'))
    app.logger.info(f"[server-start] port={port} topics={len(app.extensions['debate'].engine.topics)}")
    # SocketIO's server so websockets work in dev
    socketio.run(app, host='0.0.0.0', port=port, debug=os.environ.get('FLASK_DEBUG') == '1')
