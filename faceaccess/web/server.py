# faceaccess/web/server.py
"""
Flask web server for remote management over WiFi.
Access: http://<device-ip>:5000
"""
import socket
import logging

from flask import Flask, jsonify

from .management import init_management, register_management_routes

logger = logging.getLogger(__name__)


def create_app(service=None):
    """Flask app with the management routes; `service` is attached if given."""
    app = Flask(__name__)
    register_management_routes(app)
    if service is not None:
        init_management(service)

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    return app


app = create_app()


def get_local_ip():
    """Local IP address used for outgoing traffic."""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            s.connect(("8.8.8.8", 80))
            return s.getsockname()[0]
        finally:
            s.close()
    except OSError:
        return "localhost"


def setup_management(service):
    """Attach the verification service to the shared app."""
    init_management(service)


def run_server(host='0.0.0.0', port=5000):
    """Run the web server (blocking)."""
    local_ip = get_local_ip()
    logger.info(f"Web management running: http://{local_ip}:{port} "
                f"(local: http://localhost:{port})")
    app.run(host=host, port=port, debug=False, threaded=True)
