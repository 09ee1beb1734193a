"""
WSGI entry point for playerlink
"""
from dotenv import load_dotenv

load_dotenv()

from playerlink.factory import create_app  # noqa: E402

app = create_app()

# Gunicorn/uWSGI compatibility
application = app

if __name__ == "__main__":
    cfg = app.config["APP_CONFIG"]
    app.run(host=cfg.get("APP_HOST", "127.0.0.1"), port=int(cfg.get("APP_PORT", 5000)), debug=False)
