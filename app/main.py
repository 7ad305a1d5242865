import sys
from pathlib import Path

# Import configuration management
sys.path.append(str(Path(__file__).parent.parent))
from config_manager import ConfigManager

from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from recommendation_service.logging_config import setup_logging
from recommendation_service.repository import JsonFileRepository

app = Flask(__name__)
app.wsgi_app = ProxyFix(
        app.wsgi_app,
        x_for   = 1,     # trust 1 hop for X-Forwarded-For (rate limit keys)
        x_proto = 1,     # trust 1 hop for X-Forwarded-Proto
        x_host  = 1,     # trust 1 hop for X-Forwarded-Host
        x_prefix= 1)     # trust 1 hop for X-Forwarded-Prefix

# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

config_manager = ConfigManager()
paths_config = config_manager.get_paths_config()
app_config = config_manager.get_app_config()
engine_config = config_manager.get_engine_config()
rate_limit_config = config_manager.get_rate_limit_config()

setup_logging(debug=app_config.debug)

DATA_DIR = Path(__file__).parent.parent / paths_config.data_dir
DATA_DIR.mkdir(exist_ok=True)

# -----------------------------------------------------------------------------
# Modules
# -----------------------------------------------------------------------------

from app.recommendations.factory import create_recommendations_module

recommendations_module = create_recommendations_module(
    repository=JsonFileRepository(DATA_DIR),
    engine_config=engine_config,
    rate_limit_config=rate_limit_config,
)

app.register_blueprint(recommendations_module["blueprint"])


@app.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"})


if __name__ == "__main__":
    app.run(host=app_config.host, port=app_config.port, debug=app_config.debug)
