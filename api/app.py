"""
Flask API for widget visual QA
"""
from flask import Flask, jsonify
from flask_cors import CORS
import logging
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from api.routes import bp as api_bp


def create_app(config=None):
    """Create and configure Flask app"""

    # Get project root
    project_root = Path(__file__).parent.parent

    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = os.getenv('FLASK_SECRET_KEY', 'dev-secret-key')
    app.config['PROJECT_ROOT'] = project_root
    if config:
        app.config.update(config)

    # CORS
    CORS(app)

    # Register blueprints
    app.register_blueprint(api_bp, url_prefix='/api')

    @app.route('/')
    def index():
        return jsonify({'service': 'widget-qa', 'health': '/api/health'})

    return app


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    app = create_app()
    print('\n' + '='*60)
    print('🚀 Widget QA API')
    print('='*60)
    print(f'API: http://0.0.0.0:5000/api/health')
    print('='*60 + '\n')
    app.run(host='0.0.0.0', port=5000, debug=True)
