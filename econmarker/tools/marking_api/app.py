"""Flask web application exposing essay marking and sentence rewriting."""

import argparse
import logging
import sys
from typing import Any, Dict, Tuple

from flask import Flask, jsonify, request
from flask_cors import CORS

from econmarker.errors import MarkingError, RequestValidationError
from econmarker.libs.config_loader import get_config, load_default_configs
from econmarker.tools.essay_marking.marker import EssayMarker, create_essay_marker

LOG = logging.getLogger(__name__)


def _error_response(error: MarkingError) -> Tuple[Any, int]:
    """Terse message for the client; full detail stays in the logs."""
    if isinstance(error, RequestValidationError):
        LOG.info("Rejected request: %s", error)
    else:
        LOG.error("%s: %s", type(error).__name__, error)
        raw_preview = getattr(error, "raw_preview", None)
        if raw_preview:
            LOG.error("Raw model output preview: %s", raw_preview)
    return jsonify({
        'success': False,
        'error': error.user_message
    }), error.status_code


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise RequestValidationError("Request body must be a JSON object")
    return body


def create_app(marker: EssayMarker) -> Flask:
    """
    Create and configure the Flask app.

    Args:
        marker: EssayMarker that serves every request
    """
    app = Flask(__name__)
    CORS(app)

    @app.errorhandler(MarkingError)
    def handle_marking_error(error: MarkingError):
        return _error_response(error)

    @app.route('/api/health', methods=['GET'])
    def health():
        return jsonify({'success': True})

    @app.route('/api/mark-essay', methods=['POST'])
    def mark_essay():
        """Mark an essay and return the full marking result."""
        body = _json_body()
        result = marker.mark_essay(
            body.get('question'),
            body.get('marks'),
            body.get('essay'),
            body.get('extractText'),
        )
        LOG.info("Marked essay: %g/%d", result.overall_mark, result.total_marks)
        return jsonify({
            'success': True,
            'result': result.to_dict()
        })

    @app.route('/api/rewrite-sentence', methods=['POST'])
    def rewrite_sentence():
        """Rewrite one weak sentence."""
        body = _json_body()
        rewrite = marker.rewrite_sentence(
            body.get('sentence'),
            body.get('question'),
            context=body.get('context'),
            role=body.get('role'),
            marks=body.get('marks'),
        )
        return jsonify({
            'success': True,
            'result': rewrite.model_dump(mode="json", by_alias=True)
        })

    LOG.info("Flask app created and configured")
    return app


def run_server(app: Flask, host: str = '127.0.0.1', port: int = 5000, debug: bool = False):
    """
    Run the Flask development server.

    Args:
        app: Application from create_app
        host: Host to bind to
        port: Port to bind to
        debug: Whether to run in debug mode
    """
    app.run(host=host, port=port, debug=debug)


def main():
    """Main entry point for marking-server command."""
    parser = argparse.ArgumentParser(description='Serve the essay marking API')
    parser.add_argument('--host', type=str, default=None, help='Host to bind to (overrides config value)')
    parser.add_argument('--port', '-p', type=int, default=None, help='Port to bind to (overrides config value)')
    parser.add_argument('--model', '-m', type=str, default=None,
                        help='OpenAI model to use (overrides config value)')
    parser.add_argument('--debug', action='store_true', help='Run Flask in debug mode')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = load_default_configs()
        marker = create_essay_marker(config, model=args.model)
    except Exception as e:
        LOG.error(f"Failed to start marking server: {e}")
        sys.exit(1)

    run_server(
        create_app(marker),
        host=args.host or get_config("server.host", config, default='127.0.0.1'),
        port=args.port or int(get_config("server.port", config, default=5000)),
        debug=args.debug,
    )


if __name__ == "__main__":
    main()
