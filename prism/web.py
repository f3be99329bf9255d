# prism/web.py
# Created: 2026-10-16
# Purpose: Flask JSON API for framework listing, question generation and refinement

import asyncio
import logging
from typing import Optional

from flask import Flask, jsonify, request

from prism.errors import DataLoadError, InsufficientFrameworks, NoQuestionsGenerated
from prism.framework_data import FrameworkRepository
from prism.llm_layer import ServiceError
from prism.merge_agent.question_merger import QuestionMergeService
from prism.merge_agent.question_pipeline import MergePipeline


logger = logging.getLogger(__name__)


def create_app(
    pipeline: Optional[MergePipeline] = None,
    repository: Optional[FrameworkRepository] = None,
) -> Flask:
    # Routes log through the prism logger tree configured by setup_logging()
    app = Flask(__name__)

    if pipeline is None:
        pipeline = MergePipeline(repository=repository)
    repository = repository or pipeline.repository
    service: QuestionMergeService = pipeline.service

    app.config['PIPELINE'] = pipeline

    @app.route('/api/frameworks', methods=['GET'])
    def list_frameworks():
        try:
            frameworks = repository.load_frameworks()
        except DataLoadError as e:
            logger.error(f"Framework listing failed: {e}")
            return jsonify({"error": str(e)}), 503
        return jsonify({"frameworks": [f.to_dict() for f in frameworks]})

    @app.route('/api/questions/generate', methods=['POST'])
    def generate():
        data = request.get_json(silent=True) or {}
        logger.debug(f"Received generate request: {data}")

        count = data.get('count', 5)
        frameworks = data.get('frameworks') or []
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            return jsonify({"error": "count must be a non-negative integer"}), 400
        if not isinstance(frameworks, list):
            return jsonify({"error": "frameworks must be a list of names"}), 400

        try:
            questions = asyncio.run(pipeline.generate_questions_from_frameworks(count, frameworks))
        except InsufficientFrameworks as e:
            return jsonify({"error": str(e)}), 400
        except NoQuestionsGenerated as e:
            return jsonify({"error": str(e)}), 422
        except DataLoadError as e:
            logger.error(f"Framework data unavailable: {e}")
            return jsonify({"error": str(e)}), 503
        except Exception as e:
            logger.error(f"An error occurred during generation: {str(e)}", exc_info=True)
            return jsonify({"error": "An internal error occurred"}), 500

        return jsonify({"questions": [q.to_dict() for q in questions]})

    @app.route('/api/questions/refine', methods=['POST'])
    def refine():
        data = request.get_json(silent=True) or {}
        text = data.get('text')
        if not isinstance(text, str) or not text.strip():
            return jsonify({"error": "text is required"}), 400

        try:
            refined = service.refine_question(text)
        except ServiceError as e:
            logger.error(f"Refinement failed: {e}")
            return jsonify({"error": str(e)}), 502
        return jsonify({"text": refined})

    @app.route('/api/llm/test', methods=['GET'])
    def test_llm():
        return jsonify(service.check_connection())

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    return app


if __name__ == '__main__':
    from prism.log_config import setup_logging

    setup_logging()
    create_app().run(debug=False, port=5000)
