"""
HTTP API - JSON routes over the engine operations

Every route is a thin wrapper: parse the request, call one engine
operation, return JSON. Engine errors become {"error": message} with
status 404 for missing things and 400 for everything else.

Run:
    python -m schemadb serve --port 3000
"""

import logging
import os
from typing import Optional

from flask import Flask, jsonify, request

from ..core.errors import NotFoundError, SchemaDBError, SchemaError
from ..engine import DEFAULT_DATA_DIR, Engine

logger = logging.getLogger(__name__)


def _json_body(default=None) -> dict:
    body = request.get_json(silent=True)
    if body is None and default is not None:
        return default
    if not isinstance(body, dict):
        raise SchemaError("Request body must be a JSON object")
    return body


def create_app(engine: Optional[Engine] = None) -> Flask:
    """Build the Flask application around an engine."""
    app = Flask(__name__)
    # Documents and rows keep their stored key order.
    app.json.sort_keys = False
    if engine is None:
        engine = Engine(os.environ.get('SCHEMADB_DATA_DIR', DEFAULT_DATA_DIR))
    app.config['ENGINE'] = engine

    @app.errorhandler(SchemaDBError)
    def handle_engine_error(error):
        status = 404 if isinstance(error, NotFoundError) else 400
        logger.info("API error (%d): %s", status, error)
        return jsonify({'error': str(error)}), status

    # Databases

    @app.route('/api/dbs', methods=['GET'])
    def list_databases():
        return jsonify(engine.list_databases())

    @app.route('/api/dbs', methods=['POST'])
    def create_database():
        name = _json_body({}).get('name')
        if not name:
            raise SchemaError("Missing name")
        engine.create_database(name)
        return jsonify({'ok': True})

    @app.route('/api/dbs/import', methods=['POST'])
    def import_database():
        body = _json_body()
        file_name, content = body.get('fileName'), body.get('fileContent')
        if not file_name or not content:
            raise SchemaError("Missing fileName or fileContent")
        name = engine.import_database(content, file_name)
        return jsonify({'ok': True, 'name': name})

    @app.route('/api/dbs/<db_name>', methods=['GET'])
    def get_database(db_name):
        return jsonify(engine.get_database(db_name))

    @app.route('/api/dbs/<db_name>', methods=['DELETE'])
    def delete_database(db_name):
        engine.delete_database(db_name)
        return jsonify({'ok': True})

    @app.route('/api/dbs/<db_name>/export', methods=['GET'])
    def export_database(db_name):
        return jsonify(engine.export_database(db_name))

    @app.route('/api/dbs/<db_name>/save-positions', methods=['POST'])
    def save_positions(db_name):
        engine.save_positions(db_name, _json_body())
        return jsonify({'ok': True})

    # Tables

    @app.route('/api/dbs/<db_name>/tables', methods=['POST'])
    def create_table(db_name):
        body = _json_body()
        table_name = body.get('tableName')
        if not table_name:
            raise SchemaError("Missing table name")
        engine.create_table(db_name, table_name, body.get('columns') or [])
        return jsonify({'ok': True})

    @app.route('/api/dbs/<db_name>/tables/<table_name>', methods=['GET'])
    def describe_table(db_name, table_name):
        return jsonify(engine.describe_table(db_name, table_name))

    @app.route('/api/dbs/<db_name>/tables/<table_name>', methods=['DELETE'])
    def delete_table(db_name, table_name):
        engine.delete_table(db_name, table_name)
        return jsonify({'ok': True})

    # Rows

    @app.route('/api/dbs/<db_name>/tables/<table_name>/rows', methods=['GET'])
    def query_rows(db_name, table_name):
        return jsonify(engine.query_rows(db_name, table_name))

    @app.route('/api/dbs/<db_name>/tables/<table_name>/rows', methods=['POST'])
    def insert_row(db_name, table_name):
        row = engine.insert_row(db_name, table_name, _json_body())
        return jsonify({'ok': True, 'row': row})

    @app.route('/api/dbs/<db_name>/tables/<table_name>/rows/<index>', methods=['PUT'])
    def update_row(db_name, table_name, index):
        row = engine.update_row(db_name, table_name, index, _json_body())
        return jsonify({'ok': True, 'row': row})

    @app.route('/api/dbs/<db_name>/tables/<table_name>/rows/<index>', methods=['DELETE'])
    def delete_row(db_name, table_name, index):
        removed = engine.delete_row(db_name, table_name, index)
        return jsonify({'ok': True, 'removed': removed})

    # Columns

    @app.route('/api/dbs/<db_name>/tables/<table_name>/columns', methods=['POST'])
    def add_column(db_name, table_name):
        engine.add_column(db_name, table_name, _json_body())
        return jsonify({'ok': True})

    @app.route('/api/dbs/<db_name>/tables/<table_name>/columns/<column_name>', methods=['PUT'])
    def update_column(db_name, table_name, column_name):
        engine.update_column(db_name, table_name, column_name, _json_body())
        return jsonify({'ok': True})

    @app.route('/api/dbs/<db_name>/tables/<table_name>/columns/<column_name>/rename',
               methods=['POST'])
    def rename_column(db_name, table_name, column_name):
        new_name = _json_body({}).get('newName')
        engine.rename_column(db_name, table_name, column_name, new_name)
        return jsonify({'ok': True})

    @app.route('/api/dbs/<db_name>/tables/<table_name>/columns/<column_name>', methods=['DELETE'])
    def remove_column(db_name, table_name, column_name):
        engine.remove_column(db_name, table_name, column_name)
        return jsonify({'ok': True})

    return app
