#!/usr/bin/env python3
"""
Tests for the SchemaDB HTTP API (Flask test client)
"""

import json
import shutil
import tempfile
import unittest

from schemadb import Engine
from schemadb.web import create_app


class TestAPI(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.engine = Engine(self.test_dir)
        self.app = create_app(self.engine)
        self.app.testing = True
        self.client = self.app.test_client()

    def tearDown(self):
        self.engine.close()
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def make_shop(self):
        self.assertEqual(self.client.post('/api/dbs', json={'name': 'shop'}).status_code, 200)
        resp = self.client.post('/api/dbs/shop/tables',
                                json={'tableName': 'Customers', 'columns': ['name']})
        self.assertEqual(resp.get_json(), {'ok': True})

    def test_databases(self):
        self.make_shop()
        self.assertEqual(self.client.get('/api/dbs').get_json(), ['shop'])

        resp = self.client.post('/api/dbs', json={'name': 'shop'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('already exists', resp.get_json()['error'])

        self.assertEqual(self.client.delete('/api/dbs/shop').get_json(), {'ok': True})
        self.assertEqual(self.client.delete('/api/dbs/shop').status_code, 404)

    def test_unknown_database_reads_empty(self):
        self.assertEqual(self.client.get('/api/dbs/nope').get_json(), {'tables': {}})
        self.assertEqual(self.client.get('/api/dbs/nope/export').status_code, 404)

    def test_rows(self):
        self.make_shop()
        resp = self.client.post('/api/dbs/shop/tables/Customers/rows', json={'name': 'Ann'})
        self.assertEqual(resp.get_json(),
                         {'ok': True, 'row': {'CustomersId': 1, 'name': 'Ann'}})

        resp = self.client.put('/api/dbs/shop/tables/Customers/rows/0',
                               json={'CustomersId': 1, 'name': 'Ann B'})
        self.assertEqual(resp.get_json()['row']['name'], 'Ann B')

        rows = self.client.get('/api/dbs/shop/tables/Customers/rows').get_json()
        self.assertEqual(rows, [{'CustomersId': 1, 'name': 'Ann B'}])

        self.assertEqual(self.client.delete('/api/dbs/shop/tables/Customers/rows/5').status_code, 404)
        resp = self.client.delete('/api/dbs/shop/tables/Customers/rows/0')
        self.assertEqual(resp.get_json(), {'ok': True, 'removed': 1})

    def test_validation_errors_are_bad_requests(self):
        self.make_shop()
        resp = self.client.post('/api/dbs/shop/tables/Customers/rows', json={'bogus': 1})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('bogus', resp.get_json()['error'])

        resp = self.client.post('/api/dbs/shop/tables/Customers/rows',
                                data='[1, 2]', content_type='application/json')
        self.assertEqual(resp.status_code, 400)

        resp = self.client.post('/api/dbs/shop/tables', json={'columns': []})
        self.assertEqual(resp.status_code, 400)

    def test_missing_table_is_not_found(self):
        self.make_shop()
        resp = self.client.get('/api/dbs/shop/tables/Nope')
        self.assertEqual(resp.status_code, 404)
        self.assertIn('error', resp.get_json())

    def test_foreign_key_violation(self):
        self.make_shop()
        self.client.post('/api/dbs/shop/tables', json={
            'tableName': 'Orders',
            'columns': [{'name': 'CustomerId', 'type': 'integer',
                         'fk': {'table': 'Customers', 'column': 'CustomersId'}}],
        })
        resp = self.client.post('/api/dbs/shop/tables/Orders/rows', json={'CustomerId': 9})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('Foreign key constraint failed', resp.get_json()['error'])

    def test_columns(self):
        self.make_shop()
        base = '/api/dbs/shop/tables/Customers/columns'
        self.assertEqual(self.client.post(base, json={'name': 'email'}).get_json(), {'ok': True})
        self.assertEqual(self.client.put(base + '/email', json={'nullable': True}).status_code, 200)
        self.assertEqual(
            self.client.post(base + '/email/rename', json={'newName': 'mail'}).status_code, 200)
        self.assertEqual(
            self.client.post(base + '/CustomersId/rename', json={'newName': 'Key'}).status_code, 400)
        self.assertEqual(self.client.delete(base + '/mail').status_code, 200)

        info = self.client.get('/api/dbs/shop/tables/Customers').get_json()
        self.assertEqual([c['name'] for c in info['columns']], ['CustomersId', 'name'])
        self.assertEqual(info['row_count'], 0)

    def test_import_export_and_positions(self):
        self.make_shop()
        self.assertEqual(
            self.client.post('/api/dbs/shop/save-positions',
                             json={'Customers': {'x': 1, 'y': 2}}).get_json(),
            {'ok': True})
        exported = self.client.get('/api/dbs/shop/export').get_json()
        self.assertEqual(exported['positions'], {'Customers': {'x': 1, 'y': 2}})

        resp = self.client.post('/api/dbs/import', json={
            'fileName': 'shop.json', 'fileContent': json.dumps(exported)})
        self.assertEqual(resp.get_json(), {'ok': True, 'name': 'shop_1'})

        resp = self.client.post('/api/dbs/import', json={
            'fileName': 'bad.json', 'fileContent': '{oops'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json(), {'error': 'Invalid JSON file'})

    def test_delete_table(self):
        self.make_shop()
        self.assertEqual(self.client.delete('/api/dbs/shop/tables/Customers').status_code, 200)
        self.assertEqual(self.client.get('/api/dbs/shop/tables/Customers/rows').status_code, 404)


if __name__ == '__main__':
    unittest.main(verbosity=2)
