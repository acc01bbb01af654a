#!/usr/bin/env python3
"""
SchemaDB entry point

Run the shell:
    python -m schemadb

Run the HTTP API:
    python -m schemadb serve --port 3000

Or use as a library:
    from schemadb import Engine
    engine = Engine("./data")
    engine.create_database("shop")
"""

from schemadb.repl import main

if __name__ == '__main__':
    main()
