"""
REPL - Interactive shell for SchemaDB

Provides a command-line interface over the engine operations.
Every command is a dot-command; JSON arguments are taken verbatim
from the rest of the line.
"""

import argparse
import json
import logging
import os
import shlex
import sys
from typing import Any, Dict, List, Optional

from .core.errors import SchemaDBError
from .engine import DEFAULT_DATA_DIR, Engine


class CommandError(Exception):
    """Bad usage of a shell command"""


class REPL:
    """
    Interactive REPL (Read-Eval-Print Loop) for SchemaDB.

    Features:
    - One database selected at a time with .use
    - JSON rows, column specs and patches
    - Pretty-printed rows
    """

    BANNER = """
SchemaDB - JSON-backed tables with typed columns and foreign keys

Type .help for commands.
"""

    HELP = """
Databases:
  .databases                          List databases
  .create <db>                        Create a database
  .use <db>                           Select a database
  .drop <db>                          Delete a database
  .export [file]                      Print or save the current database
  .import <file> [name]               Import a database from a JSON file

Tables:
  .tables                             List tables in the current database
  .schema <table>                     Show columns of a table
  .table <table> <json-columns>       Create a table, e.g. .table Customers ["name"]
  .droptable <table>                  Delete a table

Rows:
  .rows <table>                       Show all rows
  .insert <table> <json-row>          Insert a row
  .update <table> <index> <json-row>  Replace the row at index
  .delete <table> <index>             Delete the row at index

Columns:
  .addcol <table> <json-spec>         Add a column
  .altercol <table> <col> <json>      Update column metadata
  .renamecol <table> <old> <new>      Rename a column
  .dropcol <table> <col>              Remove a column

  .help                               Show this help message
  .quit / .exit                       Exit the REPL
"""

    def __init__(self, data_dir: str = DEFAULT_DATA_DIR, engine: Optional[Engine] = None):
        """Initialize REPL with an engine."""
        self.engine = engine or Engine(data_dir)
        self.current: Optional[str] = None
        self.running = False

    def run(self) -> None:
        """Start the REPL loop."""
        self.running = True
        print(self.BANNER)

        while self.running:
            try:
                line = input(self._get_prompt())
            except KeyboardInterrupt:
                print("\n(Use .quit to exit)")
                continue
            except EOFError:
                print()
                self._quit()
                continue
            self.execute(line)

    def _get_prompt(self) -> str:
        return f"schemadb:{self.current}> " if self.current else "schemadb> "

    def execute(self, line: str) -> None:
        """Run one command line, printing the outcome or the error."""
        line = line.strip()
        if not line:
            return
        try:
            self._handle_command(line)
        except (CommandError, SchemaDBError, OSError) as e:
            print(f"Error: {e}")

    def _handle_command(self, line: str) -> None:
        """Dispatch a dot-command."""
        parts = line.split(None, 1)
        command = parts[0].lower()
        args = parts[1] if len(parts) > 1 else ''

        handlers = {
            '.help': lambda a: print(self.HELP),
            '.databases': self._show_databases,
            '.create': self._create_database,
            '.use': self._use,
            '.drop': self._drop_database,
            '.export': self._export,
            '.import': self._import,
            '.tables': self._show_tables,
            '.schema': self._show_schema,
            '.table': self._create_table,
            '.droptable': self._drop_table,
            '.rows': self._show_rows,
            '.insert': self._insert,
            '.update': self._update,
            '.delete': self._delete,
            '.addcol': self._add_column,
            '.altercol': self._alter_column,
            '.renamecol': self._rename_column,
            '.dropcol': self._drop_column,
        }

        if command in ('.quit', '.exit', '.q'):
            self._quit()
        elif command in handlers:
            handlers[command](args)
        else:
            print(f"Unknown command: {command}")
            print("Type .help for available commands.")

    def _quit(self) -> None:
        """Exit the REPL."""
        print("Goodbye!")
        self.running = False
        self.engine.close()

    # Argument helpers

    @staticmethod
    def _split(args: str, count: int, usage: str) -> List[str]:
        """Split args into exactly `count` parts; the last part keeps the rest of the line."""
        parts = args.split(None, count - 1)
        if len(parts) < count:
            raise CommandError(f"Usage: {usage}")
        return parts

    @staticmethod
    def _json(text: str, usage: str) -> Any:
        try:
            return json.loads(text)
        except ValueError:
            raise CommandError(f"Invalid JSON. Usage: {usage}") from None

    def _db(self) -> str:
        if not self.current:
            raise CommandError("No database selected (use .use <db>)")
        return self.current

    # Databases

    def _show_databases(self, args: str) -> None:
        names = self.engine.list_databases()
        if not names:
            print("No databases found.")
            return
        print("\nDatabases:")
        for name in names:
            marker = '*' if name == self.current else ' '
            print(f" {marker} {name}")
        print()

    def _create_database(self, args: str) -> None:
        (name,) = self._split(args, 1, ".create <db>")
        self.engine.create_database(name)
        self.current = name
        print(f"Database '{name}' created.")

    def _use(self, args: str) -> None:
        (name,) = self._split(args, 1, ".use <db>")
        if name not in self.engine.list_databases():
            raise CommandError(f"Database '{name}' not found")
        self.current = name

    def _drop_database(self, args: str) -> None:
        (name,) = self._split(args, 1, ".drop <db>")
        self.engine.delete_database(name)
        if self.current == name:
            self.current = None
        print(f"Database '{name}' deleted.")

    def _export(self, args: str) -> None:
        document = self.engine.export_database(self._db())
        text = json.dumps(document, indent=2, ensure_ascii=False)
        if not args.strip():
            print(text)
            return
        with open(args.strip(), 'w', encoding='utf-8') as f:
            f.write(text)
        print(f"Exported '{self.current}' to {args.strip()}")

    def _import(self, args: str) -> None:
        parts = shlex.split(args)
        if not parts:
            raise CommandError("Usage: .import <file> [name]")
        path = parts[0]
        try:
            with open(path, 'r', encoding='utf-8') as f:
                content = f.read()
        except OSError as e:
            raise CommandError(f"Cannot read {path}: {e}") from None
        name = self.engine.import_database(content, parts[1] if len(parts) > 1 else path)
        print(f"Imported as '{name}'.")

    # Tables

    def _show_tables(self, args: str) -> None:
        tables = self.engine.get_database(self._db())['tables']
        if not tables:
            print("No tables found.")
            return
        print("\nTables:")
        for name, table in tables.items():
            print(f"  {name} ({len(table.get('rows') or [])} rows)")
        print()

    def _show_schema(self, args: str) -> None:
        (table_name,) = self._split(args, 1, ".schema <table>")
        info = self.engine.describe_table(self._db(), table_name)
        print(f"\nTable: {info['name']}")
        print("-" * 60)
        for col in info['columns']:
            flags = []
            if col.get('pk'):
                flags.append('PRIMARY KEY')
            if col.get('nullable'):
                flags.append('NULL')
            if col.get('default') not in (None, ''):
                flags.append(f"DEFAULT {col['default']}")
            if col.get('fk'):
                fk = col['fk']
                flags.append(f"REFERENCES {fk['table']}({fk['column']}) ON DELETE {fk['onDelete'].upper()}")
            print(f"  {col['name']:20} {col['type']:10} {' '.join(flags)}")
        print(f"\n({info['row_count']} row(s))\n")

    def _create_table(self, args: str) -> None:
        usage = ".table <table> <json-columns>"
        parts = args.split(None, 1)
        if not parts:
            raise CommandError(f"Usage: {usage}")
        columns = self._json(parts[1], usage) if len(parts) > 1 else []
        if not isinstance(columns, list):
            raise CommandError(f"Columns must be a JSON list. Usage: {usage}")
        self.engine.create_table(self._db(), parts[0], columns)
        print(f"Table '{parts[0]}' created.")

    def _drop_table(self, args: str) -> None:
        (table_name,) = self._split(args, 1, ".droptable <table>")
        self.engine.delete_table(self._db(), table_name)
        print(f"Table '{table_name}' dropped.")

    # Rows

    def _show_rows(self, args: str) -> None:
        (table_name,) = self._split(args, 1, ".rows <table>")
        info = self.engine.describe_table(self._db(), table_name)
        rows = self.engine.query_rows(self._db(), table_name)
        self._print_rows([col['name'] for col in info['columns']], rows)

    def _insert(self, args: str) -> None:
        usage = ".insert <table> <json-row>"
        parts = args.split(None, 1)
        if not parts:
            raise CommandError(f"Usage: {usage}")
        row = self._json(parts[1], usage) if len(parts) > 1 else {}
        row = self.engine.insert_row(self._db(), parts[0], row)
        print(f"Inserted: {json.dumps(row)}")

    def _update(self, args: str) -> None:
        usage = ".update <table> <index> <json-row>"
        table_name, index, text = self._split(args, 3, usage)
        row = self.engine.update_row(self._db(), table_name, index, self._json(text, usage))
        print(f"Updated: {json.dumps(row)}")

    def _delete(self, args: str) -> None:
        table_name, index = self._split(args, 2, ".delete <table> <index>")
        removed = self.engine.delete_row(self._db(), table_name, index)
        print(f"({removed} row(s) deleted)")

    # Columns

    def _add_column(self, args: str) -> None:
        usage = ".addcol <table> <json-spec>"
        table_name, text = self._split(args, 2, usage)
        spec = self._json(text, usage)
        self.engine.add_column(self._db(), table_name, spec)
        print("Column added.")

    def _alter_column(self, args: str) -> None:
        usage = ".altercol <table> <col> <json-patch>"
        table_name, column, text = self._split(args, 3, usage)
        self.engine.update_column(self._db(), table_name, column, self._json(text, usage))
        print("Column updated.")

    def _rename_column(self, args: str) -> None:
        table_name, old_name, new_name = self._split(args, 3, ".renamecol <table> <old> <new>")
        self.engine.rename_column(self._db(), table_name, old_name, new_name.strip())
        print("Column renamed.")

    def _drop_column(self, args: str) -> None:
        table_name, column = self._split(args, 2, ".dropcol <table> <col>")
        self.engine.remove_column(self._db(), table_name, column.strip())
        print("Column removed.")

    def _print_rows(self, columns: List[str], rows: List[Dict[str, Any]]) -> None:
        """Pretty-print rows as a table, with the row index first."""
        if not rows:
            print("(0 rows)")
            return

        headers = ['#'] + columns
        cells = []
        for idx, row in enumerate(rows):
            values = [str(idx)]
            for col in columns:
                val = row.get(col)
                values.append('NULL' if val is None else str(val))
            cells.append(values)

        # Limit column width for readability
        max_width = 40
        widths = [min(max([len(h)] + [len(r[i]) for r in cells]), max_width)
                  for i, h in enumerate(headers)]

        print()
        print(" | ".join(h.ljust(w)[:w] for h, w in zip(headers, widths)))
        print("-+-".join("-" * w for w in widths))
        for values in cells:
            print(" | ".join(v.ljust(w)[:w] for v, w in zip(values, widths)))
        print(f"\n({len(rows)} row(s))")


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the shell and the HTTP server."""
    parser = argparse.ArgumentParser(
        description="SchemaDB - JSON-backed tables with typed columns and foreign keys"
    )
    parser.add_argument(
        '-d', '--data-dir',
        default=os.environ.get('SCHEMADB_DATA_DIR', DEFAULT_DATA_DIR),
        help=f'Directory to store database files (default: {DEFAULT_DATA_DIR})'
    )
    parser.add_argument(
        '--log-level',
        default=os.environ.get('SCHEMADB_LOG_LEVEL', 'WARNING'),
        help='Logging level (default: WARNING)'
    )
    parser.add_argument(
        '-e', '--execute',
        action='append',
        help='Run a shell command and exit (repeatable)'
    )
    subparsers = parser.add_subparsers(dest='command')
    serve = subparsers.add_parser('serve', help='Run the HTTP API')
    serve.add_argument('--host', default=os.environ.get('SCHEMADB_HOST', '127.0.0.1'))
    serve.add_argument('--port', type=int, default=int(os.environ.get('SCHEMADB_PORT', '3000')))

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    if args.command == 'serve':
        from .web.app import create_app

        app = create_app(Engine(args.data_dir))
        print(f"Server listening on http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port)
        return

    repl = REPL(args.data_dir)

    if args.execute:
        for command in args.execute:
            try:
                repl._handle_command(command.strip())
            except (CommandError, SchemaDBError, OSError) as e:
                print(f"Error: {e}", file=sys.stderr)
                sys.exit(1)
        return

    # Start interactive REPL
    repl.run()


if __name__ == '__main__':
    main()
