"""Sample driver: connect, inspect, and run a users transaction.

Exit status is 0 on success and 1 on connection failure, connection-test
failure or any transaction failure.
"""
import argparse
import logging
import os
import sys

from pgclient.connection import Connection
from pgclient.display import print_result
from pgclient.exceptions import DatabaseError
from pgclient.query import Query, execute_query, get_database_info
from pgclient.query import test_connection
from pgclient.transaction import Transaction

logger = logging.getLogger('pgclient')

DEFAULT_CONNINFO = 'host=localhost port=5432 dbname=avr user=avr password=1'

CREATE_USERS = (
    'CREATE TABLE IF NOT EXISTS users ('
    'id SERIAL PRIMARY KEY, '
    'name VARCHAR(100) NOT NULL, '
    'email VARCHAR(100) UNIQUE NOT NULL, '
    'age INTEGER)'
)
INSERT_USER = 'INSERT INTO users (name, email, age) VALUES ($1, $2, $3)'
SAMPLE_USERS = [
    ('John Doe', 'john@example.com', '30'),
    ('Jane Smith', 'jane@example.com', '25'),
]


def run_users_demo(cn: Connection) -> None:
    """Create and fill the users table in one transaction, then report.
    """
    query = Query(cn)
    with Transaction(cn) as tx:
        if not query.execute_command(CREATE_USERS):
            raise DatabaseError('Failed to create table')
        for user in SAMPLE_USERS:
            tx.execute(INSERT_USER, *user)

        print('All users:')
        print_result(execute_query(cn, 'SELECT id, name, email, age FROM users ORDER BY id'))
        print(f"Total users: {query.execute_int('SELECT COUNT(*) FROM users')}")
    print('Transaction committed successfully!')


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog='pgclient', description=__doc__)
    parser.add_argument('--conninfo', default=os.environ.get('PGCLIENT_CONNINFO', DEFAULT_CONNINFO),
                        help='libpq connection string (default: $PGCLIENT_CONNINFO)')
    parser.add_argument('-v', '--verbose', action='store_true', help='log SQL at debug level')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    with Connection() as cn:
        if not cn.connect(args.conninfo):
            print('Failed to connect to database', file=sys.stderr)
            return 1
        if not test_connection(cn):
            print('Connection test failed!', file=sys.stderr)
            return 1
        print(f'Database Info:\n{get_database_info(cn)}\n')

        try:
            run_users_demo(cn)
        except DatabaseError as err:
            print(f'Transaction failed: {err}', file=sys.stderr)
            return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
