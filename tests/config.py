from types import SimpleNamespace

postgresql = SimpleNamespace(
    hostname='localhost',
    username='postgres',
    password='postgres',
    database='test_db',
    port=5432,
    timeout=30,
    appname='pgclient_tests',
    )
