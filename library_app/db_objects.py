from sqlalchemy import event

from library_app.extensions import db


def _install_sqlite_locking(app, engine):
    """
    sqlite has no row locks, so FOR UPDATE renders to nothing there.
    Open every transaction with BEGIN IMMEDIATE instead: the write lock is
    taken before the first read, and competing writers wait on busy_timeout.
    """
    busy_timeout = int(app.config.get("SQLITE_BUSY_TIMEOUT_MS", 30000))

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _connection_record):
        # pysqlite must not emit its own BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA busy_timeout = {busy_timeout}")
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    app.logger.info(f"[db_objects] sqlite locking installed (busy_timeout={busy_timeout}ms).")


def ensure_db_objects(app):
    # model modules must be imported before create_all sees their tables
    from library_app.models import user, book_category, book, borrow_record, notification_log  # noqa: F401

    with app.app_context():
        engine = db.engine
        if engine.dialect.name == "sqlite":
            _install_sqlite_locking(app, engine)

        if app.config.get("AUTO_CREATE_TABLES", True):
            try:
                db.create_all()
                app.logger.info("[db_objects] Tables ensured.")
            except Exception as e:
                app.logger.error(f"[db_objects] create_all failed: {e}")
                raise
